#!/usr/bin/env python3
"""
隧道文件传输工具 - 模块CLI入口
==============================

支持通过 python -m tunnel_file_transfer 调用
"""

import logging
import sys
import argparse
from typing import List, Optional

from .cli.client_cli import ClientCLI
from .cli.server_cli import ServerCLI
from .config.constants import (
    DEFAULT_PORT,
    EXIT_FAILURE,
    EXIT_SUCCESS,
    PORT_ENV_VAR,
)
from .config.settings import ClientConfig, ServerConfig, parse_file_size
from .utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

# 版本信息
VERSION = "1.0.0"
PROGRAM_NAME = "隧道文件传输工具"


def _file_size(value: str) -> int:
    try:
        return parse_file_size(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def create_parser() -> argparse.ArgumentParser:
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog="sx",
        description=f"{PROGRAM_NAME} v{VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
使用示例：
  # 在远端启动服务
  sx serve --port {DEFAULT_PORT} --dir ~/Downloads --max-size 1GB

  # 在本地经SSH隧道操作（端口由 {PORT_ENV_VAR} 环境变量指定）
  sx list docs
  sx download docs/report.pdf
  sx upload ./notes.txt
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"{PROGRAM_NAME} v{VERSION}"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="输出调试日志")
    parser.add_argument("--log-file", help="同时写入日志文件")
    parser.add_argument("--no-progress", action="store_true", help="不显示进度条")

    # 子命令
    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    serve_parser = subparsers.add_parser("serve", help="启动文件传输服务")
    serve_parser.add_argument("--port", "-p", type=int, default=DEFAULT_PORT, help=f"监听端口（默认{DEFAULT_PORT}）")
    serve_parser.add_argument("--dir", "-d", dest="serve_dir", default=None, help="文件目录（默认 ~/Downloads）")
    serve_parser.add_argument("--max-size", type=_file_size, default=None, help="最大文件大小，如 100MB、1GB（默认10GB）")
    serve_parser.add_argument("--no-overwrite", action="store_true", help="不覆盖已存在文件，自动重命名")

    download_parser = subparsers.add_parser("download", aliases=["sxd"], help="从服务端下载文件")
    download_parser.add_argument("remote_path", help="服务端上的文件路径")
    download_parser.add_argument("local_name", nargs="?", default=None, help="本地文件名（可选）")

    upload_parser = subparsers.add_parser("upload", aliases=["sxu"], help="上传文件到服务端")
    upload_parser.add_argument("local_file", help="要上传的本地文件")

    list_parser = subparsers.add_parser("list", aliases=["sxls"], help="列出服务端目录")
    list_parser.add_argument("remote_path", nargs="?", default="", help="服务端目录（默认根目录）")

    return parser


def _build_server_config(args: argparse.Namespace) -> ServerConfig:
    kwargs = {
        "port": args.port,
        "allow_overwrite": not args.no_overwrite,
        "show_progress": not args.no_progress,
    }
    if args.serve_dir:
        kwargs["serve_dir"] = args.serve_dir
    if args.max_size:
        kwargs["max_file_size"] = args.max_size
    return ServerConfig(**kwargs)


def main(argv: Optional[List[str]] = None) -> int:
    """
    主函数

    Returns:
        退出码
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_SUCCESS

    configure_logging(
        logging.DEBUG if args.verbose else logging.INFO if args.command == "serve" else logging.WARNING,
        args.log_file,
    )

    try:
        if args.command == "serve":
            return ServerCLI(_build_server_config(args)).run()

        cli = ClientCLI(ClientConfig.from_env(show_progress=not args.no_progress))
        if args.command in ("download", "sxd"):
            return cli.download(args.remote_path, args.local_name)
        if args.command in ("upload", "sxu"):
            return cli.upload(args.local_file)
        return cli.list(args.remote_path)

    except ValueError as e:
        print(f"❌ 配置错误: {e}")
        return EXIT_FAILURE


def _run_alias(command: str) -> None:
    sys.exit(main([command] + sys.argv[1:]))


def sxd() -> None:
    """sxd 命令入口"""
    _run_alias("download")


def sxu() -> None:
    """sxu 命令入口"""
    _run_alias("upload")


def sxls() -> None:
    """sxls 命令入口"""
    _run_alias("list")


def run() -> None:
    """sx 命令入口"""
    sys.exit(main())


if __name__ == "__main__":
    run()
