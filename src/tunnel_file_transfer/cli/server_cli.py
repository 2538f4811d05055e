"""
服务端命令行接口
================

启动文件传输服务，Ctrl+C 优雅关闭，再次 Ctrl+C 强制退出。
"""

from ..config.constants import EXIT_FAILURE, EXIT_SUCCESS
from ..config.settings import ServerConfig
from ..core.cancellation import CancellationToken
from ..transfer.server import FileTransferServer
from ..utils.logger import get_logger
from ..utils.progress import format_bytes

logger = get_logger(__name__)


class ServerCLI:
    """服务端命令行接口"""

    def __init__(self, config: ServerConfig):
        self.config = config
        self.token = CancellationToken()
        self.server = FileTransferServer(config, token=self.token)

    def show_banner(self) -> None:
        """显示启动信息"""
        print("🚀 隧道文件传输服务")
        print("=" * 30)
        print(f"📁 文件目录: {self.config.serve_dir}")
        print(f"📏 最大文件: {format_bytes(self.config.max_file_size)}")
        print(f"♻️  允许覆盖: {'是' if self.config.allow_overwrite else '否'}")

    def run(self) -> int:
        """
        运行服务直到被中断

        Returns:
            退出码
        """
        self.show_banner()

        try:
            host, port = self.server.start()
        except OSError as e:
            logger.error(f"启动服务失败: {e}")
            print(f"❌ 无法监听端口 {self.config.port}: {e}")
            return EXIT_FAILURE

        print(f"🎧 正在监听 {host}:{port}，按 Ctrl+C 退出")

        try:
            self.token.wait()
        except KeyboardInterrupt:
            print("\n⏹️  正在关闭...")

        try:
            finished = self.server.stop()
        except KeyboardInterrupt:
            # 第二次 Ctrl+C 不再等待进行中的连接
            finished = False

        if not finished:
            # 取消剩余连接，让它们删除未完成的临时文件
            self.token.cancel("进程退出")
            self.server.stop(grace_period=1.0)
            print("⚠️  部分连接未结束，已强制中止")
            return EXIT_FAILURE

        print("✅ 已关闭")
        return EXIT_SUCCESS
