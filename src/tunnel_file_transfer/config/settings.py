"""
配置管理
========

提供服务端和客户端相关的配置类。
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_MAX_FILE_SIZE,
    PORT_ENV_VAR,
    RESPONSE_TIMEOUT,
    DATA_TIMEOUT,
    WRITE_TIMEOUT,
    SHUTDOWN_GRACE_PERIOD,
    SIZE_UNITS,
)


def _default_serve_dir() -> Path:
    return Path.home() / "Downloads"


def parse_file_size(size_str: str) -> int:
    """
    解析文件大小字符串

    支持纯数字以及KB/MB/GB后缀（不区分大小写，按1024换算）。

    Args:
        size_str: 大小字符串，如 "100MB"、"1gb"、"4096"

    Returns:
        字节数

    Raises:
        ValueError: 格式无效或数值不为正数时抛出

    Examples:
        >>> parse_file_size("100MB")
        104857600
    """
    if size_str is None or not size_str.strip():
        raise ValueError("文件大小不能为空")

    text = size_str.strip().upper()
    multiplier = 1
    for suffix, unit in SIZE_UNITS.items():
        if text.endswith(suffix):
            multiplier = unit
            text = text[: -len(suffix)].strip()
            break

    try:
        number = int(text)
    except ValueError:
        raise ValueError(f"无效的文件大小: {size_str}") from None

    if number <= 0:
        raise ValueError(f"文件大小必须大于0: {size_str}")

    return number * multiplier


@dataclass
class ServerConfig:
    """服务端配置类"""

    port: int = DEFAULT_PORT  # 监听端口
    host: str = DEFAULT_HOST  # 监听地址
    serve_dir: Path = field(default_factory=_default_serve_dir)  # 服务/下载根目录
    max_file_size: int = DEFAULT_MAX_FILE_SIZE  # 最大文件大小(字节)
    allow_overwrite: bool = True  # 是否允许覆盖已存在文件
    grace_period: float = SHUTDOWN_GRACE_PERIOD  # 关闭时等待处理线程的时间(秒)
    show_progress: bool = True  # 是否显示进度

    def __post_init__(self):
        """参数验证"""
        self.serve_dir = Path(self.serve_dir).expanduser()
        if not 0 <= self.port <= 65535:
            raise ValueError("port必须在0到65535之间")
        if self.max_file_size <= 0:
            raise ValueError("max_file_size必须大于0")
        if self.grace_period < 0:
            raise ValueError("grace_period不能为负数")

    def ensure_serve_dir(self) -> Path:
        """
        确保服务目录存在

        Returns:
            服务目录的绝对路径
        """
        self.serve_dir.mkdir(parents=True, exist_ok=True)
        return self.serve_dir.resolve()


@dataclass
class ClientConfig:
    """客户端配置类"""

    port: int = DEFAULT_PORT  # 目标端口
    host: str = DEFAULT_HOST  # 目标地址
    response_timeout: float = RESPONSE_TIMEOUT  # 等待首个回复行的超时(秒)
    data_timeout: float = DATA_TIMEOUT  # 等待DATA:分隔行的超时(秒)
    write_timeout: float = WRITE_TIMEOUT  # 单次写入超时(秒)
    show_progress: bool = True  # 是否显示进度

    def __post_init__(self):
        """参数验证"""
        if not 0 < self.port <= 65535:
            raise ValueError("port必须在1到65535之间")
        if self.response_timeout <= 0:
            raise ValueError("response_timeout必须大于0")
        if self.data_timeout <= 0:
            raise ValueError("data_timeout必须大于0")
        if self.write_timeout <= 0:
            raise ValueError("write_timeout必须大于0")

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **kwargs
    ) -> "ClientConfig":
        """
        从环境变量创建配置

        Args:
            environ: 环境变量映射，默认使用os.environ
            **kwargs: 其他配置项

        Returns:
            客户端配置

        Raises:
            ValueError: 端口环境变量不是有效数字时抛出
        """
        env = os.environ if environ is None else environ
        raw_port = env.get(PORT_ENV_VAR)
        if raw_port:
            try:
                kwargs.setdefault("port", int(raw_port))
            except ValueError:
                raise ValueError(f"{PORT_ENV_VAR} 不是有效端口: {raw_port}") from None
        return cls(**kwargs)
