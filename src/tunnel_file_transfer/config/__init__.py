"""
配置模块
=======

包含系统常量定义和配置管理功能。
"""

from .constants import *
from .settings import *

__all__ = [
    # 常量
    "ProtocolCommand",
    "EntryType",
    "DATA_MARKER",
    "DEFAULT_PORT",
    "CHUNK_SIZE",
    "PROGRESS_THRESHOLD",
    "EXIT_SUCCESS",
    "EXIT_FAILURE",
    "EXIT_CANCELLED",
    # 配置
    "ServerConfig",
    "ClientConfig",
    "parse_file_size",
]
