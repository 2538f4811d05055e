"""
隧道文件传输工具
================

通过单条TCP连接（通常经由SSH端口转发）在两端之间传输文件和查看目录。

主要功能：
- 上传文件
- 下载文件
- 列出服务目录
- 路径限制在服务根目录内
- 传输完整性校验和临时文件原子替换

作者: lanford
版本: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "lanford"
__email__ = ""
__description__ = "基于TCP隧道的文件传输工具"

# 导出主要类
from .transfer.server import FileTransferServer
from .transfer.client import FileTransferClient
from .config.settings import ServerConfig, ClientConfig

__all__ = [
    "FileTransferServer",
    "FileTransferClient",
    "ServerConfig",
    "ClientConfig",
]
