"""
传输模块
========

包含传输引擎、目录列表、连接分派、服务端和客户端。
"""

from .engine import TransferEngine
from .directory_lister import list_directory
from .dispatcher import ConnectionDispatcher, DispatchState
from .server import FileTransferServer
from .client import FileTransferClient, TransferResult

__all__ = [
    "TransferEngine",
    "list_directory",
    "ConnectionDispatcher",
    "DispatchState",
    "FileTransferServer",
    "FileTransferClient",
    "TransferResult",
]
