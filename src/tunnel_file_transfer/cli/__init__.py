"""
命令行接口模块
==============

提供服务端和客户端的命令行接口。
"""

from .client_cli import ClientCLI
from .server_cli import ServerCLI

__all__ = [
    "ClientCLI",
    "ServerCLI",
]
