"""
核心模块
========

包含协议消息、编解码、连接管理、取消令牌和异常定义等核心功能。
"""

from .cancellation import CancellationToken
from .connection import SocketConnection
from .exceptions import (
    TransferError,
    ProtocolError,
    PathSecurityError,
    SizeLimitExceeded,
    TransferIncompleteError,
    StallTimeout,
    NotFound,
    AlreadyExists,
    ConnectionClosed,
    OperationCancelled,
    HandshakeTimeout,
    RemoteError,
)
from .messages import (
    SendMessage,
    RequestMessage,
    ListDirMessage,
    ErrorMessage,
    DirectoryEntry,
    DirectoryListing,
)
from .protocol_codec import ProtocolCodec

__all__ = [
    "CancellationToken",
    "SocketConnection",
    "ProtocolCodec",
    "SendMessage",
    "RequestMessage",
    "ListDirMessage",
    "ErrorMessage",
    "DirectoryEntry",
    "DirectoryListing",
    "TransferError",
    "ProtocolError",
    "PathSecurityError",
    "SizeLimitExceeded",
    "TransferIncompleteError",
    "StallTimeout",
    "NotFound",
    "AlreadyExists",
    "ConnectionClosed",
    "OperationCancelled",
    "HandshakeTimeout",
    "RemoteError",
]
