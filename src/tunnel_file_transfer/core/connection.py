"""
连接管理模块
============

对TCP套接字的统一封装，所有读写都会在取消令牌上检查取消信号。
"""

import socket
from typing import Optional, Tuple

from ..config.constants import POLL_INTERVAL
from ..utils.logger import get_logger
from .cancellation import CancellationToken

logger = get_logger(__name__)


class SocketConnection:
    """套接字连接管理器"""

    def __init__(
        self,
        sock: socket.socket,
        token: Optional[CancellationToken] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        """
        初始化连接管理器

        Args:
            sock: 已连接的套接字
            token: 连接级别的取消令牌（可选）
            poll_interval: 阻塞调用检查取消信号的间隔(秒)
        """
        self._sock: Optional[socket.socket] = sock
        self.token = token or CancellationToken()
        self.poll_interval = poll_interval
        try:
            self.peer: Optional[Tuple] = sock.getpeername()
        except OSError:
            self.peer = None

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        timeout: float = 5.0,
        token: Optional[CancellationToken] = None,
    ) -> "SocketConnection":
        """
        建立到服务端的连接

        Args:
            host: 目标地址
            port: 目标端口
            timeout: 连接超时(秒)
            token: 取消令牌（可选）

        Returns:
            新的连接对象

        Raises:
            OSError: 无法连接时抛出
        """
        sock = socket.create_connection((host, port), timeout=timeout)
        logger.debug(f"已连接到 {host}:{port}")
        return cls(sock, token)

    @property
    def is_open(self) -> bool:
        """检查连接是否仍然打开"""
        return self._sock is not None

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise OSError("连接已关闭")
        return self._sock

    def _slice(self, token: CancellationToken) -> float:
        """计算本次阻塞调用的等待时长，不超过令牌剩余时间"""
        remaining = token.remaining()
        if remaining is None:
            return self.poll_interval
        return max(0.001, min(self.poll_interval, remaining))

    def recv(self, size: int, token: Optional[CancellationToken] = None) -> bytes:
        """
        读取最多 size 字节

        Args:
            size: 最大读取字节数
            token: 本次调用的取消令牌，默认使用连接令牌

        Returns:
            读取到的数据，对端关闭连接时返回空bytes

        Raises:
            OperationCancelled: 等待期间被取消或超时
        """
        scope = token or self.token
        sock = self._socket()
        while True:
            scope.raise_if_cancelled()
            sock.settimeout(self._slice(scope))
            try:
                return sock.recv(size)
            except socket.timeout:
                continue

    def read(self, size: int, token: Optional[CancellationToken] = None) -> bytes:
        """与文件对象一致的读取接口"""
        return self.recv(size, token)

    def write(self, data: bytes, token: Optional[CancellationToken] = None) -> int:
        """
        写入全部数据

        Args:
            data: 要写入的字节数据
            token: 本次调用的取消令牌，默认使用连接令牌

        Returns:
            写入的字节数

        Raises:
            OperationCancelled: 写入未在令牌期限内完成（StallTimeout等子类）
            OSError: 连接异常
        """
        scope = token or self.token
        sock = self._socket()
        view = memoryview(data)
        sent = 0
        while sent < len(view):
            scope.raise_if_cancelled()
            sock.settimeout(self._slice(scope))
            try:
                sent += sock.send(view[sent:])
            except socket.timeout:
                continue
        return sent

    def close(self) -> None:
        """关闭连接"""
        if self._sock is None:
            return
        try:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # 对端可能已经断开
                pass
            self._sock.close()
            logger.debug(f"已关闭连接 {self.peer}")
        finally:
            self._sock = None

    def __enter__(self):
        """支持with语句"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.close()
