"""
文件传输服务端
==============

单个接受循环，每个接入的连接交给独立线程中的 ConnectionDispatcher 处理。
连接之间只共享只读的服务端配置。
"""

import socket
import threading
import time
from typing import List, Optional, TextIO, Tuple

from ..config.constants import POLL_INTERVAL
from ..config.settings import ServerConfig
from ..core.cancellation import CancellationToken
from ..core.connection import SocketConnection
from ..utils.logger import get_logger
from .dispatcher import ConnectionDispatcher
from .engine import TransferEngine

logger = get_logger(__name__)


class FileTransferServer:
    """文件传输服务端"""

    def __init__(
        self,
        config: ServerConfig,
        engine: Optional[TransferEngine] = None,
        progress_stream: Optional[TextIO] = None,
        token: Optional[CancellationToken] = None,
    ):
        """
        初始化服务端

        Args:
            config: 服务端配置
            engine: 传输引擎（可选）
            progress_stream: 进度条输出流（可选）
            token: 进程级取消令牌（可选），被取消时所有连接的阻塞调用都会中止
        """
        self.config = config
        self.engine = engine or TransferEngine()
        self.progress_stream = progress_stream

        self.token = token or CancellationToken()
        # 只控制接受循环，关闭服务时进行中的连接可以独立完成
        self._accept_token = self.token.child()
        self._sock: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._handlers: List[threading.Thread] = []
        self._handlers_lock = threading.Lock()

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """实际绑定的地址（端口为0时由系统分配）"""
        if self._sock is None:
            return None
        return self._sock.getsockname()[:2]

    def bind(self) -> Tuple[str, int]:
        """
        创建监听套接字

        Returns:
            实际绑定的地址
        """
        if self._sock is not None:
            return self.address

        serve_dir = self.config.ensure_serve_dir()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen()
        except OSError:
            sock.close()
            raise
        # 周期性超时以便接受循环检查取消信号
        sock.settimeout(POLL_INTERVAL)
        self._sock = sock

        host, port = self.address
        logger.info(f"文件传输服务监听于 {host}:{port}")
        logger.info(f"文件目录: {serve_dir}")
        return self.address

    def start(self) -> Tuple[str, int]:
        """
        在后台线程中启动接受循环

        Returns:
            实际绑定的地址
        """
        address = self.bind()
        self._accept_thread = threading.Thread(
            target=self.serve_forever, name="accept-loop", daemon=True
        )
        self._accept_thread.start()
        return address

    def serve_forever(self) -> None:
        """在当前线程中运行接受循环，直到被取消"""
        self.bind()
        sock = self._sock

        while not self._accept_token.is_cancelled:
            try:
                client_sock, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._accept_token.is_cancelled:
                    logger.error(f"接受连接失败: {e}")
                break

            self._spawn_handler(client_sock)

        logger.debug("接受循环已退出")

    def _spawn_handler(self, client_sock: socket.socket) -> None:
        # accept 返回的套接字会继承监听套接字的超时设置，由连接对象重新管理
        client_sock.settimeout(None)
        connection = SocketConnection(client_sock, self.token.child())
        dispatcher = ConnectionDispatcher(
            connection, self.config, self.engine, self.progress_stream
        )

        thread = threading.Thread(target=dispatcher.handle, daemon=True)
        with self._handlers_lock:
            self._handlers = [t for t in self._handlers if t.is_alive()]
            self._handlers.append(thread)
        thread.start()

    @property
    def active_handlers(self) -> int:
        """仍在运行的连接处理线程数"""
        with self._handlers_lock:
            return sum(1 for t in self._handlers if t.is_alive())

    def stop(self, grace_period: Optional[float] = None) -> bool:
        """
        停止服务

        取消接受循环，关闭监听套接字，并在宽限期内等待处理线程结束。

        Args:
            grace_period: 等待处理线程的时间(秒)，默认使用配置值

        Returns:
            所有处理线程在宽限期内结束返回True，否则返回False
        """
        grace = self.config.grace_period if grace_period is None else grace_period
        logger.info("正在关闭服务...")

        # 接受循环和处理线程共用同一个截止时间
        deadline = time.monotonic() + grace
        self._accept_token.cancel("服务正在关闭")

        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(max(0.0, deadline - time.monotonic()))

        if self._sock is not None:
            try:
                self._sock.close()
            except OSError as e:
                logger.error(f"关闭监听套接字失败: {e}")
            self._sock = None

        with self._handlers_lock:
            handlers = list(self._handlers)
        for thread in handlers:
            thread.join(max(0.0, deadline - time.monotonic()))

        remaining = self.active_handlers
        if remaining:
            logger.warning(f"{remaining} 个连接未在 {grace} 秒内结束，强制退出")
            return False

        logger.info("服务已关闭")
        return True

    def __enter__(self):
        """支持with语句"""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.stop()
