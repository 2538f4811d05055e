"""
连接分派模块
============

每个接入的连接由一个独立的 ConnectionDispatcher 处理：
读取头部 -> (Send时校验DATA:分隔行) -> 按命令分派 -> 数据传输 -> 收尾关闭。

任何错误都在连接边界被捕获并记录，连接总会被关闭，不影响监听器和其他连接。
"""

from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional, TextIO

from ..config.settings import ServerConfig
from ..core.connection import SocketConnection
from ..core.exceptions import (
    NotFound,
    OperationCancelled,
    PathSecurityError,
    ProtocolError,
    SizeLimitExceeded,
    StallTimeout,
    TransferIncompleteError,
)
from ..core.messages import (
    ErrorMessage,
    ListDirMessage,
    ProtocolMessage,
    RequestMessage,
    SendMessage,
)
from ..core.protocol_codec import ProtocolCodec
from ..utils.logger import get_logger
from ..utils.path_utils import (
    normalize_path,
    resolve_path,
    sanitize_filename,
    unique_destination,
)
from ..utils.progress import TransferProgress, format_bytes
from .directory_lister import list_directory
from .engine import TransferEngine

logger = get_logger(__name__)


class DispatchState(Enum):
    """连接处理状态"""

    AWAIT_HEADER = "AwaitHeader"
    EXPECT_DATA_MARKER = "ExpectDataMarker"
    DISPATCH = "Dispatch"
    STREAMING = "Streaming"
    FINALIZE = "Finalize"
    CLOSED = "Closed"
    ERROR_REPORTED = "ErrorReported"


class ConnectionDispatcher:
    """单连接命令分派器"""

    def __init__(
        self,
        connection: SocketConnection,
        config: ServerConfig,
        engine: Optional[TransferEngine] = None,
        progress_stream: Optional[TextIO] = None,
    ):
        """
        初始化分派器

        Args:
            connection: 已接入的连接
            config: 服务端配置（只读，所有连接共享）
            engine: 传输引擎（可选）
            progress_stream: 进度条输出流（可选）
        """
        self.connection = connection
        self.config = config
        self.engine = engine or TransferEngine()
        self.progress_stream = progress_stream
        self.root = Path(config.serve_dir).resolve()
        self.state = DispatchState.AWAIT_HEADER
        self.error: Optional[BaseException] = None

    def handle(self) -> bool:
        """
        处理整个连接

        Returns:
            成功返回True，出现错误返回False
        """
        logger.info(f"客户端已连接: {self.connection.peer}")
        try:
            self._run()
            return True
        except Exception as e:
            self.state = DispatchState.ERROR_REPORTED
            self.error = e
            self._report(e)
            return False
        finally:
            self.connection.close()
            if self.state != DispatchState.ERROR_REPORTED:
                self.state = DispatchState.CLOSED
            logger.debug(f"连接已关闭: {self.connection.peer}")

    def _run(self) -> None:
        message = ProtocolCodec.read_message(self.connection)
        if message is None:
            logger.info("对端在发送头部前断开连接")
            return

        if isinstance(message, SendMessage):
            self.state = DispatchState.EXPECT_DATA_MARKER
            ProtocolCodec.expect_data_marker(self.connection)

        self.state = DispatchState.DISPATCH
        self._dispatch(message)
        self.state = DispatchState.FINALIZE

    def _dispatch(self, message: ProtocolMessage) -> None:
        if isinstance(message, ListDirMessage):
            self._handle_list(message)
        elif isinstance(message, RequestMessage):
            self._handle_request(message)
        elif isinstance(message, SendMessage):
            self._handle_send(message)
        else:
            raise ProtocolError(f"不支持的命令: {message.command.value}")

    def _handle_list(self, message: ListDirMessage) -> None:
        """处理目录列表请求"""
        logger.info(f"请求目录列表: /{message.path}")

        listing = list_directory(self.root, message.path)
        ProtocolCodec.write_message(self.connection, listing)

        logger.info(f"目录列表已发送 ({len(listing)} 项)")

    def _send_error(self, text: str) -> None:
        ProtocolCodec.write_message(self.connection, ErrorMessage(text))

    def _handle_request(self, message: RequestMessage) -> None:
        """处理文件请求：本端成为发送方"""
        logger.info(f"请求文件: {message.path}")

        try:
            file_path = resolve_path(self.root, message.path)
        except (PathSecurityError, ValueError):
            # ValueError: 路径中含有操作系统不接受的字符
            self._send_error(f"Access denied: {message.path}")
            raise
        logger.debug(f"解析路径: {file_path}")

        if not file_path.is_file():
            self._send_error(f"File not found: {message.path}")
            raise NotFound(f"文件不存在: {file_path}")

        size = file_path.stat().st_size
        if size > self.config.max_file_size:
            self._send_error(
                f"File too large: {format_bytes(size)} "
                f"(max: {format_bytes(self.config.max_file_size)})"
            )
            raise SizeLimitExceeded(size, self.config.max_file_size)

        # 使用请求中的名字而不是符号链接指向的目标名
        filename = PurePosixPath(normalize_path(message.path)).name
        logger.info(f"发送文件: {message.path} ({format_bytes(size)})")
        ProtocolCodec.write_message(self.connection, SendMessage(filename, size))
        ProtocolCodec.write_data_marker(self.connection)

        self.state = DispatchState.STREAMING
        with TransferProgress(
            size,
            f"Sending {filename}",
            enabled=self.config.show_progress,
            stream=self.progress_stream,
        ) as progress:
            self.engine.send_file(self.connection, file_path, size, progress.callback)

        logger.info(f"文件发送完成: {message.path}")

    def _handle_send(self, message: SendMessage) -> None:
        """处理文件上传：本端成为接收方"""
        if message.size > self.config.max_file_size:
            raise SizeLimitExceeded(message.size, self.config.max_file_size)

        filename = sanitize_filename(message.filename)
        final_path = unique_destination(self.root / filename, self.config.allow_overwrite)

        logger.info(f"接收文件: {message.filename} ({format_bytes(message.size)})")
        logger.info(f"保存到: {final_path}")

        self.state = DispatchState.STREAMING
        with TransferProgress(
            message.size,
            f"Receiving {final_path.name}",
            enabled=self.config.show_progress,
            stream=self.progress_stream,
        ) as progress:
            self.engine.receive_file(
                self.connection,
                final_path,
                message.size,
                allow_overwrite=self.config.allow_overwrite,
                on_progress=progress.callback,
                rename_on_conflict=True,
            )

        logger.info(f"文件接收完成: {message.filename}")

    def _report(self, error: Exception) -> None:
        """按错误类别记录日志"""
        if isinstance(error, StallTimeout):
            logger.error("发送中断 - 客户端停止响应")
        elif isinstance(error, OperationCancelled):
            logger.error(f"操作已取消: {error}")
        elif isinstance(error, TransferIncompleteError):
            logger.error(
                f"接收中断 - 连接丢失 (已接收 {format_bytes(error.bytes_received)} / "
                f"{format_bytes(error.expected_bytes)})"
            )
        elif isinstance(error, ProtocolError):
            logger.error(f"协议错误: {error}")
        elif isinstance(error, ConnectionError):
            logger.error("连接丢失 - 网络错误")
        else:
            logger.error(f"处理客户端请求失败: {error}")
