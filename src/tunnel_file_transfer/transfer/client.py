"""
文件传输客户端
==============

每次操作使用一个新的连接：下载(Request)、上传(Send)、列目录(ListDir)。

经过SSH端口转发时，即使远端没有服务进程，TCP连接也能成功建立，
因此等待首个回复行和DATA:分隔行时使用较短的超时来发现这种情况。
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO, Union

from ..config.settings import ClientConfig
from ..core.cancellation import CancellationToken
from ..core.connection import SocketConnection
from ..core.exceptions import (
    ConnectionClosed,
    HandshakeTimeout,
    NotFound,
    ProtocolError,
    RemoteError,
)
from ..core.messages import (
    DirectoryListing,
    ErrorMessage,
    ListDirMessage,
    RequestMessage,
    SendMessage,
)
from ..core.protocol_codec import ProtocolCodec
from ..utils.logger import get_logger
from ..utils.path_utils import sanitize_filename
from ..utils.progress import TransferProgress
from .engine import TransferEngine

logger = get_logger(__name__)


@dataclass
class TransferResult:
    """单次传输的结果"""

    path: Path  # 本地文件路径
    size: int  # 传输字节数
    elapsed: float  # 用时(秒)


class FileTransferClient:
    """文件传输客户端"""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        token: Optional[CancellationToken] = None,
        engine: Optional[TransferEngine] = None,
        progress_stream: Optional[TextIO] = None,
    ):
        """
        初始化客户端

        Args:
            config: 客户端配置（可选）
            token: 操作级取消令牌，用户中断时取消（可选）
            engine: 传输引擎（可选）
            progress_stream: 进度条输出流（可选）
        """
        self.config = config or ClientConfig()
        self.token = token or CancellationToken()
        self.engine = engine or TransferEngine(write_timeout=self.config.write_timeout)
        self.progress_stream = progress_stream

    def _connect(self) -> SocketConnection:
        return SocketConnection.connect(
            self.config.host,
            self.config.port,
            timeout=self.config.response_timeout,
            token=self.token,
        )

    def _read_response_line(self, connection: SocketConnection) -> str:
        """
        在回复超时内读取首个回复行

        Raises:
            HandshakeTimeout: 超时未收到回复
            ConnectionClosed: 连接在回复前关闭
        """
        scope = self.token.child(self.config.response_timeout, HandshakeTimeout)
        try:
            line = ProtocolCodec.read_line(connection, scope)
        except HandshakeTimeout:
            raise HandshakeTimeout(
                f"无法与端口 {self.config.port} 上的服务端建立连接（等待回复超时）"
            ) from None

        # 空行不是断开，交给解析阶段报告协议错误
        if line is None:
            raise ConnectionClosed(f"无法与端口 {self.config.port} 上的服务端建立连接")
        return line

    def download(
        self, remote_path: str, local_name: Optional[Union[str, Path]] = None
    ) -> TransferResult:
        """
        下载文件

        Args:
            remote_path: 服务端上的相对路径
            local_name: 本地文件名（可选，默认使用远端基本名）

        Returns:
            传输结果

        Raises:
            RemoteError: 服务端回复错误（文件不存在、过大等）
            ProtocolError: 回复格式无效
            TransferIncompleteError: 数据在完成前中断
        """
        local_path = Path(local_name) if local_name else Path(sanitize_filename(remote_path))
        start_time = time.time()

        with self._connect() as connection:
            ProtocolCodec.write_message(connection, RequestMessage(remote_path))
            logger.debug(f"已请求下载: {remote_path}")

            response = ProtocolCodec.decode_message(self._read_response_line(connection))
            if isinstance(response, ErrorMessage):
                raise RemoteError(response.error_message)
            if not isinstance(response, SendMessage):
                raise ProtocolError(f"意外的回复命令: {response.command.value}")

            ProtocolCodec.expect_data_marker(
                connection, self.token.child(self.config.data_timeout, HandshakeTimeout)
            )

            with TransferProgress(
                response.size,
                f"Downloading {local_path.name}",
                enabled=self.config.show_progress,
                stream=self.progress_stream,
            ) as progress:
                received = self.engine.receive_file(
                    connection,
                    local_path,
                    response.size,
                    allow_overwrite=True,
                    on_progress=progress.callback,
                    token=self.token,
                )

        logger.info(f"下载完成: {remote_path} -> {local_path}")
        return TransferResult(local_path, received, time.time() - start_time)

    def upload(self, local_file: Union[str, Path]) -> TransferResult:
        """
        上传文件

        服务端拒绝（过大、不允许覆盖）时没有错误回复，只能通过连接中断发现。

        Args:
            local_file: 本地文件路径

        Returns:
            传输结果

        Raises:
            NotFound: 本地文件不存在
            StallTimeout: 服务端停止接收
        """
        file_path = Path(local_file)
        if not file_path.is_file():
            raise NotFound(f"文件不存在: {local_file}")

        size = file_path.stat().st_size
        start_time = time.time()

        with self._connect() as connection:
            ProtocolCodec.write_message(connection, SendMessage(file_path.name, size))
            ProtocolCodec.write_data_marker(connection)
            logger.debug(f"已请求上传: {file_path.name} ({size} 字节)")

            with TransferProgress(
                size,
                f"Uploading {file_path.name}",
                enabled=self.config.show_progress,
                stream=self.progress_stream,
            ) as progress:
                sent = self.engine.send_file(
                    connection, file_path, size, progress.callback, self.token
                )

        logger.info(f"上传完成: {file_path.name}")
        return TransferResult(file_path, sent, time.time() - start_time)

    def list_dir(self, remote_path: str = "") -> DirectoryListing:
        """
        列出服务端目录

        Args:
            remote_path: 相对目录，空字符串表示根目录

        Returns:
            目录列表
        """
        with self._connect() as connection:
            ProtocolCodec.write_message(connection, ListDirMessage(remote_path))
            line = self._read_response_line(connection)

        try:
            return ProtocolCodec.decode_listing(line)
        except ProtocolError:
            # 可能是错误回复而不是目录列表
            try:
                message = ProtocolCodec.decode_message(line)
            except ProtocolError:
                message = None
            if isinstance(message, ErrorMessage):
                raise RemoteError(message.error_message) from None
            raise
