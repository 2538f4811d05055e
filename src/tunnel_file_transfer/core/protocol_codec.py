"""
协议编解码模块
==============

负责头部行的封装和解析，以及DATA:分隔行的收发。

帧格式::

    header-line := <UTF-8 JSON对象> "\\n"
    data-marker := "DATA:" "\\n"          仅在随后有二进制数据时出现
    payload     := <size> 字节原始数据
"""

import json
from typing import Optional, Union

from ..config.constants import DATA_MARKER, LINE_ENCODING, LINE_TERMINATOR
from ..utils.logger import get_logger
from .cancellation import CancellationToken
from .connection import SocketConnection
from .exceptions import ProtocolError
from .messages import DirectoryListing, ProtocolMessage, message_from_dict

logger = get_logger(__name__)

# 头部行长度上限，防止对端发送无换行的超长数据耗尽内存
MAX_LINE_LENGTH = 16 * 1024 * 1024


class ProtocolCodec:
    """协议编解码器"""

    @staticmethod
    def encode_message(message: Union[ProtocolMessage, DirectoryListing]) -> bytes:
        """
        将消息编码为一行JSON

        Args:
            message: 协议消息或目录列表

        Returns:
            以换行结尾的UTF-8字节串

        Examples:
            >>> ProtocolCodec.encode_message(RequestMessage("a.txt"))
            b'{"command": "Request", "path": "a.txt"}\\n'
        """
        # json.dumps 会把字符串中的换行转义，输出中不会出现原始的 \n 或 \r
        text = json.dumps(message.to_dict(), ensure_ascii=False)
        return text.encode(LINE_ENCODING) + LINE_TERMINATOR

    @staticmethod
    def decode_message(line: str) -> ProtocolMessage:
        """
        解析一行头部

        Args:
            line: 已去除换行的头部文本

        Returns:
            协议消息

        Raises:
            ProtocolError: JSON无效或字段不符合命令要求
        """
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"无效的头部JSON: {e}") from e
        return message_from_dict(data)

    @staticmethod
    def decode_listing(line: str) -> DirectoryListing:
        """解析目录列表回复行"""
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"无效的目录列表JSON: {e}") from e
        return DirectoryListing.from_dict(data)

    @staticmethod
    def read_line(
        connection: SocketConnection,
        token: Optional[CancellationToken] = None,
        max_length: int = MAX_LINE_LENGTH,
    ) -> Optional[str]:
        """
        逐字节读取一行

        遇到 \\n 结束，丢弃所有 \\r。只用于头部和分隔行，数据阶段必须按块读取。

        Args:
            connection: 连接对象
            token: 取消令牌（可选）
            max_length: 行长度上限

        Returns:
            去除首尾空白的行内容；连接在读到换行前关闭时返回None

        Raises:
            ProtocolError: 行过长或不是有效的UTF-8
        """
        buffer = bytearray()
        while True:
            byte = connection.recv(1, token)
            if not byte:
                return None
            if byte == LINE_TERMINATOR:
                break
            if byte == b"\r":
                continue
            buffer += byte
            if len(buffer) > max_length:
                raise ProtocolError(f"头部行超过 {max_length} 字节")

        try:
            return buffer.decode(LINE_ENCODING).strip()
        except UnicodeDecodeError as e:
            raise ProtocolError(f"头部不是有效的UTF-8: {e}") from e

    @staticmethod
    def read_message(
        connection: SocketConnection, token: Optional[CancellationToken] = None
    ) -> Optional[ProtocolMessage]:
        """
        读取并解析一条头部消息

        Returns:
            协议消息；对端在发送头部前关闭连接时返回None
        """
        line = ProtocolCodec.read_line(connection, token)
        if line is None:
            return None
        return ProtocolCodec.decode_message(line)

    @staticmethod
    def write_message(
        connection: SocketConnection,
        message: Union[ProtocolMessage, DirectoryListing],
        token: Optional[CancellationToken] = None,
    ) -> None:
        """以一次写入发送一条头部消息"""
        connection.write(ProtocolCodec.encode_message(message), token)

    @staticmethod
    def write_data_marker(
        connection: SocketConnection, token: Optional[CancellationToken] = None
    ) -> None:
        """发送DATA:分隔行"""
        connection.write(DATA_MARKER.encode(LINE_ENCODING) + LINE_TERMINATOR, token)

    @staticmethod
    def expect_data_marker(
        connection: SocketConnection, token: Optional[CancellationToken] = None
    ) -> None:
        """
        读取并校验DATA:分隔行

        Raises:
            ProtocolError: 连接关闭或内容不是DATA:
        """
        line = ProtocolCodec.read_line(connection, token)
        if line != DATA_MARKER:
            logger.debug(f"期望DATA:分隔行，实际收到: {line!r}")
            raise ProtocolError("缺少DATA:分隔行")
