"""
传输引擎模块
============

按固定大小的块在数据源和目标之间拷贝字节，方向无关：
同一个引擎既用于 文件 -> 套接字，也用于 套接字 -> 文件。
"""

import os
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Tuple, Union

from ..config.constants import CHUNK_SIZE, TEMP_SUFFIX, WRITE_TIMEOUT
from ..core.cancellation import CancellationToken
from ..core.connection import SocketConnection
from ..core.exceptions import AlreadyExists, StallTimeout, TransferIncompleteError
from ..utils.logger import get_logger
from ..utils.path_utils import unique_destination

logger = get_logger(__name__)

Endpoint = Union[SocketConnection, BinaryIO]
ProgressCallback = Callable[[int], None]


def temp_path_for(final_path: Path, index: int = 0) -> Path:
    """
    获取接收中使用的临时文件路径

    index 为0时是 <name>.tmp，否则是 <name>.<index>.tmp
    """
    if index:
        return final_path.with_name(f"{final_path.name}.{index}{TEMP_SUFFIX}")
    return final_path.with_name(final_path.name + TEMP_SUFFIX)


def open_temp_file(final_path: Path) -> Tuple[Path, BinaryIO]:
    """
    独占地创建本次接收专用的临时文件

    同名文件的并发接收各自得到不同的临时文件，已存在的临时文件不会被截断。

    Returns:
        (临时文件路径, 以二进制写模式打开的文件对象)
    """
    index = 0
    while True:
        temp_path = temp_path_for(final_path, index)
        try:
            return temp_path, temp_path.open("xb")
        except FileExistsError:
            index += 1


def finalize_file(
    temp_path: Path,
    final_path: Path,
    allow_overwrite: bool,
    rename_on_conflict: bool = False,
) -> Path:
    """
    把完整接收的临时文件移动到最终位置

    Args:
        temp_path: 临时文件
        final_path: 目标文件
        allow_overwrite: 目标已存在时是否覆盖
        rename_on_conflict: 不允许覆盖且目标已存在时改用 _1、_2 …… 后缀

    Returns:
        实际写入的文件路径

    Raises:
        AlreadyExists: 目标已存在、不允许覆盖且不改名
    """
    if allow_overwrite:
        # os.replace 原子地替换已存在的目标，并发接收时最后完成的一方生效
        os.replace(temp_path, final_path)
        return final_path

    # 硬链接在目标已存在时失败，检查与创建之间没有竞争窗口
    target = final_path
    while True:
        try:
            os.link(temp_path, target)
            break
        except FileExistsError:
            if not rename_on_conflict:
                raise AlreadyExists(f"文件已存在: {final_path.name}") from None
            target = unique_destination(final_path, allow_overwrite=False)
    os.unlink(temp_path)
    return target


def discard_file(path: Path) -> None:
    """删除不完整的文件，失败只记录日志"""
    try:
        if path.exists():
            path.unlink()
            logger.info(f"已删除不完整的文件: {path}")
    except OSError as e:
        logger.error(f"删除不完整文件失败: {e}")


class TransferEngine:
    """块拷贝传输引擎"""

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        write_timeout: Optional[float] = WRITE_TIMEOUT,
    ):
        """
        初始化传输引擎

        Args:
            chunk_size: 中间缓冲区大小
            write_timeout: 写入套接字时单次写入的超时(秒)，None表示不检测停滞
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size必须大于0")
        self.chunk_size = chunk_size
        self.write_timeout = write_timeout

    def _read(self, source: Endpoint, size: int, token: CancellationToken) -> bytes:
        if isinstance(source, SocketConnection):
            return source.recv(size, token)
        return source.read(size)

    def _write(self, destination: Endpoint, data: bytes, token: CancellationToken) -> None:
        if isinstance(destination, SocketConnection):
            # 每次写入单独计时，超时视为对端停止响应，整个传输中止
            scope = (
                token.child(self.write_timeout, StallTimeout)
                if self.write_timeout is not None
                else token
            )
            destination.write(data, scope)
        else:
            destination.write(data)

    def copy(
        self,
        source: Endpoint,
        destination: Endpoint,
        expected_size: int,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> int:
        """
        拷贝 expected_size 字节

        Args:
            source: 数据源（连接或可读文件对象）
            destination: 目标（连接或可写文件对象）
            expected_size: 预期字节数
            on_progress: 每个块之后以累计字节数调用（可选）
            token: 取消令牌（可选）

        Returns:
            实际传输的字节数（成功时等于 expected_size）

        Raises:
            TransferIncompleteError: 数据源在达到预期大小前结束
            StallTimeout: 写入套接字超时
            OperationCancelled: 传输被取消
        """
        if token is None:
            if isinstance(source, SocketConnection):
                token = source.token
            elif isinstance(destination, SocketConnection):
                token = destination.token
            else:
                token = CancellationToken()

        transferred = 0
        while transferred < expected_size:
            token.raise_if_cancelled()

            request_len = min(self.chunk_size, expected_size - transferred)
            data = self._read(source, request_len, token)
            if not data:
                break

            self._write(destination, data, token)
            transferred += len(data)

            if on_progress is not None:
                on_progress(transferred)

        if transferred < expected_size:
            raise TransferIncompleteError(transferred, expected_size)

        return transferred

    def send_file(
        self,
        connection: SocketConnection,
        file_path: Path,
        size: int,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> int:
        """
        把文件内容写入连接（数据阶段，头部和分隔行由调用方发送）

        Returns:
            发送的字节数
        """
        with Path(file_path).open("rb") as f:
            return self.copy(f, connection, size, on_progress, token)

    def receive_file(
        self,
        connection: SocketConnection,
        final_path: Path,
        size: int,
        allow_overwrite: bool = True,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
        rename_on_conflict: bool = False,
    ) -> int:
        """
        从连接接收数据到临时文件，完整后原子地移动到最终位置

        每次接收使用独占的临时文件，任何失败都会先删除它再向上抛出。

        Args:
            connection: 连接
            final_path: 最终文件路径
            size: 预期字节数
            allow_overwrite: 最终文件已存在时是否覆盖
            on_progress: 进度回调（可选）
            token: 取消令牌（可选）
            rename_on_conflict: 不允许覆盖时，目标在接收期间被占用则改名保存

        Returns:
            接收的字节数
        """
        final_path = Path(final_path)
        temp_path, f = open_temp_file(final_path)

        try:
            with f:
                received = self.copy(connection, f, size, on_progress, token)
            saved_path = finalize_file(
                temp_path, final_path, allow_overwrite, rename_on_conflict
            )
        except BaseException:
            discard_file(temp_path)
            raise

        if saved_path != final_path:
            logger.info(f"文件冲突解决: {final_path.name} -> {saved_path.name}")
        return received
