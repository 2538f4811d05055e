"""
协议消息数据结构定义
==================

定义线上传输的头部消息和目录列表结构。

每种命令对应一个独立的消息类型，只携带该命令有意义的字段：

- SendMessage: 文件名 + 大小，随后是DATA:分隔行和二进制数据
- RequestMessage: 请求对端发送的相对路径
- ListDirMessage: 请求对端列出的相对目录
- ErrorMessage: 错误描述
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from ..config.constants import ProtocolCommand, EntryType
from .exceptions import ProtocolError


def _lookup(data: Dict[str, Any], key: str) -> Any:
    """按字段名查找，不区分大小写"""
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return None


def _optional_str(data: Dict[str, Any], key: str) -> str:
    value = _lookup(data, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProtocolError(f"字段 {key} 必须是字符串")
    return value


@dataclass(frozen=True)
class SendMessage:
    """发送声明：随后跟随 DATA: 分隔行与 size 字节数据"""

    filename: str
    size: int

    command = ProtocolCommand.SEND

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command.value, "filename": self.filename, "size": self.size}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SendMessage":
        filename = _lookup(data, "filename")
        size = _lookup(data, "size")
        if not isinstance(filename, str) or not filename:
            raise ProtocolError("Send 命令缺少文件名")
        # bool 是 int 的子类，需要单独排除
        if not isinstance(size, int) or isinstance(size, bool):
            raise ProtocolError("Send 命令缺少文件大小")
        if size < 0:
            raise ProtocolError(f"文件大小不能为负数: {size}")
        return cls(filename, size)


@dataclass(frozen=True)
class RequestMessage:
    """请求对端发送 path 指向的文件"""

    path: str = ""

    command = ProtocolCommand.REQUEST

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command.value, "path": self.path}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequestMessage":
        return cls(_optional_str(data, "path"))


@dataclass(frozen=True)
class ListDirMessage:
    """请求对端列出 path 目录，空字符串表示根目录"""

    path: str = ""

    command = ProtocolCommand.LIST_DIR

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command.value, "path": self.path}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListDirMessage":
        return cls(_optional_str(data, "path"))


@dataclass(frozen=True)
class ErrorMessage:
    """错误回复"""

    error_message: str

    command = ProtocolCommand.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command.value, "errorMessage": self.error_message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorMessage":
        return cls(_optional_str(data, "errorMessage"))


ProtocolMessage = Union[SendMessage, RequestMessage, ListDirMessage, ErrorMessage]

_MESSAGE_TYPES = {
    ProtocolCommand.SEND: SendMessage,
    ProtocolCommand.REQUEST: RequestMessage,
    ProtocolCommand.LIST_DIR: ListDirMessage,
    ProtocolCommand.ERROR: ErrorMessage,
}


def message_from_dict(data: Any) -> ProtocolMessage:
    """
    将已解码的JSON对象转换为协议消息

    Args:
        data: json.loads 的结果

    Returns:
        对应命令的消息对象

    Raises:
        ProtocolError: 不是对象、命令未知或必需字段缺失时抛出
    """
    if not isinstance(data, dict):
        raise ProtocolError("头部必须是JSON对象")

    raw_command = _lookup(data, "command")
    try:
        command = ProtocolCommand(raw_command)
    except ValueError:
        raise ProtocolError(f"未知命令: {raw_command!r}") from None

    return _MESSAGE_TYPES[command].from_dict(data)


@dataclass(frozen=True)
class DirectoryEntry:
    """目录项"""

    type: EntryType
    name: str
    size: int = 0  # 目录固定为0
    modify_date: Optional[datetime] = None  # 最后修改时间

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "size": self.size,
            "modifyDate": self.modify_date.isoformat() if self.modify_date else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DirectoryEntry":
        if not isinstance(data, dict):
            raise ProtocolError("目录项必须是JSON对象")
        try:
            entry_type = EntryType(_lookup(data, "type"))
        except ValueError:
            raise ProtocolError(f"未知目录项类型: {_lookup(data, 'type')!r}") from None

        name = _lookup(data, "name")
        if not isinstance(name, str):
            raise ProtocolError("目录项缺少名称")

        size = _lookup(data, "size") or 0
        if not isinstance(size, int) or isinstance(size, bool):
            raise ProtocolError(f"目录项大小无效: {size!r}")

        raw_date = _lookup(data, "modifyDate")
        modify_date = None
        if raw_date:
            try:
                modify_date = datetime.fromisoformat(raw_date)
            except (TypeError, ValueError):
                raise ProtocolError(f"目录项时间无效: {raw_date!r}") from None

        return cls(entry_type, name, size, modify_date)


@dataclass
class DirectoryListing:
    """目录列表：目录在前，文件在后"""

    entries: List[DirectoryEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": [entry.to_dict() for entry in self.entries]}

    @classmethod
    def from_dict(cls, data: Any) -> "DirectoryListing":
        if not isinstance(data, dict):
            raise ProtocolError("目录列表必须是JSON对象")
        entries = _lookup(data, "entries")
        if not isinstance(entries, list):
            raise ProtocolError("目录列表缺少 entries 字段")
        return cls([DirectoryEntry.from_dict(item) for item in entries])

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
