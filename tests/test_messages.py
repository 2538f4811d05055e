"""
协议消息测试
============

测试各命令消息的字段校验、大小写不敏感解析以及目录列表结构。
"""

from datetime import datetime

import pytest

from tunnel_file_transfer.config.constants import EntryType, ProtocolCommand
from tunnel_file_transfer.core.exceptions import ProtocolError
from tunnel_file_transfer.core.messages import (
    DirectoryEntry,
    DirectoryListing,
    ErrorMessage,
    ListDirMessage,
    RequestMessage,
    SendMessage,
    message_from_dict,
)


class TestMessageToDict:
    """测试消息序列化字段"""

    def test_send_message(self):
        assert SendMessage("a.txt", 12).to_dict() == {
            "command": "Send",
            "filename": "a.txt",
            "size": 12,
        }

    def test_request_message(self):
        assert RequestMessage("docs/a.txt").to_dict() == {
            "command": "Request",
            "path": "docs/a.txt",
        }

    def test_list_dir_message_default_root(self):
        assert ListDirMessage().to_dict() == {"command": "ListDir", "path": ""}

    def test_error_message(self):
        assert ErrorMessage("File not found: x").to_dict() == {
            "command": "Error",
            "errorMessage": "File not found: x",
        }


class TestMessageFromDict:
    """测试从JSON对象解析消息"""

    def test_dispatch_by_command(self):
        """测试按命令字选择消息类型"""
        message = message_from_dict({"command": "Request", "path": "a.txt"})
        assert message == RequestMessage("a.txt")
        assert message.command is ProtocolCommand.REQUEST

    def test_keys_are_case_insensitive(self):
        """测试字段名不区分大小写"""
        message = message_from_dict({"Command": "Send", "FileName": "b.bin", "SIZE": 3})
        assert message == SendMessage("b.bin", 3)

    def test_missing_path_means_root(self):
        """测试缺少path字段时视为空路径"""
        assert message_from_dict({"command": "ListDir"}) == ListDirMessage("")

    def test_missing_error_message(self):
        """测试缺少errorMessage字段"""
        assert message_from_dict({"command": "Error"}) == ErrorMessage("")

    @pytest.mark.parametrize(
        "data",
        [
            ["command", "Send"],
            {"command": "Delete"},
            {"command": None},
            {"filename": "a", "size": 1},
            {"command": "Send", "size": 1},
            {"command": "Send", "filename": "", "size": 1},
            {"command": "Send", "filename": "a"},
            {"command": "Send", "filename": "a", "size": -1},
            {"command": "Send", "filename": "a", "size": True},
            {"command": "Send", "filename": "a", "size": "10"},
            {"command": "Request", "path": 5},
        ],
    )
    def test_invalid_messages(self, data):
        """测试无效的头部对象"""
        with pytest.raises(ProtocolError):
            message_from_dict(data)

    def test_zero_size_send(self):
        """测试大小为0的Send是有效的"""
        assert message_from_dict({"command": "Send", "filename": "e", "size": 0}).size == 0


class TestDirectoryListing:
    """测试目录列表结构"""

    def test_listing_shape(self):
        """测试目录列表的线上结构"""
        modified = datetime(2024, 5, 1, 12, 30, 0)
        listing = DirectoryListing(
            [
                DirectoryEntry(EntryType.DIR, "sub", 0, modified),
                DirectoryEntry(EntryType.FILE, "a.txt", 42, modified),
            ]
        )

        assert listing.to_dict() == {
            "entries": [
                {"type": "Dir", "name": "sub", "size": 0, "modifyDate": "2024-05-01T12:30:00"},
                {"type": "File", "name": "a.txt", "size": 42, "modifyDate": "2024-05-01T12:30:00"},
            ]
        }
        assert len(listing) == 2
        assert [entry.name for entry in listing] == ["sub", "a.txt"]

    def test_from_dict(self):
        """测试解析目录列表"""
        listing = DirectoryListing.from_dict(
            {"Entries": [{"Type": "File", "Name": "x", "Size": 5, "ModifyDate": "2024-01-02T03:04:05"}]}
        )

        entry = listing.entries[0]
        assert entry.type is EntryType.FILE
        assert entry.size == 5
        assert entry.modify_date == datetime(2024, 1, 2, 3, 4, 5)

    def test_empty_listing(self):
        assert DirectoryListing().to_dict() == {"entries": []}

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {},
            {"entries": "nope"},
            {"entries": [{"type": "Link", "name": "x"}]},
            {"entries": [{"type": "File"}]},
            {"entries": [{"type": "File", "name": "x", "modifyDate": "yesterday"}]},
        ],
    )
    def test_invalid_listing(self, data):
        """测试无效的目录列表"""
        with pytest.raises(ProtocolError):
            DirectoryListing.from_dict(data)
