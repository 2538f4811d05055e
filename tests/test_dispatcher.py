#!/usr/bin/env python3
"""
连接分派器测试
==============

测试 tunnel_file_transfer.transfer.dispatcher 模块的单连接处理流程。

客户端的全部请求字节预先写入 socketpair 并关闭写端，
分派器在当前线程中同步处理，随后读取它写回的全部回复。
"""

import json
import os
import socket
from pathlib import Path

import pytest

from tunnel_file_transfer.config.settings import ServerConfig
from tunnel_file_transfer.core.connection import SocketConnection
from tunnel_file_transfer.core.exceptions import (
    NotFound,
    PathSecurityError,
    ProtocolError,
    SizeLimitExceeded,
    TransferIncompleteError,
)
from tunnel_file_transfer.transfer.dispatcher import ConnectionDispatcher, DispatchState


def _header(**fields) -> bytes:
    return json.dumps(fields).encode("utf-8") + b"\n"


def _read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        data = sock.recv(65536)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


def run_dispatcher(config: ServerConfig, request: bytes):
    """
    执行一次完整的连接处理

    Returns:
        (分派器, handle()返回值, 回复字节)
    """
    client, server = socket.socketpair()
    with client:
        client.sendall(request)
        client.shutdown(socket.SHUT_WR)

        dispatcher = ConnectionDispatcher(SocketConnection(server), config)
        result = dispatcher.handle()
        response = _read_all(client)
    return dispatcher, result, response


@pytest.fixture
def config(tmp_path):
    serve_dir = tmp_path / "served"
    serve_dir.mkdir()
    return ServerConfig(port=0, serve_dir=serve_dir, show_progress=False)


class TestListDir:
    """测试目录列表命令"""

    def test_list_root(self, config):
        (config.serve_dir / "docs").mkdir()
        (config.serve_dir / "a.txt").write_bytes(b"abc")

        dispatcher, result, response = run_dispatcher(
            config, _header(command="ListDir", path="")
        )

        assert result is True
        assert dispatcher.state is DispatchState.CLOSED
        assert response.endswith(b"\n")
        entries = json.loads(response)["entries"]
        assert [(e["type"], e["name"], e["size"]) for e in entries] == [
            ("Dir", "docs", 0),
            ("File", "a.txt", 3),
        ]

    def test_list_traversal_closes_without_reply(self, config):
        dispatcher, result, response = run_dispatcher(
            config, _header(command="ListDir", path="../")
        )

        assert result is False
        assert isinstance(dispatcher.error, PathSecurityError)
        assert response == b""


class TestRequest:
    """测试文件请求命令（本端发送）"""

    def test_request_existing_file(self, config):
        payload = b"\x00binary\ncontent\xff"
        (config.serve_dir / "docs").mkdir()
        (config.serve_dir / "docs" / "f.bin").write_bytes(payload)

        _, result, response = run_dispatcher(
            config, _header(command="Request", path="docs/f.bin")
        )

        header, marker, body = response.split(b"\n", 2)
        assert result is True
        assert json.loads(header) == {"command": "Send", "filename": "f.bin", "size": len(payload)}
        assert marker == b"DATA:"
        assert body == payload

    def test_request_empty_file(self, config):
        (config.serve_dir / "empty").write_bytes(b"")

        _, result, response = run_dispatcher(config, _header(command="Request", path="empty"))

        assert result is True
        assert response == b'{"command": "Send", "filename": "empty", "size": 0}\nDATA:\n'

    def test_request_missing_file(self, config):
        dispatcher, result, response = run_dispatcher(
            config, _header(command="Request", path="missing.txt")
        )

        assert result is False
        assert dispatcher.state is DispatchState.ERROR_REPORTED
        assert isinstance(dispatcher.error, NotFound)
        assert json.loads(response) == {
            "command": "Error",
            "errorMessage": "File not found: missing.txt",
        }

    def test_request_directory_is_not_found(self, config):
        (config.serve_dir / "docs").mkdir()
        _, _, response = run_dispatcher(config, _header(command="Request", path="docs"))
        assert json.loads(response)["errorMessage"] == "File not found: docs"

    def test_request_traversal(self, config, tmp_path):
        (tmp_path / "secret.txt").write_text("secret")

        dispatcher, result, response = run_dispatcher(
            config, _header(command="Request", path="../secret.txt")
        )

        assert result is False
        assert isinstance(dispatcher.error, PathSecurityError)
        reply = json.loads(response)
        assert reply["command"] == "Error"
        assert reply["errorMessage"].startswith("Access denied")
        assert b"DATA:" not in response

    def test_request_too_large(self, config):
        config.max_file_size = 10
        (config.serve_dir / "big.bin").write_bytes(b"x" * 20)

        dispatcher, result, response = run_dispatcher(
            config, _header(command="Request", path="big.bin")
        )

        assert result is False
        assert isinstance(dispatcher.error, SizeLimitExceeded)
        reply = json.loads(response)
        assert reply["errorMessage"].startswith("File too large")
        assert b"DATA:" not in response

    def test_request_symlink_uses_requested_name(self, config):
        """测试通过符号链接请求时回复请求中的文件名"""
        (config.serve_dir / "real.txt").write_bytes(b"abc")
        os.symlink(config.serve_dir / "real.txt", config.serve_dir / "alias.txt")

        _, result, response = run_dispatcher(config, _header(command="Request", path="alias.txt"))

        header = json.loads(response.split(b"\n", 1)[0])
        assert result is True
        assert header == {"command": "Send", "filename": "alias.txt", "size": 3}

    def test_request_null_byte_denied(self, config):
        """测试路径包含空字符时回复拒绝访问而不是直接断开"""
        dispatcher, result, response = run_dispatcher(
            config, _header(command="Request", path="a\x00b.txt")
        )

        assert result is False
        assert json.loads(response)["errorMessage"].startswith("Access denied")
        assert isinstance(dispatcher.error, PathSecurityError)


class TestSend:
    """测试文件上传命令（本端接收）"""

    def test_send_saves_file(self, config):
        payload = b"hello\nworld"
        request = _header(command="Send", filename="notes.txt", size=len(payload)) + b"DATA:\n" + payload

        _, result, response = run_dispatcher(config, request)

        assert result is True
        assert response == b""
        assert (config.serve_dir / "notes.txt").read_bytes() == payload
        assert not (config.serve_dir / "notes.txt.tmp").exists()

    def test_send_strips_directories_from_filename(self, config, tmp_path):
        request = _header(command="Send", filename="../../evil.txt", size=3) + b"DATA:\nabc"

        _, result, _ = run_dispatcher(config, request)

        assert result is True
        assert (config.serve_dir / "evil.txt").read_bytes() == b"abc"
        assert not (tmp_path / "evil.txt").exists()

    def test_send_empty_file(self, config):
        request = _header(command="Send", filename="empty.txt", size=0) + b"DATA:\n"

        _, result, _ = run_dispatcher(config, request)

        assert result is True
        assert (config.serve_dir / "empty.txt").read_bytes() == b""

    def test_send_without_overwrite_renames(self, config):
        config.allow_overwrite = False
        (config.serve_dir / "report.txt").write_bytes(b"old")
        request = _header(command="Send", filename="report.txt", size=3) + b"DATA:\nnew"

        _, result, _ = run_dispatcher(config, request)

        assert result is True
        assert (config.serve_dir / "report.txt").read_bytes() == b"old"
        assert (config.serve_dir / "report_1.txt").read_bytes() == b"new"

    def test_send_overwrites_by_default(self, config):
        (config.serve_dir / "report.txt").write_bytes(b"old")
        request = _header(command="Send", filename="report.txt", size=3) + b"DATA:\nnew"

        run_dispatcher(config, request)

        assert (config.serve_dir / "report.txt").read_bytes() == b"new"

    def test_send_too_large_rejected_before_data(self, config):
        config.max_file_size = 4
        request = _header(command="Send", filename="big.bin", size=5) + b"DATA:\n12345"

        dispatcher, result, response = run_dispatcher(config, request)

        assert result is False
        assert isinstance(dispatcher.error, SizeLimitExceeded)
        assert response == b""
        assert list(Path(config.serve_dir).iterdir()) == []

    def test_send_partial_leaves_nothing(self, config):
        request = _header(command="Send", filename="part.bin", size=1000) + b"DATA:\n" + b"x" * 100

        dispatcher, result, _ = run_dispatcher(config, request)

        assert result is False
        assert isinstance(dispatcher.error, TransferIncompleteError)
        assert dispatcher.error.bytes_received == 100
        assert list(Path(config.serve_dir).iterdir()) == []

    def test_send_missing_data_marker(self, config):
        request = _header(command="Send", filename="a.txt", size=3) + b"abc\n"

        dispatcher, result, _ = run_dispatcher(config, request)

        assert result is False
        assert isinstance(dispatcher.error, ProtocolError)
        assert list(Path(config.serve_dir).iterdir()) == []

    def test_send_invalid_filename(self, config):
        request = _header(command="Send", filename="dir/", size=1) + b"DATA:\nx"

        dispatcher, result, _ = run_dispatcher(config, request)

        assert result is False
        assert isinstance(dispatcher.error, ValueError)


class TestMalformed:
    """测试异常输入"""

    def test_disconnect_before_header(self, config):
        dispatcher, result, response = run_dispatcher(config, b"")

        assert result is True
        assert dispatcher.state is DispatchState.CLOSED
        assert response == b""

    def test_invalid_json(self, config):
        dispatcher, result, _ = run_dispatcher(config, b"{broken\n")

        assert result is False
        assert isinstance(dispatcher.error, ProtocolError)

    def test_unknown_command(self, config):
        dispatcher, result, _ = run_dispatcher(config, _header(command="Delete", path="a"))

        assert result is False
        assert isinstance(dispatcher.error, ProtocolError)

    def test_error_message_from_client_is_rejected(self, config):
        dispatcher, result, _ = run_dispatcher(config, _header(command="Error", errorMessage="x"))

        assert result is False
        assert isinstance(dispatcher.error, ProtocolError)

    def test_connection_always_closed(self, config):
        dispatcher, _, _ = run_dispatcher(config, b"{broken\n")
        assert not dispatcher.connection.is_open
