#!/usr/bin/env python3
"""
配置类测试
==========

这个文件测试 tunnel_file_transfer.config.settings 模块中的配置类。

测试内容包括：
- 文件大小字符串解析
- ServerConfig / ClientConfig 的默认值和参数验证
- 从环境变量读取客户端端口
"""

import pytest
import sys
from pathlib import Path

# 添加项目根目录到Python路径
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tunnel_file_transfer.config.constants import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PORT,
    PORT_ENV_VAR,
)
from tunnel_file_transfer.config.settings import (
    ClientConfig,
    ServerConfig,
    parse_file_size,
)


class TestParseFileSize:
    """测试文件大小解析"""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("4096", 4096),
            ("1KB", 1024),
            ("100MB", 100 * 1024 * 1024),
            ("1gb", 1024 * 1024 * 1024),
            (" 2 MB ", 2 * 1024 * 1024),
        ],
    )
    def test_valid_sizes(self, text, expected):
        """测试有效的大小字符串"""
        assert parse_file_size(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", "abc", "10TB", "0", "-5MB", "1.5GB"])
    def test_invalid_sizes(self, text):
        """测试无效的大小字符串"""
        with pytest.raises(ValueError):
            parse_file_size(text)


class TestServerConfig:
    """
    测试ServerConfig配置类

    服务端所有连接共享同一个只读配置
    """

    def test_default_values(self):
        """测试默认值"""
        config = ServerConfig()

        assert config.port == DEFAULT_PORT
        assert config.host == "127.0.0.1"
        assert config.serve_dir == Path.home() / "Downloads"
        assert config.max_file_size == DEFAULT_MAX_FILE_SIZE
        assert config.allow_overwrite is True
        assert config.show_progress is True

    def test_serve_dir_expands_user(self):
        """测试目录中的 ~ 会被展开"""
        config = ServerConfig(serve_dir="~/shared")
        assert config.serve_dir == Path.home() / "shared"

    def test_port_zero_allowed(self):
        """测试端口0（由系统分配）是允许的"""
        assert ServerConfig(port=0).port == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"port": -1},
            {"port": 65536},
            {"max_file_size": 0},
            {"grace_period": -1.0},
        ],
    )
    def test_invalid_values(self, kwargs):
        """测试无效参数抛出ValueError"""
        with pytest.raises(ValueError):
            ServerConfig(**kwargs)

    def test_ensure_serve_dir_creates_directory(self, tmp_path):
        """测试服务目录不存在时会被创建"""
        target = tmp_path / "a" / "b"
        config = ServerConfig(serve_dir=target)

        resolved = config.ensure_serve_dir()

        assert target.is_dir()
        assert resolved == target.resolve()


class TestClientConfig:
    """测试ClientConfig配置类"""

    def test_default_values(self):
        """测试默认超时"""
        config = ClientConfig()

        assert config.port == DEFAULT_PORT
        assert config.response_timeout == 3.0
        assert config.data_timeout == 1.0
        assert config.write_timeout == 1.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"port": 0},
            {"response_timeout": 0},
            {"data_timeout": -1},
            {"write_timeout": 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        """测试无效参数抛出ValueError"""
        with pytest.raises(ValueError):
            ClientConfig(**kwargs)

    def test_from_env_reads_port(self):
        """测试从环境变量读取端口"""
        config = ClientConfig.from_env({PORT_ENV_VAR: "40000"})
        assert config.port == 40000

    def test_from_env_default_port(self):
        """测试环境变量缺失时使用默认端口"""
        config = ClientConfig.from_env({})
        assert config.port == DEFAULT_PORT

    def test_from_env_explicit_port_wins(self):
        """测试显式传入的端口优先于环境变量"""
        config = ClientConfig.from_env({PORT_ENV_VAR: "40000"}, port=41000)
        assert config.port == 41000

    def test_from_env_invalid_port(self):
        """测试无效的端口环境变量"""
        with pytest.raises(ValueError, match=PORT_ENV_VAR):
            ClientConfig.from_env({PORT_ENV_VAR: "not-a-port"})
