"""
日志模块测试
============
"""

import logging

from tunnel_file_transfer.utils.logger import (
    ColoredFormatter,
    configure_logging,
    get_logger,
    setup_logger,
)


class TestLogger:
    """测试日志器配置"""

    def test_get_logger_is_cached(self):
        assert get_logger("tunnel_file_transfer.test") is get_logger("tunnel_file_transfer.test")

    def test_setup_logger_with_file(self, tmp_path):
        log_file = tmp_path / "out.log"
        logger = setup_logger("tunnel_file_transfer.file_test", log_file=str(log_file), console_output=False)

        logger.info("收到请求")
        for handler in logger.handlers:
            handler.flush()

        assert logger.propagate is False
        assert "收到请求" in log_file.read_text(encoding="utf-8")

        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_configure_logging_updates_levels(self):
        logger = get_logger("tunnel_file_transfer.level_test")
        configure_logging(logging.DEBUG)
        try:
            assert logger.level == logging.DEBUG
        finally:
            configure_logging(logging.INFO)

    def test_formatter_includes_location(self):
        record = logging.LogRecord(
            "x", logging.ERROR, "/src/dispatcher.py", 42, "连接丢失", None, None, func="handle"
        )

        text = ColoredFormatter().format(record)

        assert "连接丢失" in text
        assert "[dispatcher.py.handle():42]" in text
