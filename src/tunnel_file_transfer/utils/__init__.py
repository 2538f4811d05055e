"""
工具模块
========

包含日志记录、进度显示等工具功能。
"""

from .logger import get_logger, setup_logger, configure_logging
from .progress import ProgressBar, TransferProgress, format_bytes

__all__ = [
    "get_logger",
    "setup_logger",
    "configure_logging",
    "ProgressBar",
    "TransferProgress",
    "format_bytes",
]
