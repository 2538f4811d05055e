"""
日志记录模块
============

提供统一的日志记录功能，支持彩色输出和函数调用追踪。
"""

import datetime
import logging
import sys
from typing import Dict, Optional
from pathlib import Path

import colorama

# Windows 控制台默认不解析ANSI颜色码
colorama.just_fix_windows_console()


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器"""

    # ANSI颜色代码
    COLORS = {
        'DEBUG': colorama.Fore.CYAN,
        'INFO': colorama.Style.RESET_ALL,
        'WARNING': colorama.Fore.YELLOW,
        'ERROR': colorama.Fore.RED,
        'CRITICAL': colorama.Fore.MAGENTA,
        'RESET': colorama.Style.RESET_ALL,
    }

    def format(self, record):
        """格式化日志记录"""
        caller_filename = Path(record.pathname).name if record.pathname else "unknown"
        caller_function = record.funcName or "unknown"
        caller_line = record.lineno

        # 添加毫秒精度的时间戳
        now = datetime.datetime.fromtimestamp(record.created)
        milliseconds = now.microsecond // 1000
        timestamp = now.strftime(f"%Y-%m-%d %H:%M:%S.{milliseconds:03d}")

        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        formatted_message = (
            f"{color}[{timestamp}] {record.getMessage()} "
            f"[{caller_filename}.{caller_function}():{caller_line}]{reset}"
        )

        if record.exc_info:
            formatted_message += "\n" + self.formatException(record.exc_info)

        return formatted_message


# 全局日志器字典
_loggers: Dict[str, logging.Logger] = {}


def setup_logger(
    name: str = "tunnel_file_transfer",
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    设置日志器

    Args:
        name: 日志器名称
        level: 日志级别
        log_file: 日志文件路径，None表示不写入文件
        console_output: 是否输出到控制台

    Returns:
        配置好的日志器
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 清除已有的处理器
    logger.handlers.clear()

    # 控制台处理器
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ColoredFormatter())
        logger.addHandler(console_handler)

    # 文件处理器
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    # 防止重复输出
    logger.propagate = False

    _loggers[name] = logger
    return logger


def get_logger(name: str = "tunnel_file_transfer") -> logging.Logger:
    """
    获取日志器实例

    Args:
        name: 日志器名称

    Returns:
        日志器实例
    """
    if name not in _loggers:
        _loggers[name] = setup_logger(name)
    return _loggers[name]


def configure_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    统一调整所有已创建日志器的级别和输出文件

    Args:
        level: 日志级别
        log_file: 日志文件路径（可选）
    """
    for name in list(_loggers):
        setup_logger(name, level=level, log_file=log_file)
