"""
进度显示模块
============

提供文件传输进度显示和字节大小、日期的可读化格式。

每个传输操作持有自己的 TransferProgress 实例，多个并发传输之间互不干扰。
"""

import sys
import time
from datetime import datetime
from typing import Callable, Optional, TextIO

from ..config.constants import PROGRESS_THRESHOLD


def format_bytes(size: float) -> str:
    """
    将字节数格式化为可读字符串

    Examples:
        >>> format_bytes(1536)
        '1.5 KB'
    """
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    index = 0
    value = float(size)
    while value >= 1024 and index < len(suffixes) - 1:
        value /= 1024
        index += 1
    return f"{value:.1f} {suffixes[index]}"


def format_bytes_per_second(rate: float) -> str:
    """将速率格式化为可读字符串"""
    suffixes = ["B/s", "KB/s", "MB/s", "GB/s"]
    index = 0
    value = float(rate)
    while value >= 1024 and index < len(suffixes) - 1:
        value /= 1024
        index += 1
    return f"{value:.1f} {suffixes[index]}"


def format_relative_date(date: datetime, now: Optional[datetime] = None) -> str:
    """
    将时间格式化为相对描述

    Args:
        date: 目标时间
        now: 当前时间（测试用）

    Returns:
        如 "just now"、"5m ago"、"yesterday"，一年以上返回日期
    """
    now = now or datetime.now()
    delta = now - date
    seconds = delta.total_seconds()
    days = seconds / 86400

    if days < 1:
        if seconds < 60:
            return "just now"
        if seconds < 3600:
            return f"{int(seconds // 60)}m ago"
        return f"{int(seconds // 3600)}h ago"
    if days < 2:
        return "yesterday"
    if days < 7:
        return f"{int(days)}d ago"
    if days < 30:
        return f"{int(days // 7)}w ago"
    if days < 365:
        return f"{int(days // 30)}mo ago"
    return date.strftime("%Y-%m-%d")


class SpeedMeter:
    """实时传输速率计算器"""

    def __init__(self, alpha: float = 0.3):
        """
        初始化速率计算器

        Args:
            alpha: EMA 平滑系数 (0.0 - 1.0)，值越大越接近瞬时速度
        """
        self.last_bytes = 0
        self.last_ts = time.time()
        self.ema_rate = 0.0  # 指数移动平均速率 (bytes/s)
        self.alpha = alpha

    def update(self, current_bytes: int) -> float:
        """
        更新并返回实时传输速率 (bytes/s)

        Args:
            current_bytes: 当前已传输的总字节数

        Returns:
            float: 实时传输速率 (bytes/s)
        """
        now = time.time()
        interval = now - self.last_ts

        if interval > 0.05:  # 至少等待50ms更新，避免频繁计算和抖动
            instant_rate = (current_bytes - self.last_bytes) / interval
            self.ema_rate = self.alpha * instant_rate + (1 - self.alpha) * self.ema_rate
            self.last_bytes = current_bytes
            self.last_ts = now

        return self.ema_rate


class ProgressBar:
    """简化版进度条显示器 (纯文本)"""

    def __init__(
        self,
        total: int = 100,
        width: int = 40,
        description: str = "",
        show_rate: bool = True,
        refresh_interval: float = 0.5,
        stream: Optional[TextIO] = None,
    ):
        """
        初始化进度条

        Args:
            total: 总字节数
            width: 进度条宽度（字符数）
            description: 进度条前的描述文字
            show_rate: 是否显示速率
            refresh_interval: 最小刷新间隔(秒)，减少重复绘制
            stream: 输出流，默认标准输出
        """
        self.total = total
        self.width = width
        self.description = description
        self.show_rate = show_rate
        self.refresh_interval = refresh_interval
        self.stream = stream or sys.stdout
        self.speed_meter = SpeedMeter()
        self.last_display_length = 0  # 记录上次显示字符串的长度，用于清空行
        self._last_draw_ts = 0.0
        self._finished = False

    def update(self, current: int) -> None:
        """
        更新进度

        Args:
            current: 当前已传输字节数
        """
        if self.total <= 0 or self._finished:
            return

        progress_percent = min(100.0, (current / self.total) * 100)
        rate = self.speed_meter.update(current)

        now_ts = time.time()
        # 若未到刷新间隔且非完成状态，直接返回
        if (
            progress_percent < 100.0
            and (now_ts - self._last_draw_ts) < self.refresh_interval
        ):
            return
        self._last_draw_ts = now_ts

        filled_width = int((progress_percent / 100) * self.width)
        bar = "█" * filled_width + "░" * (self.width - filled_width)

        display_parts = []
        if self.description:
            display_parts.append(f"{self.description} ")
        display_parts.append(f"[{bar}] {progress_percent:6.2f}%")
        if self.show_rate:
            display_parts.append(f" {format_bytes_per_second(rate)}")

        display_str = "".join(display_parts)

        # 用空格填充，覆盖旧内容
        current_len = len(display_str)
        padding = " " * max(0, self.last_display_length - current_len)

        self.stream.write("\r" + display_str + padding)
        self.stream.flush()
        self.last_display_length = current_len

        if progress_percent >= 100:
            self.stream.write("\n")
            self.stream.flush()
            self._finished = True

    def finish(self) -> None:
        """结束进度显示"""
        if not self._finished and self.last_display_length:
            self.stream.write("\n")
            self.stream.flush()
        self._finished = True


class TransferProgress:
    """
    单次传输的进度上下文

    只在载荷超过阈值且启用显示时创建进度条，否则回调为空，
    传输正确性不依赖于是否报告进度。
    """

    def __init__(
        self,
        total: int,
        description: str = "",
        enabled: bool = True,
        threshold: int = PROGRESS_THRESHOLD,
        stream: Optional[TextIO] = None,
    ):
        self.total = total
        self.transferred = 0
        self.start_time = time.time()
        self._bar: Optional[ProgressBar] = None
        if enabled and total > threshold:
            self._bar = ProgressBar(total=total, description=description, stream=stream)

    @property
    def callback(self) -> Optional[Callable[[int], None]]:
        """供传输引擎调用的进度回调，不显示进度时为None"""
        return self.update if self._bar is not None else None

    def update(self, transferred: int) -> None:
        self.transferred = transferred
        if self._bar is not None:
            self._bar.update(transferred)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.finish()

    @property
    def elapsed(self) -> float:
        return time.time() - self.start_time

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
