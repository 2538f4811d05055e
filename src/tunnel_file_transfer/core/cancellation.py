"""
取消令牌模块
============

为所有阻塞调用提供统一的取消信号，支持派生带超时的子作用域。
"""

import threading
import time
from typing import Optional, Type

from .exceptions import OperationCancelled


class CancellationToken:
    """
    取消令牌

    父令牌被取消时所有子令牌同时视为取消；子令牌可带截止时间，
    到期后自动视为取消，并抛出创建时指定的异常类型。
    """

    def __init__(
        self,
        parent: Optional["CancellationToken"] = None,
        timeout: Optional[float] = None,
        timeout_error: Type[OperationCancelled] = OperationCancelled,
    ):
        """
        初始化取消令牌

        Args:
            parent: 父令牌（可选）
            timeout: 超时时间(秒)，None表示不限时
            timeout_error: 超时时抛出的异常类型
        """
        self._event = threading.Event()
        self._parent = parent
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._timeout_error = timeout_error
        self.reason = ""

    def cancel(self, reason: str = "操作已取消") -> None:
        """取消本令牌，派生的子令牌随之视为取消"""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def expired(self) -> bool:
        """截止时间是否已过"""
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set() or self.expired:
            return True
        return self._parent is not None and self._parent.is_cancelled

    def remaining(self) -> Optional[float]:
        """
        获取距离截止时间的剩余秒数

        Returns:
            剩余秒数，本令牌及所有祖先都没有截止时间时返回None
        """
        candidates = []
        if self._deadline is not None:
            candidates.append(max(0.0, self._deadline - time.monotonic()))
        if self._parent is not None:
            parent_remaining = self._parent.remaining()
            if parent_remaining is not None:
                candidates.append(parent_remaining)
        return min(candidates) if candidates else None

    def raise_if_cancelled(self) -> None:
        """
        检查取消状态

        Raises:
            OperationCancelled: 父作用域或本令牌被取消时抛出
            timeout_error: 本令牌到期时抛出创建时指定的超时异常
        """
        if self._parent is not None:
            self._parent.raise_if_cancelled()
        if self._event.is_set():
            raise OperationCancelled(self.reason)
        if self.expired:
            raise self._timeout_error("操作超时")

    def child(
        self,
        timeout: Optional[float] = None,
        timeout_error: Type[OperationCancelled] = OperationCancelled,
    ) -> "CancellationToken":
        """
        派生子令牌

        Args:
            timeout: 子作用域超时时间(秒)
            timeout_error: 子作用域超时时抛出的异常类型

        Returns:
            新的子令牌
        """
        return CancellationToken(self, timeout, timeout_error)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        阻塞等待取消信号

        Args:
            timeout: 最长等待时间(秒)

        Returns:
            在等待期间被取消返回True
        """
        end = None if timeout is None else time.monotonic() + timeout
        while not self.is_cancelled:
            slice_ = 0.1 if end is None else min(0.1, end - time.monotonic())
            if slice_ <= 0:
                return False
            self._event.wait(slice_)
        return True
