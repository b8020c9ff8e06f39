"""时钟与取消令牌

RefreshScheduler 只通过 Clock 读取时间和休眠，测试中可替换为可控时钟。
"""

import asyncio
import time
from datetime import datetime
from typing import Protocol

from binfleet.core.timeutil import utcnow


class Clock(Protocol):
    def now(self) -> datetime:
        """当前 UTC 时间"""
        ...

    def monotonic(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """基于系统时间和 asyncio.sleep 的默认时钟"""

    def now(self) -> datetime:
        return utcnow()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class CancellationToken:
    """刷新周期的存活标记

    调度器停止时取消；迟到的拉取结果在应用前检查 cancelled 并丢弃。
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
