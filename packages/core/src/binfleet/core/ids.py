"""IdentityAllocator -- 本地临时实体的防碰撞标识

ULID = 48 位毫秒时间戳 + 80 位随机数，同一毫秒内的连续调用
依靠随机部分区分。标识不持久化，也不保证跨刷新周期稳定。
"""

from collections.abc import Callable

from ulid import ULID


class IdentityAllocator:
    """分配本地标识（直播会话记录、本地通知等）"""

    def __init__(self, factory: Callable[[], str] | None = None) -> None:
        """
        Args:
            factory: 标识生成函数，None 时使用 ULID
        """
        self._factory = factory or (lambda: str(ULID()))

    def allocate(self) -> str:
        return self._factory()


_default_allocator = IdentityAllocator()


def allocate_id() -> str:
    """使用进程级默认分配器生成标识"""
    return _default_allocator.allocate()
