"""IdentityAllocator 单元测试"""

from binfleet.core.ids import IdentityAllocator, allocate_id
from ulid import ULID


def test_rapid_calls_do_not_collide():
    """同一毫秒内的连续调用依靠随机部分区分"""
    allocator = IdentityAllocator()
    ids = [allocator.allocate() for _ in range(1000)]
    assert len(set(ids)) == len(ids)


def test_default_ids_are_ulids():
    value = allocate_id()
    assert len(value) == 26
    assert str(ULID.from_str(value)) == value


def test_custom_factory():
    allocator = IdentityAllocator(factory=lambda: "fixed")
    assert allocator.allocate() == "fixed"
