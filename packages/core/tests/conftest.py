"""packages/core 测试配置 -- 核心层 fixture"""

import itertools
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from binfleet.core.ids import IdentityAllocator
from binfleet.core.store import (
    LiveSessionRegistry,
    NotificationDispatcher,
    ScheduleCoordinator,
    SnapshotCache,
    TaskStore,
)

FIXED_NOW = datetime(2025, 4, 28, 9, 30, tzinfo=UTC)


class FakeNow:
    """可推进的时间来源"""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.value = start

    def __call__(self) -> datetime:
        return self.value


@pytest.fixture
def now() -> FakeNow:
    return FakeNow()


@pytest.fixture
def allocator() -> IdentityAllocator:
    """可预测的顺序标识"""
    counter = itertools.count(1)
    return IdentityAllocator(factory=lambda: f"id-{next(counter):04d}")


@pytest.fixture
def sync_api() -> AsyncMock:
    """TaskStore 远端同步接口"""
    api = AsyncMock()
    api.update_task_status.return_value = {"success": True}
    api.schedule_task_collection.return_value = {"id": 501, "status": "scheduled"}
    api.reschedule_task_collection.return_value = {"success": True}
    api.cancel_task_schedule.return_value = {"success": True}
    return api


@pytest.fixture
def dispatcher(allocator, now) -> NotificationDispatcher:
    return NotificationDispatcher(allocator=allocator, now=now)


@pytest.fixture
def task_store(dispatcher, sync_api, allocator, now) -> TaskStore:
    return TaskStore(dispatcher, api=sync_api, allocator=allocator, now=now)


@pytest.fixture
def registry(allocator, now) -> LiveSessionRegistry:
    return LiveSessionRegistry(allocator=allocator, now=now)


@pytest.fixture
def schedule_coordinator(task_store, dispatcher, now) -> ScheduleCoordinator:
    return ScheduleCoordinator(task_store, dispatcher, now=now)


@pytest.fixture
def raw_tasks() -> list[dict]:
    return [
        {
            "id": 7,
            "bin_id": 47,
            "location": "Krishnarajapuram, Main Road",
            "status": "pending",
            "priority": "medium",
            "scheduled_time": "2025-04-28T10:00:00Z",
            "latitude": 13.0170,
            "longitude": 77.7044,
        },
        {
            "id": 8,
            "bin_id": 89,
            "location": "Whitefield, Near Mall",
            "status": "in-progress",
            "priority": "high",
            "scheduled_time": "2025-04-28T11:00:00Z",
            "latitude": 12.9698,
            "longitude": 77.7500,
        },
        {
            "id": 9,
            "bin_id": 12,
            "location": "Indiranagar",
            "status": "completed",
            "priority": "low",
            "completed_at": "2025-04-28T08:00:00Z",
        },
    ]


@pytest_asyncio.fixture
async def snapshot_cache(tmp_path: Path) -> AsyncGenerator[SnapshotCache, None]:
    """临时 SQLite 快照缓存"""
    cache = await SnapshotCache.open(tmp_path / "cache" / "snapshots.db")
    yield cache
    await cache.close()
