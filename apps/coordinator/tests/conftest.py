"""apps/coordinator 测试配置"""

import asyncio
import itertools
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from binfleet.core.ids import IdentityAllocator
from binfleet.coordinator import CoordinationEngine

FIXED_NOW = datetime(2025, 4, 28, 9, 30, tzinfo=UTC)


class FakeClock:
    """可控时钟：sleep 只记录时长并让出控制权"""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.current = start
        self.sleeps: list[float] = []
        self._mono = 0.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self._mono

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._mono += seconds
        await asyncio.sleep(0)


async def _wait_until(predicate, max_ticks: int = 500) -> None:
    """让出事件循环直到条件成立"""
    for _ in range(max_ticks):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fleet_api() -> AsyncMock:
    """FleetApi 替身，默认返回一组正常数据"""
    api = AsyncMock()
    api.invalidate_session = MagicMock()
    api.fetch_driver_profile.return_value = {
        "id": 42,
        "name": "Raj Kumar",
        "vehicle_info": "Truck #05",
        "total_collections": 12,
        "rating": 4.6,
    }
    api.fetch_tasks.return_value = [
        {
            "id": 7,
            "bin_id": 47,
            "location": "Krishnarajapuram, Main Road",
            "status": "pending",
            "priority": "high",
            "latitude": 13.0170,
            "longitude": 77.7044,
        }
    ]
    api.fetch_active_live_sessions.return_value = [
        {
            "id": 3,
            "driver_name": "Raj Kumar",
            "start_time": "2025-04-28T09:00:00Z",
            "bins_collected": 2,
            "coordinates": {"latitude": 12.97, "longitude": 77.75},
        }
    ]
    api.fetch_recurring_schedules.return_value = [
        {"id": 1, "area": "Whitefield", "day": "Monday", "time": "08:00", "status": "active"}
    ]
    api.fetch_notifications.return_value = [
        {
            "id": 100,
            "type": "task_assigned",
            "title": "New Task Assigned",
            "message": "Bin #47",
            "created_at": "2025-04-28T09:00:00Z",
            "is_read": False,
        }
    ]
    api.update_task_status.return_value = {"success": True}
    api.schedule_task_collection.return_value = {"id": 501}
    api.mark_notification_read.return_value = {"success": True}
    api.update_driver_location.return_value = {"success": True}
    api.cancel_task_schedule.return_value = {"success": True}
    api.start_stream.return_value = {"success": True, "streamId": 31}
    api.stop_stream.return_value = {"success": True}
    api.fetch_stream_status.return_value = None
    return api


@pytest.fixture
def allocator() -> IdentityAllocator:
    counter = itertools.count(1)
    return IdentityAllocator(factory=lambda: f"id-{next(counter):04d}")


@pytest.fixture
def engine(fleet_api, clock, allocator) -> CoordinationEngine:
    return CoordinationEngine(fleet_api, clock=clock, allocator=allocator)
