"""Domain Models 单元测试

测试内容：
1. Position 坐标范围校验
2. 进度与持续时间派生字段
3. RecurringSchedule 星期索引
4. 模型 JSON 序列化
"""

from datetime import UTC, datetime, timedelta

import pytest
from binfleet.core.models import (
    WEEKDAYS,
    DriverProfile,
    Notification,
    NotificationType,
    Position,
    RecurringSchedule,
    Task,
    format_duration,
    percent_complete,
)
from pydantic import ValidationError


class TestPosition:
    def test_valid_position(self):
        pos = Position(latitude=12.9716, longitude=77.5946)
        assert pos.as_pair() == (12.9716, 77.5946)

    @pytest.mark.parametrize(
        "latitude,longitude",
        [(90.1, 0.0), (-90.1, 0.0), (0.0, 180.1), (0.0, -180.1)],
    )
    def test_out_of_range_rejected(self, latitude: float, longitude: float):
        with pytest.raises(ValidationError):
            Position(latitude=latitude, longitude=longitude)

    def test_position_is_frozen(self):
        pos = Position(latitude=1.0, longitude=2.0)
        with pytest.raises(ValidationError):
            pos.latitude = 3.0


class TestDerivedSessionFields:
    @pytest.mark.parametrize(
        "bins,expected",
        [(0, 0), (1, 10), (10, 100), (11, 100), (50, 100)],
    )
    def test_percent_complete(self, bins: int, expected: int):
        """进度 = min(bins * 10, 100)"""
        assert percent_complete(bins) == expected

    def test_percent_complete_negative_clamped(self):
        assert percent_complete(-3) == 0

    def test_duration_under_an_hour(self):
        now = datetime(2025, 4, 28, 10, 0, tzinfo=UTC)
        assert format_duration(now - timedelta(minutes=45), now) == "45m"

    def test_duration_over_an_hour(self):
        now = datetime(2025, 4, 28, 10, 0, tzinfo=UTC)
        assert format_duration(now - timedelta(hours=2, minutes=5), now) == "2h 5m"

    def test_duration_without_start(self):
        assert format_duration(None, datetime.now(UTC)) == "0m"

    def test_duration_start_in_future(self):
        now = datetime(2025, 4, 28, 10, 0, tzinfo=UTC)
        assert format_duration(now + timedelta(minutes=5), now) == "0m"


class TestRecurringSchedule:
    def test_weekday_index(self):
        schedule = RecurringSchedule(
            schedule_id="1", area="Koramangala", day="wednesday", time="07:00"
        )
        assert schedule.weekday_index == WEEKDAYS.index("Wednesday")

    def test_unknown_day_sorts_last(self):
        schedule = RecurringSchedule(schedule_id="1", area="X", day="Someday", time="07:00")
        assert schedule.weekday_index == len(WEEKDAYS)


class TestModelSerialization:
    def test_task_roundtrip_json(self):
        task = Task(
            task_id="7",
            bin_id="47",
            position=Position(latitude=13.0, longitude=77.7),
            updated_at=datetime(2025, 4, 28, tzinfo=UTC),
        )
        restored = Task.model_validate_json(task.model_dump_json())
        assert restored == task
        assert restored.status == "pending"

    def test_notification_is_frozen(self):
        notification = Notification(
            notification_id="n1",
            type=NotificationType.SYSTEM,
            title="t",
            message="m",
            created_at=datetime(2025, 4, 28, tzinfo=UTC),
        )
        with pytest.raises(ValidationError):
            notification.is_read = True

    def test_profile_rating_bounds(self):
        with pytest.raises(ValidationError):
            DriverProfile(driver_id="1", name="Raj", rating=5.5)
