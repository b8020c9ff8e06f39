"""Schedule Domain Model -- 周期排班与合并后的日程条目"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import ScheduleFrequency, ScheduleStatus, TaskPriority

WEEKDAYS: list[str] = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]


class RecurringSchedule(BaseModel):
    """管理员定义的周期收运路线，司机和市民只读"""

    schedule_id: str = Field(description="排班 ID")
    area: str = Field(description="区域")
    day: str = Field(description="星期几（英文全称）")
    time: str = Field(description="时间 HH:MM")
    frequency: ScheduleFrequency = Field(default=ScheduleFrequency.WEEKLY)
    assigned_driver: str = Field(default="", description="负责司机")
    driver_id: str | None = Field(default=None, description="司机 ID")
    status: ScheduleStatus = Field(default=ScheduleStatus.ACTIVE)
    bin_ids: list[str] = Field(default_factory=list, description="覆盖的垃圾桶")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    created_at: datetime | None = Field(default=None)
    display_status: str = Field(default="pending", description="展示状态分类")

    @property
    def weekday_index(self) -> int:
        try:
            return WEEKDAYS.index(self.day.capitalize())
        except ValueError:
            return len(WEEKDAYS)


class AgendaEntry(BaseModel):
    """合并后的日程展示行，预约优先于周期排班"""

    kind: str = Field(description="appointment / recurring")
    source_id: str = Field(description="预约对应的 task_id 或排班 ID")
    label: str = Field(description="展示标题")
    when: str = Field(description="展示时间")
    sort_key: tuple[int, str] = Field(description="排序键")
