"""ScheduleCoordinator -- 周期排班与司机预约的合并

周期排班由管理员维护，这里只读投影并附加展示分类；
司机预约委托 TaskStore 附加到任务上，再通知报告该桶的市民；
改期和取消同样通知市民。
不做重复预约检测：同一司机可以在不同任务上提出时间重叠的预约。
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from ..exceptions import NotFoundError
from ..models.enums import (
    TERMINAL_STATES,
    NotificationAudience,
    NotificationPriority,
    NotificationType,
    ScheduleFrequency,
    ScheduleStatus,
    TaskPriority,
)
from ..models.schedule import AgendaEntry, RecurringSchedule
from ..models.task import MutationResult, Task
from ..samples import sample_recurring_schedules
from ..timeutil import parse_timestamp, utcnow
from .notification_dispatcher import NotificationDispatcher
from .task_store import TaskStore, validate_appointment

log = structlog.get_logger()

_DISPLAY_STATUSES = {"active", "inactive", "scheduled", "completed"}


def schedule_display_status(status: str) -> str:
    """排班展示分类，未知状态归为 pending"""
    return status if status in _DISPLAY_STATUSES else "pending"


def _place(task: Task) -> str:
    return task.location or f"Bin #{task.bin_id}"


class ScheduleCoordinator:
    """排班协调器"""

    def __init__(
        self,
        task_store: TaskStore,
        dispatcher: NotificationDispatcher,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._task_store = task_store
        self._dispatcher = dispatcher
        self._now = now
        self._recurring: list[RecurringSchedule] = []
        self._loaded = False
        self._degraded = False

    @property
    def recurring(self) -> list[RecurringSchedule]:
        return list(self._recurring)

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def loaded(self) -> bool:
        return self._loaded

    def merge_recurring(
        self,
        admin_schedules: list[dict[str, Any]],
    ) -> list[RecurringSchedule]:
        """只读投影：解析管理员排班并附加展示分类，不修改内部状态"""
        return [self._raw_to_schedule(raw) for raw in admin_schedules]

    def refresh_recurring(
        self,
        admin_schedules: list[dict[str, Any]],
        degraded: bool = False,
    ) -> list[RecurringSchedule]:
        """整体替换已知的周期排班"""
        schedules = self.merge_recurring(admin_schedules)
        self._recurring = schedules
        self._loaded = True
        self._degraded = degraded
        log.info(
            "recurring_schedules_refreshed",
            schedule_count=len(schedules),
            degraded=degraded,
        )
        return self.recurring

    def fallback_recurring(self, reason: str) -> list[RecurringSchedule]:
        """上游不可达：保留已有排班；从未加载过时使用演示排班"""
        if self._loaded:
            self._degraded = True
            log.warning("schedules_degraded_keep_previous", reason=reason)
            return self.recurring

        log.warning("schedules_degraded_use_sample", reason=reason)
        return self.refresh_recurring(
            sample_recurring_schedules(self._now()), degraded=True
        )

    def toggle_recurring(self, schedule_id: str | int) -> RecurringSchedule:
        """在 active / inactive 之间切换

        Raises:
            NotFoundError: 排班不存在
        """
        schedule_id = str(schedule_id)
        for index, schedule in enumerate(self._recurring):
            if schedule.schedule_id != schedule_id:
                continue
            new_status = (
                ScheduleStatus.INACTIVE
                if schedule.status == ScheduleStatus.ACTIVE
                else ScheduleStatus.ACTIVE
            )
            updated = schedule.model_copy(
                update={
                    "status": new_status,
                    "display_status": schedule_display_status(new_status.value),
                }
            )
            self._recurring[index] = updated
            log.info(
                "recurring_schedule_toggled",
                schedule_id=schedule_id,
                status=new_status.value,
            )
            return updated

        raise NotFoundError(f"Schedule not found: {schedule_id}")

    async def propose_appointment(
        self,
        task_id: str | int,
        appointment_date: str,
        time_slot: str,
    ) -> MutationResult:
        """司机提出预约：校验 -> 附加到任务 -> 通知市民

        市民身份解析由外部完成，这里只生成 citizen 作用域的通知。
        预约结果在 result.task.appointment 中。

        Raises:
            InputValidationError: 日期或时间段缺失/格式错误
            TaskNotFoundError: 任务不存在
        """
        validate_appointment(appointment_date, time_slot)
        existing = self._task_store.get_task(task_id)
        rescheduled = existing is not None and existing.appointment is not None
        result = await self._task_store.attach_appointment(
            task_id, appointment_date, time_slot
        )
        if not result.changed:
            return result

        place = _place(result.task)
        if rescheduled:
            self._dispatcher.notify(
                NotificationType.SCHEDULE_UPDATED,
                "Collection Schedule Updated",
                (
                    f"Your waste collection at {place} "
                    f"has been rescheduled to {appointment_date} at {time_slot}"
                ),
                NotificationPriority.MEDIUM,
                audience=NotificationAudience.CITIZEN,
            )
        else:
            self._dispatcher.notify(
                NotificationType.TASK_SCHEDULED,
                "Collection Scheduled",
                (
                    f"Your waste collection at {place} "
                    f"has been scheduled for {appointment_date} at {time_slot}"
                ),
                NotificationPriority.MEDIUM,
                audience=NotificationAudience.CITIZEN,
            )
        return result

    async def cancel_appointment(self, task_id: str | int) -> MutationResult:
        """司机取消预约：清除任务上的预约并通知市民

        Raises:
            TaskNotFoundError: 任务不存在
        """
        result = await self._task_store.clear_appointment(task_id)
        if result.changed:
            self._dispatcher.notify(
                NotificationType.SCHEDULE_CANCELLED,
                "Collection Schedule Cancelled",
                (
                    f"Your waste collection schedule at {_place(result.task)} "
                    "has been cancelled. A new schedule will be provided soon."
                ),
                NotificationPriority.MEDIUM,
                audience=NotificationAudience.CITIZEN,
            )
        return result

    def agenda(self) -> list[AgendaEntry]:
        """合并日程：未结束任务的预约在前（按预约时间），其后是启用中的周期排班"""
        entries: list[AgendaEntry] = []

        for task in self._task_store.list_tasks():
            appointment = task.appointment
            if appointment is None or task.status in TERMINAL_STATES:
                continue
            entries.append(
                AgendaEntry(
                    kind="appointment",
                    source_id=task.task_id,
                    label=f"Bin #{task.bin_id} - {task.location}".rstrip(" -"),
                    when=f"{appointment.date} {appointment.time_slot}",
                    sort_key=(0, appointment.scheduled_time.isoformat()),
                )
            )

        for schedule in self._recurring:
            if schedule.status != ScheduleStatus.ACTIVE:
                continue
            entries.append(
                AgendaEntry(
                    kind="recurring",
                    source_id=schedule.schedule_id,
                    label=schedule.area,
                    when=f"{schedule.day} {schedule.time} ({schedule.frequency.value})",
                    sort_key=(1, f"{schedule.weekday_index}:{schedule.time}"),
                )
            )

        entries.sort(key=lambda e: e.sort_key)
        return entries

    @staticmethod
    def _raw_to_schedule(raw: dict[str, Any]) -> RecurringSchedule:
        """将管理员排班记录转换为 RecurringSchedule"""
        raw_status = str(raw.get("status") or "active")
        status = (
            ScheduleStatus.ACTIVE if raw_status == "active" else ScheduleStatus.INACTIVE
        )

        try:
            frequency = ScheduleFrequency(raw.get("frequency") or "weekly")
        except ValueError:
            frequency = ScheduleFrequency.WEEKLY

        try:
            priority = TaskPriority(raw.get("priority") or "medium")
        except ValueError:
            priority = TaskPriority.MEDIUM

        driver_id = raw.get("driver_id")
        return RecurringSchedule(
            schedule_id=str(raw["id"]),
            area=raw.get("area", ""),
            day=raw.get("day", ""),
            time=raw.get("time", ""),
            frequency=frequency,
            assigned_driver=raw.get("assigned_driver") or "",
            driver_id=str(driver_id) if driver_id is not None else None,
            status=status,
            bin_ids=[str(b) for b in raw.get("bin_ids") or []],
            priority=priority,
            created_at=parse_timestamp(raw.get("created_at")),
            display_status=schedule_display_status(raw_status),
        )
