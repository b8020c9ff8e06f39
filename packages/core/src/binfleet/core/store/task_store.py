"""TaskStore -- 司机任务的内存权威视图与状态机流转

本地状态先行推进（乐观应用），再尽力同步到远端；
远端网络/存储失败只产生软警告，下一次成功拉取时以服务端数据覆盖本地。
"""

import re
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import Any

import structlog

from ..config import DEFAULT_POSITION
from ..exceptions import (
    InputValidationError,
    InvalidTransitionError,
    NotFoundError,
    TaskNotFoundError,
    TransportError,
)
from ..geo import distance_between
from ..ids import IdentityAllocator
from ..models.enums import (
    PRIORITY_ORDER,
    STATUS_RANK,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    NotificationPriority,
    NotificationType,
    TaskPriority,
    TaskStatus,
    validate_transition,
)
from ..models.position import Position
from ..models.task import Appointment, MutationResult, Task
from ..samples import sample_tasks
from ..timeutil import parse_timestamp, utcnow
from .notification_dispatcher import NotificationDispatcher
from .protocols import TaskSyncApi

log = structlog.get_logger()

_TIME_SLOT_RE = re.compile(r"^(\d{2}):(\d{2})-(\d{2}):(\d{2})$")

SYNC_WARNING = "Saved locally; the server is unreachable and will be updated on the next sync"


def validate_appointment(appointment_date: str, time_slot: str) -> tuple[date, str]:
    """校验预约日期和时间段

    Returns:
        (预约日期, 时间段起点 HH:MM)

    Raises:
        InputValidationError: 缺失字段或格式错误
    """
    if not appointment_date or not time_slot:
        raise InputValidationError("Date and time slot are required")

    try:
        parsed_date = date.fromisoformat(appointment_date)
    except ValueError:
        raise InputValidationError(
            f"Invalid date: {appointment_date}", field="date"
        ) from None

    match = _TIME_SLOT_RE.match(time_slot)
    if match is None:
        raise InputValidationError(
            f"Invalid time slot: {time_slot}", field="time_slot"
        )
    start_h, start_m, end_h, end_m = (int(g) for g in match.groups())
    if start_h > 23 or end_h > 23 or start_m > 59 or end_m > 59:
        raise InputValidationError(
            f"Invalid time slot: {time_slot}", field="time_slot"
        )
    if (start_h, start_m) >= (end_h, end_m):
        raise InputValidationError(
            f"Time slot must end after it starts: {time_slot}", field="time_slot"
        )
    return parsed_date, f"{start_h:02d}:{start_m:02d}"


class TaskStore:
    """司机任务存储，Task 的唯一修改入口"""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        api: TaskSyncApi | None = None,
        allocator: IdentityAllocator | None = None,
        now: Callable[[], datetime] = utcnow,
        default_position: Position = DEFAULT_POSITION,
    ) -> None:
        self._dispatcher = dispatcher
        self._api = api
        self._allocator = allocator or IdentityAllocator()
        self._now = now
        self._default_position = default_position
        self._tasks: dict[str, Task] = {}
        self._loaded = False
        self._degraded = False

    @property
    def degraded(self) -> bool:
        return self._degraded

    def replace_all(
        self,
        raw_tasks: list[dict[str, Any]],
        degraded: bool = False,
    ) -> list[Task]:
        """以服务端快照整体替换本地任务

        先完整解析再替换，解析失败时保留原有状态。
        本地已进入终态、而快照仍是较早状态的任务保留本地状态。
        """
        tasks: dict[str, Task] = {}
        for raw in raw_tasks:
            task = self._raw_to_task(raw)
            local = self._tasks.get(task.task_id)
            if (
                local is not None
                and local.status in TERMINAL_STATES
                and STATUS_RANK[task.status] < STATUS_RANK[local.status]
            ):
                log.warning(
                    "task_regression_ignored",
                    task_id=task.task_id,
                    local_status=local.status.value,
                    server_status=task.status.value,
                )
                task = task.model_copy(
                    update={
                        "status": local.status,
                        "completed_at": local.completed_at,
                    }
                )
            tasks[task.task_id] = task

        self._tasks = tasks
        self._loaded = True
        self._degraded = degraded
        log.info("tasks_replaced", task_count=len(tasks), degraded=degraded)
        return self.list_tasks()

    @property
    def loaded(self) -> bool:
        return self._loaded

    def fallback(self, reason: str) -> list[Task]:
        """上游不可达：保留现有任务；从未加载过时使用演示任务"""
        if self._loaded:
            self._degraded = True
            log.warning("tasks_degraded_keep_previous", reason=reason)
            return self.list_tasks()

        log.warning("tasks_degraded_use_sample", reason=reason)
        return self.replace_all(sample_tasks(self._now()), degraded=True)

    def get_task(self, task_id: str | int) -> Task | None:
        return self._tasks.get(str(task_id))

    def require_task(self, task_id: str | int) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(str(task_id))
        return task

    def list_tasks(self, status: TaskStatus | str | None = None) -> list[Task]:
        """按优先级（high 优先）再按计划时间排序"""
        tasks = list(self._tasks.values())
        if status is not None:
            wanted = TaskStatus(status)
            tasks = [t for t in tasks if t.status == wanted]
        far_future = datetime.max.replace(tzinfo=UTC)
        return sorted(
            tasks,
            key=lambda t: (PRIORITY_ORDER[t.priority], t.scheduled_time or far_future),
        )

    def allowed_transitions(self, task_id: str | int) -> set[TaskStatus]:
        task = self.require_task(task_id)
        return set(VALID_TRANSITIONS[task.status])

    def stats(self) -> dict[str, int]:
        counts = {status.value: 0 for status in TaskStatus}
        for task in self._tasks.values():
            counts[task.status.value] += 1
        return counts

    def distance_to(self, task_id: str | int, position: Position) -> float:
        """从给定坐标到任务点的直线距离（公里）"""
        task = self.require_task(task_id)
        return distance_between(position, task.position)

    async def transition(
        self,
        task_id: str | int,
        target_status: TaskStatus | str,
    ) -> MutationResult:
        """推进任务状态

        重复提交与当前状态相同的目标视为幂等成功，不产生通知也不调用远端。

        Raises:
            TaskNotFoundError: 任务不存在
            InputValidationError: 未知状态值
            InvalidTransitionError: 状态机不允许的流转
        """
        task = self.require_task(task_id)
        try:
            target = TaskStatus(target_status)
        except ValueError:
            raise InputValidationError(
                f"Unknown task status: {target_status}", field="status"
            ) from None

        if target == task.status and target != TaskStatus.PENDING:
            log.debug("task_transition_noop", task_id=task.task_id, status=target.value)
            return MutationResult(task=task, synced=True, changed=False)

        if not validate_transition(task.status, target):
            log.info(
                "task_transition_rejected",
                task_id=task.task_id,
                from_status=task.status.value,
                to_status=target.value,
            )
            raise InvalidTransitionError(task.task_id, task.status.value, target.value)

        now = self._now()
        update: dict[str, Any] = {"status": target, "updated_at": now}
        if target == TaskStatus.COMPLETED:
            update["completed_at"] = now
        updated = task.model_copy(update=update)
        self._tasks[updated.task_id] = updated

        log.info(
            "task_transition_applied",
            task_id=updated.task_id,
            from_status=task.status.value,
            to_status=target.value,
        )

        if target == TaskStatus.COMPLETED:
            self._dispatcher.notify(
                NotificationType.TASK_COMPLETED,
                "Task Completed",
                f"Successfully completed collection at Bin #{updated.bin_id}",
                NotificationPriority.SUCCESS,
            )
        elif target == TaskStatus.IN_PROGRESS:
            self._dispatcher.notify(
                NotificationType.TASK_STARTED,
                "Task Started",
                f"Started collection at Bin #{updated.bin_id}",
                NotificationPriority.INFO,
            )

        if self._api is None:
            return MutationResult(task=updated, synced=False)

        synced, warning, _ = await self._sync(
            "update_task_status",
            updated.task_id,
            lambda: self._api.update_task_status(updated.task_id, target.value),
        )
        # 同步期间可能有刷新完成：以存储中的最新值为准，任务已被移出快照时返回本地结果
        current = self._tasks.get(updated.task_id, updated)
        return MutationResult(task=current, synced=synced, warning=warning)

    async def attach_appointment(
        self,
        task_id: str | int,
        appointment_date: str,
        time_slot: str,
    ) -> MutationResult:
        """为任务附加司机预约，覆盖之前的预约

        Raises:
            InputValidationError: 日期或时间段缺失/格式错误
            TaskNotFoundError: 任务不存在
        """
        parsed_date, slot_start = validate_appointment(appointment_date, time_slot)
        task = self.require_task(task_id)

        previous = task.appointment
        if (
            previous is not None
            and previous.date == appointment_date
            and previous.time_slot == time_slot
        ):
            if previous.synced or self._api is None:
                return MutationResult(task=task, synced=previous.synced, changed=False)
            # 同参数重试：仅补做远端同步，不再重复通知
            return await self._sync_appointment(task, changed=False)

        now = self._now()
        scheduled_time = datetime.fromisoformat(
            f"{parsed_date.isoformat()}T{slot_start}:00"
        ).replace(tzinfo=UTC)
        appointment = Appointment(
            appointment_id=self._allocator.allocate(),
            task_id=task.task_id,
            date=appointment_date,
            time_slot=time_slot,
            scheduled_time=scheduled_time,
            created_at=now,
            replaces_server=previous is not None
            and (previous.synced or previous.replaces_server),
        )
        updated = task.model_copy(
            update={
                "appointment": appointment,
                "scheduled_time": scheduled_time,
                "updated_at": now,
            }
        )
        self._tasks[updated.task_id] = updated

        log.info(
            "task_appointment_attached",
            task_id=updated.task_id,
            date=appointment_date,
            time_slot=time_slot,
            replaced=previous is not None,
        )
        if previous is None:
            self._dispatcher.notify(
                NotificationType.TASK_SCHEDULED,
                "Collection Scheduled",
                f"Scheduled collection for Bin #{updated.bin_id} on {appointment_date} at {time_slot}",
                NotificationPriority.MEDIUM,
            )
        else:
            self._dispatcher.notify(
                NotificationType.SCHEDULE_UPDATED,
                "Schedule Updated",
                f"Rescheduled collection for Bin #{updated.bin_id} to {appointment_date} at {time_slot}",
                NotificationPriority.MEDIUM,
            )

        if self._api is None:
            return MutationResult(task=updated, synced=False)
        return await self._sync_appointment(updated, changed=True)

    async def clear_appointment(self, task_id: str | int) -> MutationResult:
        """取消任务上的司机预约

        任务没有预约时为幂等成功；服务端从未确认过的预约只在本地清除。

        Raises:
            TaskNotFoundError: 任务不存在
        """
        task = self.require_task(task_id)
        previous = task.appointment
        if previous is None:
            return MutationResult(task=task, synced=True, changed=False)

        updated = task.model_copy(
            update={
                "appointment": None,
                "scheduled_time": None,
                "updated_at": self._now(),
            }
        )
        self._tasks[updated.task_id] = updated

        log.info(
            "task_appointment_cleared",
            task_id=updated.task_id,
            date=previous.date,
            time_slot=previous.time_slot,
        )
        self._dispatcher.notify(
            NotificationType.SCHEDULE_CANCELLED,
            "Schedule Cancelled",
            f"Cancelled collection schedule for Bin #{updated.bin_id}",
            NotificationPriority.MEDIUM,
        )

        if self._api is None:
            return MutationResult(task=updated, synced=False)
        if not (previous.synced or previous.replaces_server):
            return MutationResult(task=updated, synced=True)

        synced, warning, _ = await self._sync(
            "cancel_task_schedule",
            updated.task_id,
            lambda: self._api.cancel_task_schedule(updated.task_id),
        )
        current = self._tasks.get(updated.task_id, updated)
        return MutationResult(task=current, synced=synced, warning=warning)

    async def _sync_appointment(self, task: Task, changed: bool) -> MutationResult:
        appointment = task.appointment
        # 服务端已有预约时走改期接口
        if appointment.replaces_server:
            operation = "reschedule_task_collection"
            call = self._api.reschedule_task_collection
        else:
            operation = "schedule_task_collection"
            call = self._api.schedule_task_collection
        synced, warning, response = await self._sync(
            operation,
            task.task_id,
            lambda: call(task.task_id, appointment.date, appointment.time_slot),
        )
        current = self._tasks.get(task.task_id, task)
        if synced and current.appointment is not None:
            server_id = response.get("id") if isinstance(response, dict) else None
            if server_id is not None:
                server_id = str(server_id)
            confirmed = current.appointment.model_copy(
                update={
                    "synced": True,
                    "server_id": server_id or current.appointment.server_id,
                }
            )
            current = current.model_copy(update={"appointment": confirmed})
            # 已被刷新移出快照的任务不再写回
            if current.task_id in self._tasks:
                self._tasks[current.task_id] = current
        return MutationResult(task=current, synced=synced, warning=warning, changed=changed)

    async def _sync(
        self,
        operation: str,
        task_id: str,
        call: Callable[[], Awaitable[Any]],
    ) -> tuple[bool, str, Any]:
        """远端同步：网络失败和 404 降级为软警告，AuthError 继续上抛"""
        try:
            response = await call()
        except (TransportError, NotFoundError) as e:
            log.warning(
                "task_sync_failed_applied_locally",
                operation=operation,
                task_id=task_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False, SYNC_WARNING, None
        return True, "", response

    def _raw_to_task(self, raw: dict[str, Any]) -> Task:
        """将服务端任务记录转换为 Task 模型"""
        latitude = raw.get("latitude", raw.get("bin_latitude"))
        longitude = raw.get("longitude", raw.get("bin_longitude"))
        if latitude is None or longitude is None:
            position = self._default_position
        else:
            position = Position(latitude=float(latitude), longitude=float(longitude))

        try:
            status = TaskStatus(raw.get("status") or TaskStatus.PENDING)
        except ValueError:
            log.warning(
                "unknown_task_status_defaulted",
                task_id=raw.get("id"),
                status=raw.get("status"),
            )
            status = TaskStatus.PENDING

        try:
            priority = TaskPriority(raw.get("priority") or TaskPriority.MEDIUM)
        except ValueError:
            priority = TaskPriority.MEDIUM

        appointment = None
        if raw.get("schedule_date") and raw.get("time_slot"):
            scheduled = parse_timestamp(raw.get("scheduled_time"))
            appointment = Appointment(
                appointment_id=self._allocator.allocate(),
                task_id=str(raw["id"]),
                date=str(raw["schedule_date"])[:10],
                time_slot=raw["time_slot"],
                scheduled_time=scheduled or self._now(),
                created_at=self._now(),
                synced=True,
            )

        return Task(
            task_id=str(raw["id"]),
            bin_id=str(raw.get("bin_id", "")),
            location=raw.get("location") or raw.get("bin_location") or "",
            position=position,
            status=status,
            priority=priority,
            scheduled_time=parse_timestamp(raw.get("scheduled_time")),
            appointment=appointment,
            notes=raw.get("notes") or "",
            completed_at=parse_timestamp(raw.get("completed_at")),
            updated_at=parse_timestamp(raw.get("updated_at")) or self._now(),
        )
