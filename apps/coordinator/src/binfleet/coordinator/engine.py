"""CoordinationEngine -- 组件装配与刷新边界

持有每个组件的唯一实例和 API 客户端，负责：
1. 各数据源的刷新：拉取 -> 检查取消令牌 -> 整体应用 -> 写入快照缓存
2. 刷新失败时的降级：TransportError / NotFoundError 转为 degraded，
   组件内存为空时优先使用快照缓存，其次使用演示数据
3. AuthError：清除本地凭证，调用 on_auth_expired 后继续上抛
4. 用户操作（状态流转、预约与取消、通知已读、上下班、收运直播）的转发
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import ValidationError

from binfleet.core.config import CoordinatorConfig
from binfleet.core.exceptions import (
    AuthError,
    InputValidationError,
    NotFoundError,
    TransportError,
)
from binfleet.core.geo import route_line
from binfleet.core.ids import IdentityAllocator
from binfleet.core.models import (
    CollectionStream,
    DriverProfile,
    MutationResult,
    Notification,
    NotificationPriority,
    NotificationType,
    Position,
    RouteLine,
    TaskStatus,
)
from binfleet.core.samples import sample_profile
from binfleet.core.store import (
    FleetApi,
    LiveSessionRegistry,
    NotificationDispatcher,
    ScheduleCoordinator,
    SnapshotCache,
    TaskStore,
)
from binfleet.core.timeutil import parse_timestamp

from .clock import CancellationToken, Clock, SystemClock
from .scheduler import AuthErrorHandler, RefreshScheduler

log = structlog.get_logger()

AuthExpiredHook = Callable[[AuthError], Awaitable[None] | None]

# 快照缓存中的数据源名称
SOURCE_TASKS = "tasks"
SOURCE_PROFILE = "profile"
SOURCE_LIVE_SESSIONS = "live_sessions"
SOURCE_SCHEDULES = "schedules"
SOURCE_NOTIFICATIONS = "notifications"


def raw_to_profile(raw: dict[str, Any]) -> DriverProfile:
    """将服务端司机档案转换为 DriverProfile"""
    try:
        rating = min(max(float(raw.get("rating") or 0.0), 0.0), 5.0)
    except (TypeError, ValueError):
        rating = 0.0
    return DriverProfile(
        driver_id=str(raw.get("id", "")),
        name=raw.get("name") or "",
        email=raw.get("email") or "",
        phone=raw.get("phone") or "",
        vehicle_info=raw.get("vehicle_info") or "",
        license_number=raw.get("license_number") or "",
        total_collections=max(int(raw.get("total_collections") or 0), 0),
        rating=rating,
        status=raw.get("status") or "active",
    )


class CoordinationEngine:
    """司机端/市民端的协调引擎"""

    def __init__(
        self,
        api: FleetApi,
        config: CoordinatorConfig | None = None,
        cache: SnapshotCache | None = None,
        clock: Clock | None = None,
        allocator: IdentityAllocator | None = None,
        on_auth_expired: AuthExpiredHook | None = None,
    ) -> None:
        self._api = api
        self._config = config or CoordinatorConfig()
        self._cache = cache
        self._clock = clock or SystemClock()
        self._on_auth_expired = on_auth_expired
        allocator = allocator or IdentityAllocator()
        now = self._clock.now

        self.dispatcher = NotificationDispatcher(allocator=allocator, now=now)
        self.task_store = TaskStore(
            self.dispatcher,
            api=api,
            allocator=allocator,
            now=now,
            default_position=self._config.default_position,
        )
        self.sessions = LiveSessionRegistry(
            allocator=allocator,
            now=now,
            stable_ids=self._config.stable_session_ids,
        )
        self.schedules = ScheduleCoordinator(self.task_store, self.dispatcher, now=now)

        self._profile: DriverProfile | None = None
        self._profile_degraded = False
        self._driver_position: Position | None = None
        self._on_shift = False
        self._auth_expired = False
        self._stream: CollectionStream | None = None

    # ---- 只读视图 ----

    @property
    def profile(self) -> DriverProfile | None:
        return self._profile

    @property
    def on_shift(self) -> bool:
        return self._on_shift

    @property
    def driver_position(self) -> Position | None:
        return self._driver_position

    @property
    def auth_expired(self) -> bool:
        return self._auth_expired

    @property
    def active_stream(self) -> CollectionStream | None:
        return self._stream

    def status(self) -> dict[str, Any]:
        """各组件的降级状态"""
        return {
            "degraded": {
                SOURCE_TASKS: self.task_store.degraded,
                SOURCE_PROFILE: self._profile_degraded,
                SOURCE_LIVE_SESSIONS: self.sessions.degraded,
                SOURCE_SCHEDULES: self.schedules.degraded,
                SOURCE_NOTIFICATIONS: self.dispatcher.degraded,
            },
            "on_shift": self._on_shift,
            "streaming": self._stream is not None,
            "auth_expired": self._auth_expired,
            "unread_notifications": self.dispatcher.unread_count(),
        }

    def summary(self) -> dict[str, Any]:
        """看板摘要（CLI snapshot 输出）"""
        profile = self._profile
        return {
            "driver": profile.name if profile else None,
            "tasks": self.task_store.stats(),
            "live_sessions": len(self.sessions.sessions),
            "bins_collected": self.sessions.total_bins_collected(),
            "recurring_schedules": len(self.schedules.recurring),
            "agenda": [entry.when + " " + entry.label for entry in self.schedules.agenda()],
            **self.status(),
        }

    # ---- 刷新 ----

    async def refresh_tasks(self, token: CancellationToken | None = None) -> None:
        driver_id = self._profile.driver_id if self._profile else None
        await self._refresh(
            SOURCE_TASKS,
            lambda: self._api.fetch_tasks(driver_id),
            lambda raw, degraded: self.task_store.replace_all(raw, degraded=degraded),
            self.task_store.fallback,
            lambda: self.task_store.loaded,
            token,
        )

    async def refresh_profile(self, token: CancellationToken | None = None) -> None:
        await self._refresh(
            SOURCE_PROFILE,
            self._api.fetch_driver_profile,
            self._apply_profile,
            self._fallback_profile,
            lambda: self._profile is not None,
            token,
        )

    async def refresh_live_sessions(self, token: CancellationToken | None = None) -> None:
        await self._refresh(
            SOURCE_LIVE_SESSIONS,
            self._api.fetch_active_live_sessions,
            lambda raw, degraded: self.sessions.refresh(raw, degraded=degraded),
            self.sessions.fallback,
            lambda: self.sessions.loaded,
            token,
        )

    async def refresh_schedules(self, token: CancellationToken | None = None) -> None:
        await self._refresh(
            SOURCE_SCHEDULES,
            self._api.fetch_recurring_schedules,
            lambda raw, degraded: self.schedules.refresh_recurring(raw, degraded=degraded),
            self.schedules.fallback_recurring,
            lambda: self.schedules.loaded,
            token,
        )

    async def refresh_notifications(self, token: CancellationToken | None = None) -> None:
        await self._refresh(
            SOURCE_NOTIFICATIONS,
            self._api.fetch_notifications,
            lambda raw, degraded: self.dispatcher.load_server(raw, degraded=degraded),
            self.dispatcher.fallback,
            lambda: self.dispatcher.loaded,
            token,
        )

    async def refresh_dashboard(self, token: CancellationToken | None = None) -> None:
        """全量刷新：档案先于任务（任务按司机 ID 拉取）"""
        await self.refresh_profile(token)
        await self.refresh_tasks(token)
        await self.refresh_live_sessions(token)
        await self.refresh_schedules(token)
        await self.refresh_notifications(token)

    async def update_driver_location(self, token: CancellationToken | None = None) -> bool:
        """上班期间上报司机最近坐标

        Returns:
            True 如果已上报到服务端
        """
        if not self._on_shift or self._driver_position is None:
            return False
        if token is not None and token.cancelled:
            return False

        position = self._driver_position
        try:
            await self._api.update_driver_location(position.latitude, position.longitude)
        except (TransportError, NotFoundError) as e:
            log.warning("driver_location_update_failed", error_type=type(e).__name__, error=str(e))
            return False
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise
        return True

    async def _refresh(
        self,
        source: str,
        fetch: Callable[[], Awaitable[Any]],
        apply: Callable[[Any, bool], Any],
        fallback: Callable[[str], Any],
        loaded: Callable[[], bool],
        token: CancellationToken | None,
    ) -> None:
        try:
            raw = await fetch()
        except (TransportError, NotFoundError) as e:
            if token is not None and token.cancelled:
                log.debug("refresh_result_discarded", source=source)
                return
            reason = f"{type(e).__name__}: {e}"
            log.warning("refresh_degraded", source=source, reason=reason)
            if not loaded():
                cached = await self._cached(source)
                if cached is not None:
                    log.info(
                        "refresh_degraded_use_cache",
                        source=source,
                        fetched_at=cached.fetched_at.isoformat(),
                    )
                    try:
                        apply(cached.payload, True)
                        return
                    except (KeyError, TypeError, ValueError, ValidationError) as cache_error:
                        # 旧版本写入的快照可能已无法解析
                        log.warning(
                            "refresh_cache_unusable",
                            source=source,
                            error_type=type(cache_error).__name__,
                            error=str(cache_error),
                        )
            fallback(reason)
            return
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise

        # 迟到结果：调度器已停止，丢弃
        if token is not None and token.cancelled:
            log.debug("refresh_result_discarded", source=source)
            return

        apply(raw, False)
        if self._cache is not None:
            await self._cache.put(source, raw, self._clock.now())

    async def _cached(self, source: str):
        if self._cache is None:
            return None
        return await self._cache.get(source)

    def _apply_profile(self, raw: dict[str, Any], degraded: bool) -> DriverProfile:
        self._profile = raw_to_profile(raw)
        self._profile_degraded = degraded
        log.info("driver_profile_refreshed", driver_id=self._profile.driver_id, degraded=degraded)
        return self._profile

    def _fallback_profile(self, reason: str) -> DriverProfile:
        if self._profile is not None:
            self._profile_degraded = True
            log.warning("profile_degraded_keep_previous", reason=reason)
            return self._profile
        log.warning("profile_degraded_use_sample", reason=reason)
        return self._apply_profile(sample_profile(), True)

    async def _handle_auth_expired(self, error: AuthError) -> None:
        self._api.invalidate_session()
        if self._auth_expired:
            return
        self._auth_expired = True
        log.warning("auth_expired", error=str(error))
        if self._on_auth_expired is not None:
            result = self._on_auth_expired(error)
            if asyncio.iscoroutine(result):
                await result

    # ---- 用户操作 ----

    def set_driver_position(self, position: Position) -> None:
        """记录设备上报的司机坐标，下一次位置刷新时同步"""
        self._driver_position = position

    def start_shift(self) -> Notification:
        self._on_shift = True
        log.info("shift_started")
        return self.dispatcher.notify(
            NotificationType.SYSTEM,
            "Shift Started",
            "You are now on duty. Safe driving!",
            NotificationPriority.MEDIUM,
        )

    def end_shift(self) -> Notification:
        self._on_shift = False
        log.info("shift_ended")
        return self.dispatcher.notify(
            NotificationType.SYSTEM,
            "Shift Ended",
            "Shift completed successfully. Great work today!",
            NotificationPriority.MEDIUM,
        )

    def navigate_to_task(self, task_id: str | int) -> RouteLine:
        """司机当前位置（未知时取默认坐标）到任务点的直线

        Raises:
            TaskNotFoundError: 任务不存在
        """
        task = self.task_store.require_task(task_id)
        start = self._driver_position or self._config.default_position
        route = route_line(start, task.position)
        self.dispatcher.notify(
            NotificationType.SYSTEM,
            "Navigation Started",
            f"Navigating to {task.location or f'Bin #{task.bin_id}'}",
            NotificationPriority.MEDIUM,
        )
        return route

    async def transition_task(
        self,
        task_id: str | int,
        target_status: TaskStatus | str,
    ) -> MutationResult:
        try:
            return await self.task_store.transition(task_id, target_status)
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise

    async def propose_appointment(
        self,
        task_id: str | int,
        appointment_date: str,
        time_slot: str,
    ) -> MutationResult:
        try:
            return await self.schedules.propose_appointment(
                task_id, appointment_date, time_slot
            )
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise

    async def cancel_appointment(self, task_id: str | int) -> MutationResult:
        try:
            return await self.schedules.cancel_appointment(task_id)
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise

    async def start_stream(self, task_id: str | int) -> CollectionStream:
        """开始收运直播：本地先记录并通知，再尽力通知服务端

        同一任务重复开始返回当前直播。

        Raises:
            TaskNotFoundError: 任务不存在
            InputValidationError: 另一个任务的直播仍在进行
        """
        task = self.task_store.require_task(task_id)
        current = self._stream
        if current is not None:
            if current.task_id == task.task_id:
                return current
            raise InputValidationError(
                f"A collection stream is already active for task {current.task_id}",
                field="task_id",
            )

        location = task.location or f"Bin #{task.bin_id}"
        stream = CollectionStream(
            task_id=task.task_id,
            location=location,
            started_at=self._clock.now(),
        )
        self._stream = stream
        log.info("collection_stream_started", task_id=task.task_id)
        self.dispatcher.notify(
            NotificationType.LIVE_STREAM,
            "Recording Started",
            f"Recording collection at {location}",
            NotificationPriority.MEDIUM,
        )

        try:
            response = await self._api.start_stream(task.task_id, location)
        except (TransportError, NotFoundError) as e:
            log.warning(
                "collection_stream_sync_failed",
                operation="start_stream",
                error_type=type(e).__name__,
                error=str(e),
            )
            return stream
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise

        stream_id = response.get("streamId") if isinstance(response, dict) else None
        confirmed = stream.model_copy(
            update={
                "synced": True,
                "server_id": str(stream_id) if stream_id is not None else None,
            }
        )
        # 确认返回前直播可能已被停止
        if self._stream is stream:
            self._stream = confirmed
        return confirmed

    async def stop_stream(self, bins_collected: int = 0) -> CollectionStream | None:
        """结束收运直播，没有进行中的直播时返回 None"""
        stream = self._stream
        if stream is None:
            return None
        self._stream = None
        log.info(
            "collection_stream_stopped",
            task_id=stream.task_id,
            bins_collected=bins_collected,
        )
        self.dispatcher.notify(
            NotificationType.LIVE_STREAM,
            "Recording Completed",
            f"Collection at {stream.location} completed and video saved",
            NotificationPriority.MEDIUM,
        )

        try:
            await self._api.stop_stream(max(bins_collected, 0))
        except (TransportError, NotFoundError) as e:
            log.warning(
                "collection_stream_sync_failed",
                operation="stop_stream",
                error_type=type(e).__name__,
                error=str(e),
            )
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise
        return stream

    async def sync_stream_status(
        self,
        token: CancellationToken | None = None,
    ) -> CollectionStream | None:
        """与服务端核对直播状态

        服务端已结束的直播从本地清除；服务端有而本地没有的（例如重启后）接管过来。
        服务端不可达时保持本地记录。
        """
        try:
            raw = await self._api.fetch_stream_status()
        except (TransportError, NotFoundError) as e:
            log.warning("stream_status_unavailable", error_type=type(e).__name__)
            return self._stream
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise

        if token is not None and token.cancelled:
            return self._stream

        if not raw:
            if self._stream is not None and self._stream.synced:
                log.info("collection_stream_ended_remotely", task_id=self._stream.task_id)
                self._stream = None
            return self._stream

        if self._stream is None:
            server_id = raw.get("id")
            self._stream = CollectionStream(
                task_id=str(raw.get("task_id", "")),
                location=raw.get("task_location") or raw.get("bin_location") or "",
                started_at=parse_timestamp(raw.get("start_time")) or self._clock.now(),
                server_id=str(server_id) if server_id is not None else None,
                synced=True,
            )
            log.info("collection_stream_adopted", task_id=self._stream.task_id)
        return self._stream

    async def mark_notification_read(self, notification_id: str) -> Notification:
        """先在本地标记已读，再尽力同步服务端来源的通知

        Raises:
            NotFoundError: 通知不存在
        """
        already_read = False
        existing = self.dispatcher.get(notification_id)
        if existing is not None:
            already_read = existing.is_read
        notification = self.dispatcher.mark_read(notification_id)
        if already_read or notification.server_id is None:
            return notification

        try:
            await self._api.mark_notification_read(notification.server_id)
        except (TransportError, NotFoundError) as e:
            log.warning(
                "notification_read_sync_failed",
                notification_id=notification_id,
                error_type=type(e).__name__,
            )
        except AuthError as e:
            await self._handle_auth_expired(e)
            raise
        return notification

    def mark_all_notifications_read(self) -> int:
        return self.dispatcher.mark_all_read()

    # ---- 调度 ----

    def build_scheduler(
        self,
        clock: Clock | None = None,
        on_auth_error: AuthErrorHandler | None = None,
    ) -> RefreshScheduler:
        """按配置节拍登记四个刷新任务"""
        scheduler = RefreshScheduler(clock=clock or self._clock, on_auth_error=on_auth_error)
        config = self._config
        scheduler.register("driver_location", config.location_interval_s, self.update_driver_location)
        scheduler.register("live_sessions", config.sessions_interval_s, self.refresh_live_sessions)
        scheduler.register("schedules", config.schedules_interval_s, self.refresh_schedules)
        scheduler.register("dashboard", config.dashboard_interval_s, self.refresh_dashboard)
        return scheduler
