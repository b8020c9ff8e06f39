"""LiveSessionRegistry -- 当前活跃收运会话登记表

每个刷新周期整体替换（不做增量合并）；同一司机的重复记录合并为一条。
上游不可达时保留上一份快照，从未成功加载过时填充演示数据，
并通过 degraded 标记对外可见。
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from ..geo import distance_between, route_line
from ..ids import IdentityAllocator
from ..models.enums import SessionStatus
from ..models.position import Position, RouteLine
from ..models.session import LiveSession, format_duration, percent_complete
from ..samples import sample_live_sessions
from ..timeutil import parse_timestamp, utcnow

log = structlog.get_logger()


class LiveSessionRegistry:
    """直播会话登记表，LiveSession 的唯一替换者"""

    def __init__(
        self,
        allocator: IdentityAllocator | None = None,
        now: Callable[[], datetime] = utcnow,
        stable_ids: bool = False,
    ) -> None:
        """
        Args:
            allocator: 本地标识分配器
            now: 当前时间来源
            stable_ids: True 时按 server_id 复用上一周期的本地标识
        """
        self._allocator = allocator or IdentityAllocator()
        self._now = now
        self._stable_ids = stable_ids
        self._sessions: list[LiveSession] = []
        self._loaded = False
        self._degraded = False

    @property
    def sessions(self) -> list[LiveSession]:
        return list(self._sessions)

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def loaded(self) -> bool:
        return self._loaded

    def refresh(
        self,
        raw_sessions: list[dict[str, Any]],
        degraded: bool = False,
    ) -> list[LiveSession]:
        """以一次观测结果整体替换登记表

        先构建完整的新列表再一次性替换，不会出现半更新状态。
        空列表是合法的观测结果，会清空登记表。
        """
        now = self._now()
        previous = {s.server_id: s for s in self._sessions if s.server_id is not None}

        # 缺少 id 的记录按司机姓名归并到同一司机带 id 的记录上
        id_by_driver = {
            raw["driver_name"]: raw["id"]
            for raw in raw_sessions
            if raw.get("id") is not None and raw.get("driver_name")
        }
        deduped: dict[str, dict[str, Any]] = {}
        for raw in raw_sessions:
            if raw.get("id") is None and raw.get("driver_name") in id_by_driver:
                raw = {**raw, "id": id_by_driver[raw["driver_name"]]}
            key = self._dedupe_key(raw)
            existing = deduped.get(key)
            if existing is None or self._updated_at(raw) >= self._updated_at(existing):
                deduped[key] = raw

        sessions = [
            self._raw_to_session(raw, previous, now) for raw in deduped.values()
        ]

        self._sessions = sessions
        self._loaded = True
        self._degraded = degraded

        log.info(
            "live_sessions_refreshed",
            raw_count=len(raw_sessions),
            session_count=len(sessions),
            degraded=degraded,
        )
        return self.sessions

    def fallback(self, reason: str) -> list[LiveSession]:
        """上游不可达：保留上一份快照；从未加载过时使用演示数据"""
        if self._loaded:
            self._degraded = True
            log.warning("live_sessions_degraded_keep_previous", reason=reason)
            return self.sessions

        log.warning("live_sessions_degraded_use_sample", reason=reason)
        return self.refresh(sample_live_sessions(self._now()), degraded=True)

    def find_by_position(
        self,
        position: Position,
        radius_km: float | None = None,
    ) -> list[LiveSession]:
        """按距离由近到远返回有坐标的会话（线性扫描）

        Args:
            position: 参考坐标（通常是市民或任务点位置）
            radius_km: 最大距离，None 表示不限制
        """
        ranked: list[tuple[float, LiveSession]] = []
        for session in self._sessions:
            if session.position is None:
                continue
            distance = distance_between(position, session.position)
            if radius_km is not None and distance > radius_km:
                continue
            ranked.append((distance, session))
        ranked.sort(key=lambda item: item[0])
        return [session for _, session in ranked]

    def route_to(self, session: LiveSession, position: Position) -> RouteLine | None:
        """会话司机位置到目标坐标的直线折线"""
        if session.position is None:
            return None
        return route_line(session.position, position)

    def total_bins_collected(self) -> int:
        return sum(s.bins_collected for s in self._sessions)

    @staticmethod
    def _dedupe_key(raw: dict[str, Any]) -> str:
        if raw.get("id") is not None:
            return f"id:{raw['id']}"
        return f"driver:{raw.get('driver_name', '')}"

    @staticmethod
    def _updated_at(raw: dict[str, Any]) -> datetime:
        return parse_timestamp(raw.get("last_updated")) or datetime.min.replace(tzinfo=UTC)

    def _raw_to_session(
        self,
        raw: dict[str, Any],
        previous: dict[str, LiveSession],
        now: datetime,
    ) -> LiveSession:
        """将服务端会话记录转换为 LiveSession，并计算派生展示字段"""
        server_id = str(raw["id"]) if raw.get("id") is not None else None
        start_time = parse_timestamp(raw.get("start_time")) or now
        bins_collected = max(int(raw.get("bins_collected") or 0), 0)

        prior = previous.get(server_id) if server_id is not None else None
        # 同一会话内收运数不回退
        if (
            prior is not None
            and prior.start_time == start_time
            and bins_collected < prior.bins_collected
        ):
            log.warning(
                "bins_collected_regression_clamped",
                server_id=server_id,
                reported=bins_collected,
                kept=prior.bins_collected,
            )
            bins_collected = prior.bins_collected

        if self._stable_ids and prior is not None:
            local_id = prior.local_id
        else:
            local_id = self._allocator.allocate()

        try:
            status = SessionStatus(raw.get("status") or SessionStatus.ACTIVE)
        except ValueError:
            status = SessionStatus.ACTIVE

        return LiveSession(
            local_id=local_id,
            server_id=server_id,
            driver_name=raw.get("driver_name", ""),
            vehicle_info=raw.get("vehicle_info") or "",
            location=raw.get("location") or "Unknown Location",
            position=self._parse_position(raw),
            status=status,
            start_time=start_time,
            bins_collected=bins_collected,
            last_updated=parse_timestamp(raw.get("last_updated")) or now,
            has_live_video=bool(raw.get("has_live_video", False)),
            duration=format_duration(start_time, now),
            progress_percent=percent_complete(bins_collected),
        )

    @staticmethod
    def _parse_position(raw: dict[str, Any]) -> Position | None:
        coordinates = raw.get("coordinates")
        if isinstance(coordinates, dict):
            latitude = coordinates.get("latitude")
            longitude = coordinates.get("longitude")
        else:
            latitude = raw.get("latitude")
            longitude = raw.get("longitude")
        if latitude is None or longitude is None:
            return None
        return Position(latitude=float(latitude), longitude=float(longitude))
