"""binfleet Core Store -- 有状态组件

TaskStore / LiveSessionRegistry / ScheduleCoordinator / NotificationDispatcher
各自独占自己的状态，只有通知创建是跨组件写入路径。
"""

from .notification_dispatcher import NotificationDispatcher
from .protocols import FleetApi, TaskSyncApi
from .schedule_coordinator import ScheduleCoordinator, schedule_display_status
from .session_registry import LiveSessionRegistry
from .snapshot_cache import CachedSnapshot, SnapshotCache, init_cache_db
from .task_store import TaskStore, validate_appointment

__all__ = [
    "TaskStore",
    "LiveSessionRegistry",
    "ScheduleCoordinator",
    "NotificationDispatcher",
    "SnapshotCache",
    "CachedSnapshot",
    "FleetApi",
    "TaskSyncApi",
    "init_cache_db",
    "schedule_display_status",
    "validate_appointment",
]
