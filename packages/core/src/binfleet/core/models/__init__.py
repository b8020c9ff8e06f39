"""binfleet Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    PRIORITY_ORDER,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    NotificationAudience,
    NotificationOrigin,
    NotificationPriority,
    NotificationType,
    ScheduleFrequency,
    ScheduleStatus,
    SessionStatus,
    TaskPriority,
    TaskStatus,
    validate_transition,
)
from .notification import Notification
from .position import Position, RouteLine
from .profile import DriverProfile
from .schedule import WEEKDAYS, AgendaEntry, RecurringSchedule
from .session import CollectionStream, LiveSession, format_duration, percent_complete
from .task import Appointment, MutationResult, Task

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "SessionStatus",
    "ScheduleStatus",
    "ScheduleFrequency",
    "NotificationType",
    "NotificationPriority",
    "NotificationAudience",
    "NotificationOrigin",
    "PRIORITY_ORDER",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task
    "Task",
    "Appointment",
    "MutationResult",
    # LiveSession
    "LiveSession",
    "CollectionStream",
    "percent_complete",
    "format_duration",
    # Schedule
    "RecurringSchedule",
    "AgendaEntry",
    "WEEKDAYS",
    # Notification
    "Notification",
    # 其他
    "Position",
    "RouteLine",
    "DriverProfile",
]
