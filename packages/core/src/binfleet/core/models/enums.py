"""枚举定义

包含 TaskStatus 状态机、TaskPriority、SessionStatus、ScheduleStatus、
NotificationType / NotificationPriority / NotificationAudience 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """收运任务状态机"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"

    # 终态
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}

# 状态推进顺序，用于识别服务端快照中的状态回退
STATUS_RANK: dict[TaskStatus, int] = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.CANCELLED: 2,
}


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# 列表排序：high -> medium -> low
PRIORITY_ORDER: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


class SessionStatus(StrEnum):
    """司机上报的收运会话状态"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    ACTIVE = "active"
    INACTIVE = "inactive"
    RESOLVED = "resolved"


class ScheduleStatus(StrEnum):
    """管理员定义的周期排班状态，仅在 active / inactive 之间切换"""

    ACTIVE = "active"
    INACTIVE = "inactive"


class ScheduleFrequency(StrEnum):
    """周期排班频率"""

    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"


class NotificationType(StrEnum):
    """通知类型"""

    TASK_ASSIGNED = "task_assigned"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_SCHEDULED = "task_scheduled"
    COLLECTION_SCHEDULED = "collection_scheduled"
    SCHEDULE_UPDATED = "schedule_updated"
    SCHEDULE_CANCELLED = "schedule_cancelled"
    COLLECTION = "collection"
    LIVE_STREAM = "live_stream"
    BIN_UPDATE = "bin_update"
    COMPLAINT = "complaint"
    SYSTEM = "system"
    ERROR = "error"


class NotificationPriority(StrEnum):
    """通知优先级（沿用前端展示使用的取值）"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


class NotificationAudience(StrEnum):
    """通知接收方，即未读计数的作用域"""

    DRIVER = "driver"
    CITIZEN = "citizen"
    ADMIN = "admin"


class NotificationOrigin(StrEnum):
    """通知来源"""

    LOCAL = "local"
    SERVER = "server"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
