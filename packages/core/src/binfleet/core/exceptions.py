"""核心异常体系

TransportError 在刷新边界被吸收为降级信号；
AuthError 终止会话并交由外部重新认证；
其余异常直接传递给发起操作的调用方。
"""


class CoordinationError(Exception):
    """binfleet 基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试或降级恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class TransportError(CoordinationError):
    """网络不可达、超时或服务端异常响应

    本地通过缓存或演示数据兜底，不阻塞界面。
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, recoverable=True)
        self.status_code = status_code
        self.original_error = original_error


class AuthError(CoordinationError):
    """401：本地会话失效，需要重新认证"""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, recoverable=False)


class NotFoundError(CoordinationError):
    """404：资源不存在；对可选接口意味着功能不可用"""

    def __init__(self, message: str = "Requested resource not found") -> None:
        super().__init__(message, recoverable=True)


class TaskNotFoundError(NotFoundError):
    """本地不存在该任务"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class InvalidTransitionError(CoordinationError):
    """状态机拒绝的流转，本地状态保持不变"""

    def __init__(self, task_id: str, from_status: str, to_status: str) -> None:
        super().__init__(
            f"Cannot transition task {task_id} from {from_status} to {to_status}",
            recoverable=False,
        )
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status


class InputValidationError(CoordinationError):
    """输入缺失或格式错误，在任何状态变更之前拒绝"""

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message, recoverable=False)
        self.field = field
