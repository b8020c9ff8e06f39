"""Notification Domain Model

内容创建后不可变，唯一允许变化的是 is_read，
变更通过 model_copy 生成新记录完成。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    NotificationAudience,
    NotificationOrigin,
    NotificationPriority,
    NotificationType,
)


class Notification(BaseModel):
    """一次状态变化的通知记录"""

    model_config = ConfigDict(frozen=True)

    notification_id: str = Field(description="本地唯一标识，ULID 格式")
    server_id: str | None = Field(default=None, description="服务端通知 ID")
    type: NotificationType = Field(description="通知类型")
    title: str = Field(description="标题")
    message: str = Field(description="正文")
    created_at: datetime = Field(description="创建时间")
    is_read: bool = Field(default=False, description="是否已读")
    priority: NotificationPriority = Field(default=NotificationPriority.MEDIUM)
    audience: NotificationAudience = Field(default=NotificationAudience.DRIVER)
    origin: NotificationOrigin = Field(default=NotificationOrigin.LOCAL)
