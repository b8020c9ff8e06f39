"""NotificationDispatcher -- 通知生成与已读状态

通知列表按新到旧排列；未读数始终由列表的 is_read 重新计算，
不单独维护计数器。通知只追加，不删除。
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from ..exceptions import NotFoundError
from ..ids import IdentityAllocator
from ..models.enums import (
    NotificationAudience,
    NotificationOrigin,
    NotificationPriority,
    NotificationType,
)
from ..models.notification import Notification
from ..samples import sample_notifications
from ..timeutil import parse_timestamp, utcnow

log = structlog.get_logger()


class NotificationDispatcher:
    """通知的唯一创建者，也是已读状态的唯一修改者"""

    def __init__(
        self,
        allocator: IdentityAllocator | None = None,
        now: Callable[[], datetime] = utcnow,
        default_audience: NotificationAudience = NotificationAudience.DRIVER,
    ) -> None:
        self._allocator = allocator or IdentityAllocator()
        self._now = now
        self._default_audience = default_audience
        # 新到旧
        self._items: list[Notification] = []
        self._loaded = False
        self._degraded = False

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def loaded(self) -> bool:
        return self._loaded

    def notify(
        self,
        type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        audience: NotificationAudience | None = None,
    ) -> Notification:
        """追加一条本地通知（纯内存操作，总是成功）"""
        notification = Notification(
            notification_id=self._allocator.allocate(),
            type=NotificationType(type),
            title=title,
            message=message,
            created_at=self._now(),
            priority=NotificationPriority(priority),
            audience=audience or self._default_audience,
            origin=NotificationOrigin.LOCAL,
        )
        self._items.insert(0, notification)
        log.debug(
            "notification_created",
            notification_id=notification.notification_id,
            type=notification.type.value,
            audience=notification.audience.value,
        )
        return notification

    def load_server(
        self,
        raw_notifications: list[dict[str, Any]],
        degraded: bool = False,
    ) -> list[Notification]:
        """用服务端快照替换服务端来源的通知，保留本地生成的通知

        已在本地标记为已读的服务端通知保持已读，避免刷新覆盖尚未同步的已读状态。
        """
        read_locally = {
            n.server_id for n in self._items if n.server_id is not None and n.is_read
        }
        known_ids = {
            n.server_id: n.notification_id for n in self._items if n.server_id is not None
        }
        server_items = [
            self._raw_to_notification(raw, read_locally, known_ids)
            for raw in raw_notifications
        ]
        local_items = [n for n in self._items if n.origin == NotificationOrigin.LOCAL]

        merged = local_items + server_items
        merged.sort(key=lambda n: n.created_at, reverse=True)
        self._items = merged
        self._loaded = True
        self._degraded = degraded

        log.info(
            "notifications_loaded",
            server_count=len(server_items),
            local_count=len(local_items),
            unread=self.unread_count(),
            degraded=degraded,
        )
        return self.notifications()

    def fallback(self, reason: str) -> list[Notification]:
        """上游不可达：已有数据保持不变，从未加载过时填充演示通知"""
        if self._loaded:
            self._degraded = True
            log.warning("notifications_degraded_keep_previous", reason=reason)
            return self.notifications()

        log.warning("notifications_degraded_use_sample", reason=reason)
        return self.load_server(sample_notifications(self._now()), degraded=True)

    def get(self, notification_id: str) -> Notification | None:
        for notification in self._items:
            if notification.notification_id == notification_id:
                return notification
        return None

    def mark_read(self, notification_id: str) -> Notification:
        """标记单条通知已读，重复标记为空操作

        Raises:
            NotFoundError: 通知不存在
        """
        for index, notification in enumerate(self._items):
            if notification.notification_id != notification_id:
                continue
            if notification.is_read:
                return notification
            updated = notification.model_copy(update={"is_read": True})
            self._items[index] = updated
            return updated

        raise NotFoundError(f"Notification not found: {notification_id}")

    def mark_all_read(self, audience: NotificationAudience | None = None) -> int:
        """标记作用域内全部通知已读

        Returns:
            本次由未读变为已读的数量
        """
        changed = 0
        for index, notification in enumerate(self._items):
            if notification.is_read:
                continue
            if audience is not None and notification.audience != audience:
                continue
            self._items[index] = notification.model_copy(update={"is_read": True})
            changed += 1
        return changed

    def notifications(
        self,
        audience: NotificationAudience | None = None,
    ) -> list[Notification]:
        """按新到旧返回通知"""
        if audience is None:
            return list(self._items)
        return [n for n in self._items if n.audience == audience]

    def unread_count(self, audience: NotificationAudience | None = None) -> int:
        return sum(1 for n in self.notifications(audience) if not n.is_read)

    def _raw_to_notification(
        self,
        raw: dict[str, Any],
        read_locally: set[str],
        known_ids: dict[str, str],
    ) -> Notification:
        """将服务端通知转换为 Notification 模型"""
        server_id = str(raw["id"]) if raw.get("id") is not None else None

        try:
            notification_type = NotificationType(raw.get("type", "system"))
        except ValueError:
            notification_type = NotificationType.SYSTEM

        try:
            priority = NotificationPriority(raw.get("priority") or "medium")
        except ValueError:
            priority = NotificationPriority.MEDIUM

        is_read = bool(raw.get("is_read", raw.get("read", False)))
        if server_id is not None and server_id in read_locally:
            is_read = True

        return Notification(
            notification_id=known_ids.get(server_id) or self._allocator.allocate(),
            server_id=server_id,
            type=notification_type,
            title=raw.get("title", ""),
            message=raw.get("message", ""),
            created_at=parse_timestamp(raw.get("created_at")) or self._now(),
            is_read=is_read,
            priority=priority,
            audience=self._default_audience,
            origin=NotificationOrigin.SERVER,
        )
