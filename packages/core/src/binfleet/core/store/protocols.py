"""外部接口 Protocol 定义

核心组件只依赖这些结构化接口，具体实现由 binfleet.client 提供，
测试中用 AsyncMock 替代。
"""

from typing import Any, Protocol


class TaskSyncApi(Protocol):
    """TaskStore 使用的远端持久化接口"""

    async def update_task_status(self, task_id: str, status: str) -> dict[str, Any]:
        """更新任务状态，返回服务端确认"""
        ...

    async def schedule_task_collection(
        self,
        task_id: str,
        date: str,
        time_slot: str,
    ) -> dict[str, Any]:
        """提交任务预约，返回服务端预约记录"""
        ...

    async def reschedule_task_collection(
        self,
        task_id: str,
        date: str,
        time_slot: str,
    ) -> dict[str, Any]:
        """修改服务端已有的任务预约"""
        ...

    async def cancel_task_schedule(self, task_id: str) -> dict[str, Any]:
        """取消任务预约"""
        ...


class FleetApi(TaskSyncApi, Protocol):
    """协调引擎消费的完整外部接口"""

    async def fetch_tasks(self, driver_id: str | None = None) -> list[dict[str, Any]]:
        ...

    async def fetch_driver_profile(self) -> dict[str, Any]:
        ...

    async def fetch_recurring_schedules(self) -> list[dict[str, Any]]:
        ...

    async def fetch_active_live_sessions(self) -> list[dict[str, Any]]:
        ...

    async def fetch_notifications(self) -> list[dict[str, Any]]:
        ...

    async def mark_notification_read(self, notification_id: str) -> dict[str, Any]:
        ...

    async def update_driver_location(
        self,
        latitude: float,
        longitude: float,
    ) -> dict[str, Any]:
        ...

    async def start_stream(self, task_id: str, location: str) -> dict[str, Any]:
        """开始收运直播，返回服务端记录（含 streamId）"""
        ...

    async def stop_stream(self, bins_collected: int = 0) -> dict[str, Any]:
        ...

    async def fetch_stream_status(self) -> dict[str, Any] | None:
        """当前司机进行中的直播，没有时返回 None"""
        ...

    def invalidate_session(self) -> None:
        """401 后清除本地凭证"""
        ...
