"""演示数据集

上游不可达且本地没有可用快照时，各组件以这些数据填充视图，
并通过 degraded 标记与真实数据区分。数据为原始接口形状，
与服务端响应走同一套解析逻辑。
"""

from datetime import datetime, timedelta
from typing import Any


def sample_tasks(now: datetime) -> list[dict[str, Any]]:
    """司机任务演示数据"""
    return [
        {
            "id": 1,
            "task_type": "collection",
            "bin_id": 47,
            "location": "Krishnarajapuram, Main Road",
            "status": "pending",
            "scheduled_time": now.isoformat(),
            "priority": "high",
            "notes": "Urgent collection needed",
            "latitude": 13.0170,
            "longitude": 77.7044,
        },
        {
            "id": 2,
            "task_type": "collection",
            "bin_id": 89,
            "location": "Whitefield, Near Mall",
            "status": "pending",
            "scheduled_time": (now + timedelta(minutes=30)).isoformat(),
            "priority": "medium",
            "notes": "Regular collection",
            "latitude": 12.9698,
            "longitude": 77.7500,
        },
    ]


def sample_profile() -> dict[str, Any]:
    """司机档案演示数据"""
    return {
        "id": 0,
        "name": "Demo Driver",
        "email": "driver@example.com",
        "phone": "",
        "vehicle_info": "Truck #05 (KA05AB1234)",
        "license_number": "DL-1234567890",
        "total_collections": 1247,
        "rating": 4.8,
        "status": "active",
    }


def sample_live_sessions(now: datetime) -> list[dict[str, Any]]:
    """直播会话演示数据"""
    return [
        {
            "id": 1,
            "driver_name": "Mike Johnson",
            "vehicle_info": "Garbage Truck #25",
            "location": "TC Palya Main Road",
            "status": "in-progress",
            "start_time": (now - timedelta(minutes=30)).isoformat(),
            "bins_collected": 8,
            "coordinates": {"latitude": 13.0191, "longitude": 77.7037},
            "has_live_video": True,
            "last_updated": now.isoformat(),
        },
        {
            "id": 2,
            "driver_name": "Rajesh Kumar",
            "vehicle_info": "Garbage Truck #18",
            "location": "Whitefield Area",
            "status": "in-progress",
            "start_time": (now - timedelta(minutes=20)).isoformat(),
            "bins_collected": 12,
            "coordinates": {"latitude": 12.9698, "longitude": 77.7500},
            "has_live_video": True,
            "last_updated": now.isoformat(),
        },
    ]


def sample_recurring_schedules(now: datetime) -> list[dict[str, Any]]:
    """周期排班演示数据"""
    return [
        {
            "id": 1,
            "area": "TC Palya Main Road",
            "day": "Monday",
            "time": "08:00",
            "frequency": "weekly",
            "assigned_driver": "Mike Johnson",
            "status": "active",
            "created_at": now.isoformat(),
            "driver_id": 1,
            "bin_ids": [1, 2],
            "priority": "medium",
        },
        {
            "id": 2,
            "area": "Whitefield Area",
            "day": "Wednesday",
            "time": "10:00",
            "frequency": "weekly",
            "assigned_driver": "Sarah Wilson",
            "status": "active",
            "created_at": (now - timedelta(days=1)).isoformat(),
            "driver_id": 2,
            "bin_ids": [3, 4],
            "priority": "medium",
        },
        {
            "id": 3,
            "area": "Marathahalli",
            "day": "Friday",
            "time": "14:00",
            "frequency": "bi-weekly",
            "assigned_driver": "Rajesh Kumar",
            "status": "active",
            "created_at": (now - timedelta(days=2)).isoformat(),
            "driver_id": 3,
            "bin_ids": [5],
            "priority": "low",
        },
    ]


def sample_notifications(now: datetime) -> list[dict[str, Any]]:
    """司机通知演示数据"""
    return [
        {
            "id": 1,
            "type": "system",
            "title": "Welcome to Your Shift",
            "message": "You have 3 assigned tasks for today. Check your task list for details.",
            "created_at": (now - timedelta(minutes=30)).isoformat(),
            "is_read": True,
            "priority": "medium",
        },
        {
            "id": 2,
            "type": "task_assigned",
            "title": "New Task Assigned",
            "message": "Urgent collection requested at City Center, Block B",
            "created_at": (now - timedelta(minutes=15)).isoformat(),
            "is_read": False,
            "priority": "high",
        },
    ]
