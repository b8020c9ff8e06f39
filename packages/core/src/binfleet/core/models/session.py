"""LiveSession Domain Model -- 正在进行的收运会话

每次刷新整体替换，local_id 在刷新周期内有效，server_id 仅用于关联。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import SessionStatus
from .position import Position

# 进度换算：每个桶 10%，封顶 100%
PROGRESS_PER_BIN = 10
PROGRESS_CAP = 100


def percent_complete(bins_collected: int) -> int:
    """收运进度百分比：min(bins * 10, 100)"""
    return min(max(bins_collected, 0) * PROGRESS_PER_BIN, PROGRESS_CAP)


def format_duration(start_time: datetime | None, now: datetime) -> str:
    """会话持续时间，>= 1 小时为 "{h}h {m}m"，否则 "{m}m" """
    if start_time is None:
        return "0m"
    seconds = max((now - start_time).total_seconds(), 0)
    minutes = int(seconds // 60)
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"


class LiveSession(BaseModel):
    """一个司机当前的收运会话"""

    local_id: str = Field(description="本地标识，每个刷新周期重新分配")
    server_id: str | None = Field(default=None, description="服务端标识，仅用于关联")
    driver_name: str = Field(description="司机姓名")
    vehicle_info: str = Field(default="", description="车辆描述")
    location: str = Field(default="Unknown Location", description="位置描述")
    position: Position | None = Field(default=None, description="司机最近坐标")
    status: SessionStatus = Field(default=SessionStatus.ACTIVE, description="会话状态")
    start_time: datetime = Field(description="开始时间")
    bins_collected: int = Field(default=0, ge=0, description="已收运桶数")
    last_updated: datetime = Field(description="最近更新时间")
    has_live_video: bool = Field(default=False, description="是否有实时视频")

    # 派生展示字段
    duration: str = Field(default="0m", description="持续时间展示串")
    progress_percent: int = Field(default=0, ge=0, le=100, description="收运进度")


class CollectionStream(BaseModel):
    """本机司机正在进行的收运直播

    服务端据此为该司机的 LiveSession 标记 has_live_video。
    """

    task_id: str = Field(description="直播对应的任务 ID")
    location: str = Field(default="", description="收运位置描述")
    started_at: datetime = Field(description="开始时间")
    server_id: str | None = Field(default=None, description="服务端直播记录 ID")
    synced: bool = Field(default=False, description="服务端是否已确认开始")
