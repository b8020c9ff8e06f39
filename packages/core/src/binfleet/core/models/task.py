"""Task Domain Model

Task 仅能通过 TaskStore 的流转操作修改，核心层从不删除任务。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import TaskPriority, TaskStatus
from .position import Position


class Appointment(BaseModel):
    """司机为单个任务提出的一次性收运预约

    同一任务最多持有一个预约，新的提议覆盖旧的。
    """

    appointment_id: str = Field(description="本地唯一标识，ULID 格式")
    task_id: str = Field(description="关联的 Task ID")
    date: str = Field(description="预约日期，ISO 格式 YYYY-MM-DD")
    time_slot: str = Field(description="时间段，HH:MM-HH:MM")
    scheduled_time: datetime = Field(description="预约日期 + 时间段起点")
    status: str = Field(default="scheduled", description="预约状态")
    created_at: datetime = Field(description="创建时间")
    server_id: str | None = Field(default=None, description="服务端确认后的预约 ID")
    synced: bool = Field(default=False, description="是否已同步到服务端")
    replaces_server: bool = Field(
        default=False,
        description="覆盖了服务端已确认的预约，同步时走改期接口",
    )


class Task(BaseModel):
    """收运任务

    status 的推进必须满足 VALID_TRANSITIONS，completed 之后不再回到
    pending / in-progress。
    """

    task_id: str = Field(description="任务 ID（服务端分配）")
    bin_id: str = Field(description="垃圾桶编号")
    location: str = Field(default="", description="位置描述")
    position: Position = Field(description="任务坐标")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    scheduled_time: datetime | None = Field(default=None, description="计划时间")
    appointment: Appointment | None = Field(default=None, description="司机提出的预约")
    notes: str = Field(default="", description="备注")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    updated_at: datetime = Field(description="最近一次本地更新时间")


class MutationResult(BaseModel):
    """TaskStore 变更结果

    本地状态总是先行推进；远端同步失败时 synced=False，
    warning 携带可展示给用户的软提示。
    """

    task: Task
    synced: bool = Field(default=True, description="远端是否已确认")
    warning: str = Field(default="", description="软警告信息")
    changed: bool = Field(default=True, description="本次调用是否改变了本地状态")
