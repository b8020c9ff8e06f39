"""协调引擎配置 -- 可通过环境变量覆盖

包含各数据源的刷新间隔、本地快照缓存路径、默认坐标等。
"""

import os

import structlog
from pydantic import BaseModel, Field

from .models.position import Position

log = structlog.get_logger()

# 城市中心坐标：任务缺失坐标时使用
DEFAULT_POSITION = Position(latitude=12.9716, longitude=77.5946)

# 各数据源默认刷新间隔（秒）
DEFAULT_LOCATION_INTERVAL_S = 10.0
DEFAULT_SESSIONS_INTERVAL_S = 15.0
DEFAULT_SCHEDULES_INTERVAL_S = 30.0
DEFAULT_DASHBOARD_INTERVAL_S = 60.0


class CoordinatorConfig(BaseModel):
    """协调引擎配置

    环境变量:
        BINFLEET_REFRESH_LOCATION_S: 司机位置刷新间隔（默认 10）
        BINFLEET_REFRESH_SESSIONS_S: 直播会话刷新间隔（默认 15）
        BINFLEET_REFRESH_SCHEDULES_S: 排班刷新间隔（默认 30）
        BINFLEET_REFRESH_DASHBOARD_S: 全量看板刷新间隔（默认 60）
        BINFLEET_STABLE_SESSION_IDS: 按 server_id 复用会话本地标识（默认 false）
        BINFLEET_CACHE_PATH: SQLite 快照缓存路径（为空表示禁用）
    """

    location_interval_s: float = Field(default=DEFAULT_LOCATION_INTERVAL_S, gt=0)
    sessions_interval_s: float = Field(default=DEFAULT_SESSIONS_INTERVAL_S, gt=0)
    schedules_interval_s: float = Field(default=DEFAULT_SCHEDULES_INTERVAL_S, gt=0)
    dashboard_interval_s: float = Field(default=DEFAULT_DASHBOARD_INTERVAL_S, gt=0)
    stable_session_ids: bool = Field(
        default=False,
        description="True 时直播会话的本地标识按 server_id 跨周期复用",
    )
    cache_path: str = Field(default="", description="快照缓存 SQLite 路径")
    default_position: Position = Field(default=DEFAULT_POSITION)


_INTERVAL_ENV = {
    "BINFLEET_REFRESH_LOCATION_S": "location_interval_s",
    "BINFLEET_REFRESH_SESSIONS_S": "sessions_interval_s",
    "BINFLEET_REFRESH_SCHEDULES_S": "schedules_interval_s",
    "BINFLEET_REFRESH_DASHBOARD_S": "dashboard_interval_s",
}


def load_coordinator_config() -> CoordinatorConfig:
    """从环境变量加载协调引擎配置

    非法数值记录 warning 并使用默认值，不阻塞启动。
    """
    kwargs: dict = {}

    for env_var, field_name in _INTERVAL_ENV.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            interval = float(val)
        except ValueError:
            interval = 0.0
        if interval <= 0:
            log.warning(
                "invalid_interval_config",
                env_var=env_var,
                value=val,
                fallback=CoordinatorConfig.model_fields[field_name].default,
            )
            continue
        kwargs[field_name] = interval

    if val := os.environ.get("BINFLEET_STABLE_SESSION_IDS"):
        kwargs["stable_session_ids"] = val.strip().lower() in ("1", "true", "yes")

    if val := os.environ.get("BINFLEET_CACHE_PATH"):
        kwargs["cache_path"] = val

    return CoordinatorConfig(**kwargs)
