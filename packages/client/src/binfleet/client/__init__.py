"""binfleet Client -- 收运后端 API 访问层

packages/client 的公开接口导出。
"""

from .api import FleetApiClient
from .config import ClientConfig, load_client_config

__all__ = [
    "FleetApiClient",
    "ClientConfig",
    "load_client_config",
]
