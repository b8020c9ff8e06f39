"""ClientConfig -- 后端 API 客户端配置加载

从环境变量加载配置，不硬编码后端地址。
"""

import os

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_TIMEOUT_S = 15


class ClientConfig(BaseModel):
    """API 客户端配置 -- 从环境变量加载

    环境变量:
        BINFLEET_API_URL: 后端 API 基础地址（默认 http://localhost:5000/api）
        BINFLEET_API_TOKEN: Bearer token
        BINFLEET_API_TIMEOUT_S: 请求超时（秒，默认 15）
    """

    base_url: str = Field(default=DEFAULT_API_URL, description="后端 API 基础 URL")
    api_token: SecretStr = Field(
        default=SecretStr(""),
        description="登录后获得的 Bearer token",
    )
    timeout_s: int = Field(default=DEFAULT_TIMEOUT_S, ge=1, description="请求超时（秒）")


def load_client_config() -> ClientConfig:
    """从环境变量加载客户端配置

    Returns:
        ClientConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("BINFLEET_API_URL"):
        kwargs["base_url"] = val

    if val := os.environ.get("BINFLEET_API_TOKEN"):
        kwargs["api_token"] = SecretStr(val)

    if val := os.environ.get("BINFLEET_API_TIMEOUT_S"):
        try:
            timeout = int(val)
        except ValueError:
            timeout = 0
        if timeout >= 1:
            kwargs["timeout_s"] = timeout
        else:
            log.warning(
                "invalid_timeout_config",
                env_var="BINFLEET_API_TIMEOUT_S",
                value=val,
                fallback=DEFAULT_TIMEOUT_S,
            )
            # 使用默认值，不阻塞启动

    return ClientConfig(**kwargs)
