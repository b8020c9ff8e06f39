"""packages/client 测试配置"""

from collections.abc import Callable

import httpx
import pytest
from binfleet.client import FleetApiClient

BASE_URL = "http://fleet.test/api"


@pytest.fixture
def make_client() -> Callable[..., FleetApiClient]:
    """以 httpx.MockTransport 构造客户端，handler 记录收到的请求"""

    def _make(handler: Callable[[httpx.Request], httpx.Response], token: str = "tok-123"):
        return FleetApiClient(
            base_url=BASE_URL,
            api_token=token,
            timeout_s=5,
            transport=httpx.MockTransport(handler),
        )

    return _make
