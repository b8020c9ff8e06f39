"""FleetApiClient -- 收运后端 REST API 封装

所有请求携带 Bearer token；响应统一为
{"success": bool, "data" | "profile" | "schedule": ..., "message": str}。
HTTP 层异常在这里映射为 binfleet.core.exceptions 中的异常类型，
上层组件不感知 httpx。
"""

from typing import Any

import httpx
import structlog

from binfleet.core.exceptions import (
    AuthError,
    InputValidationError,
    NotFoundError,
    TransportError,
)

from .config import ClientConfig

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5


class FleetApiClient:
    """收运后端客户端

    实现 binfleet.core.store.protocols.FleetApi。
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000/api",
        api_token: str = "",
        timeout_s: int = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: 后端 API 基础 URL
            api_token: Bearer token，空串表示未登录
            timeout_s: 请求超时（秒）
            transport: 自定义传输层（测试中注入 httpx.MockTransport）
        """
        self._base_url = base_url.rstrip("/")
        self._token = api_token
        self._timeout_s = timeout_s
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "FleetApiClient":
        return cls(
            base_url=config.base_url,
            api_token=config.api_token.get_secret_value(),
            timeout_s=config.timeout_s,
            transport=transport,
        )

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def set_token(self, token: str) -> None:
        """外部重新认证后注入新 token"""
        self._token = token

    def invalidate_session(self) -> None:
        """清除本地凭证，后续请求不再携带 Authorization"""
        if self._token:
            log.info("api_session_invalidated")
        self._token = ""

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> "FleetApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ---- 任务 ----

    async def fetch_tasks(self, driver_id: str | None = None) -> list[dict[str, Any]]:
        params = {"driver_id": driver_id} if driver_id else None
        body = await self._request("GET", "/driver/tasks", params=params)
        return list(body.get("data") or [])

    async def update_task_status(self, task_id: str, status: str) -> dict[str, Any]:
        return await self._request(
            "PATCH", f"/driver/tasks/{task_id}/status", json={"status": status}
        )

    async def schedule_task_collection(
        self,
        task_id: str,
        date: str,
        time_slot: str,
    ) -> dict[str, Any]:
        """提交一次性预约

        Returns:
            服务端预约记录（schedule 字段），缺失时返回整个响应体
        """
        body = await self._request(
            "POST",
            f"/driver/tasks/{task_id}/schedule",
            json={"date": date, "time_slot": time_slot, "schedule_type": "one-time"},
        )
        return body.get("schedule") or body

    async def reschedule_task_collection(
        self,
        task_id: str,
        date: str,
        time_slot: str,
    ) -> dict[str, Any]:
        body = await self._request(
            "PUT",
            f"/driver/tasks/{task_id}/schedule",
            json={"date": date, "time_slot": time_slot, "schedule_type": "one-time"},
        )
        return body.get("schedule") or body

    async def cancel_task_schedule(self, task_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/driver/tasks/{task_id}/schedule")

    # ---- 直播 ----

    async def start_stream(self, task_id: str, location: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/driver/stream/start",
            json={"task_id": task_id, "location": location},
        )

    async def stop_stream(self, bins_collected: int = 0) -> dict[str, Any]:
        return await self._request(
            "POST", "/driver/stream/stop", json={"bins_collected": bins_collected}
        )

    async def fetch_stream_status(self) -> dict[str, Any] | None:
        body = await self._request("GET", "/driver/stream/status")
        return body.get("data") or None

    # ---- 司机 ----

    async def fetch_driver_profile(self) -> dict[str, Any]:
        body = await self._request("GET", "/driver/profile")
        return body.get("profile") or body.get("data") or {}

    async def update_driver_location(
        self,
        latitude: float,
        longitude: float,
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            "/driver/location",
            json={"latitude": latitude, "longitude": longitude},
        )

    async def fetch_recurring_schedules(self) -> list[dict[str, Any]]:
        body = await self._request("GET", "/driver/collection-schedules")
        return list(body.get("data") or [])

    async def fetch_active_live_sessions(self) -> list[dict[str, Any]]:
        body = await self._request("GET", "/citizen/live-streams")
        return list(body.get("data") or [])

    # ---- 通知 ----

    async def fetch_notifications(self) -> list[dict[str, Any]]:
        body = await self._request("GET", "/notifications")
        return list(body.get("data") or [])

    async def mark_notification_read(self, notification_id: str) -> dict[str, Any]:
        return await self._request("PATCH", f"/notifications/{notification_id}/read")

    async def health_check(self) -> bool:
        """检查后端可达性

        发送 GET {base_url}/health 请求。

        Returns:
            True 如果后端可用，False 如果不可达或异常

        注意: 此方法不抛出异常，超时固定为 5 秒。
        """
        try:
            resp = await self._client().get(
                f"{self._base_url}/health", timeout=HEALTH_CHECK_TIMEOUT_S
            )
            return resp.status_code == 200
        except httpx.HTTPError as e:
            log.warning("api_health_check_failed", error=str(e))
            return False

    # ---- 内部 ----

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self._timeout_s,
                transport=self._transport,
            )
        return self._http

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """发送请求并解析统一响应体

        Raises:
            TransportError: 连接失败、超时、5xx 或 success=false
            AuthError: 401（同时清除本地 token）
            NotFoundError: 404
            InputValidationError: 400 / 422
        """
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client().request(
                method, url, headers=self._headers(), **kwargs
            )
        except httpx.TimeoutException as e:
            log.warning("api_request_timeout", method=method, path=path)
            raise TransportError(f"Request timed out: {method} {path}", original_error=e) from e
        except httpx.TransportError as e:
            log.warning(
                "api_request_unreachable",
                method=method,
                path=path,
                error_type=type(e).__name__,
            )
            raise TransportError(
                f"Backend unreachable: {method} {path} -- {e}", original_error=e
            ) from e

        message = self._error_message(resp)
        if resp.status_code == 401:
            self.invalidate_session()
            raise AuthError(message or "Authentication failed")
        if resp.status_code == 404:
            raise NotFoundError(message or f"Not found: {method} {path}")
        if resp.status_code in (400, 422):
            raise InputValidationError(message or f"Rejected input: {method} {path}")
        if not resp.is_success:
            log.warning(
                "api_request_failed",
                method=method,
                path=path,
                status_code=resp.status_code,
            )
            raise TransportError(
                message or f"Unexpected status {resp.status_code}: {method} {path}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise TransportError(
                f"Malformed response body: {method} {path}",
                status_code=resp.status_code,
                original_error=e,
            ) from e

        if not isinstance(body, dict):
            raise TransportError(
                f"Unexpected response shape: {method} {path}",
                status_code=resp.status_code,
            )
        if body.get("success") is False:
            raise TransportError(
                body.get("message") or f"Request unsuccessful: {method} {path}",
                status_code=resp.status_code,
            )

        log.debug("api_request_completed", method=method, path=path)
        return body

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        if resp.is_success:
            return ""
        try:
            body = resp.json()
        except ValueError:
            return ""
        if isinstance(body, dict):
            return str(body.get("message") or "")
        return ""
