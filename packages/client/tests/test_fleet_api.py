"""FleetApiClient 单元测试

通过 httpx.MockTransport 验证请求形状、响应体解析与错误映射。
"""

import json

import httpx
import pytest
from binfleet.client import ClientConfig, FleetApiClient
from binfleet.core.exceptions import (
    AuthError,
    InputValidationError,
    NotFoundError,
    TransportError,
)
from pydantic import SecretStr


def _ok(key: str = "data", value=None) -> httpx.Response:
    return httpx.Response(200, json={"success": True, key: value})


class TestRequests:
    async def test_fetch_tasks_sends_bearer_token(self, make_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _ok(value=[{"id": 1}])

        client = make_client(handler)
        tasks = await client.fetch_tasks("42")
        await client.close()

        assert tasks == [{"id": 1}]
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/api/driver/tasks"
        assert request.url.params["driver_id"] == "42"
        assert request.headers["Authorization"] == "Bearer tok-123"

    async def test_update_task_status_body(self, make_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "message": "ok"})

        client = make_client(handler)
        await client.update_task_status("7", "in-progress")

        assert seen[0].method == "PATCH"
        assert seen[0].url.path == "/api/driver/tasks/7/status"
        assert json.loads(seen[0].content) == {"status": "in-progress"}

    async def test_schedule_returns_schedule_record(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["date"] == "2025-05-01"
            assert body["time_slot"] == "08:00-10:00"
            return _ok("schedule", {"id": 501, "status": "scheduled"})

        client = make_client(handler)
        schedule = await client.schedule_task_collection("7", "2025-05-01", "08:00-10:00")
        assert schedule == {"id": 501, "status": "scheduled"}

    async def test_profile_envelope(self, make_client):
        client = make_client(lambda r: _ok("profile", {"id": 3, "name": "Raj"}))
        assert await client.fetch_driver_profile() == {"id": 3, "name": "Raj"}

    @pytest.mark.parametrize(
        "method_name,path",
        [
            ("fetch_recurring_schedules", "/api/driver/collection-schedules"),
            ("fetch_active_live_sessions", "/api/citizen/live-streams"),
            ("fetch_notifications", "/api/notifications"),
        ],
    )
    async def test_list_endpoints(self, make_client, method_name: str, path: str):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == path
            return _ok(value=[{"id": 1}, {"id": 2}])

        client = make_client(handler)
        assert len(await getattr(client, method_name)()) == 2

    async def test_null_data_is_empty_list(self, make_client):
        client = make_client(lambda r: _ok(value=None))
        assert await client.fetch_notifications() == []

    async def test_reschedule_uses_put(self, make_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "message": "updated"})

        client = make_client(handler)
        await client.reschedule_task_collection("7", "2025-05-02", "14:00-16:00")

        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/api/driver/tasks/7/schedule"
        assert json.loads(seen[0].content)["time_slot"] == "14:00-16:00"

    async def test_cancel_schedule_uses_delete(self, make_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        client = make_client(handler)
        await client.cancel_task_schedule("7")

        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/api/driver/tasks/7/schedule"

    async def test_stream_start_and_stop(self, make_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "streamId": 31})

        client = make_client(handler)
        started = await client.start_stream("7", "Krishnarajapuram")
        await client.stop_stream(4)

        assert started["streamId"] == 31
        assert [(r.method, r.url.path) for r in seen] == [
            ("POST", "/api/driver/stream/start"),
            ("POST", "/api/driver/stream/stop"),
        ]
        assert json.loads(seen[0].content) == {"task_id": "7", "location": "Krishnarajapuram"}
        assert json.loads(seen[1].content) == {"bins_collected": 4}

    async def test_stream_status_none_when_idle(self, make_client):
        client = make_client(lambda r: _ok(value=None))
        assert await client.fetch_stream_status() is None

    async def test_stream_status_record(self, make_client):
        client = make_client(lambda r: _ok(value={"id": 31, "task_id": 7}))
        assert await client.fetch_stream_status() == {"id": 31, "task_id": 7}

    async def test_mark_notification_read(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PATCH"
            assert request.url.path == "/api/notifications/12/read"
            return httpx.Response(200, json={"success": True})

        client = make_client(handler)
        await client.mark_notification_read("12")

    async def test_update_driver_location(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/driver/location"
            assert json.loads(request.content) == {"latitude": 12.97, "longitude": 77.59}
            return httpx.Response(200, json={"success": True})

        client = make_client(handler)
        await client.update_driver_location(12.97, 77.59)

    async def test_no_token_no_authorization_header(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            assert "Authorization" not in request.headers
            return _ok(value=[])

        client = make_client(handler, token="")
        assert client.authenticated is False
        await client.fetch_tasks()


class TestErrorMapping:
    async def test_401_raises_auth_error_and_clears_token(self, make_client):
        client = make_client(
            lambda r: httpx.Response(401, json={"success": False, "message": "Invalid token"})
        )
        with pytest.raises(AuthError, match="Invalid token"):
            await client.fetch_tasks()
        assert client.authenticated is False

    async def test_404(self, make_client):
        client = make_client(lambda r: httpx.Response(404, json={"success": False}))
        with pytest.raises(NotFoundError):
            await client.fetch_recurring_schedules()

    @pytest.mark.parametrize("status_code", [400, 422])
    async def test_validation_rejection(self, make_client, status_code: int):
        client = make_client(
            lambda r: httpx.Response(
                status_code, json={"success": False, "message": "Date and time slot are required"}
            )
        )
        with pytest.raises(InputValidationError, match="Date and time slot"):
            await client.schedule_task_collection("7", "", "")

    async def test_500_is_transport_error(self, make_client):
        client = make_client(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(TransportError) as exc_info:
            await client.fetch_tasks()
        assert exc_info.value.status_code == 500

    async def test_success_false_is_transport_error(self, make_client):
        client = make_client(
            lambda r: httpx.Response(200, json={"success": False, "message": "Failed to fetch"})
        )
        with pytest.raises(TransportError, match="Failed to fetch"):
            await client.fetch_notifications()

    async def test_malformed_body(self, make_client):
        client = make_client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(TransportError):
            await client.fetch_tasks()

    async def test_connect_error(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(TransportError) as exc_info:
            await client.fetch_tasks()
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    async def test_timeout(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = make_client(handler)
        with pytest.raises(TransportError, match="timed out"):
            await client.fetch_tasks()


class TestHealthAndSession:
    async def test_health_ok(self, make_client):
        client = make_client(lambda r: httpx.Response(200, json={"status": "ok"}))
        assert await client.health_check() is True

    async def test_health_never_raises(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client = make_client(handler)
        assert await client.health_check() is False

    async def test_set_token_after_invalidate(self, make_client):
        client = make_client(lambda r: _ok(value=[]))
        client.invalidate_session()
        assert client.authenticated is False
        client.set_token("fresh")
        assert client.authenticated is True

    async def test_from_config(self):
        config = ClientConfig(base_url="http://x/api/", api_token=SecretStr("t"), timeout_s=9)
        async with FleetApiClient.from_config(config) as client:
            assert client.authenticated is True
            assert client._base_url == "http://x/api"
