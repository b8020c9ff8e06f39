"""集成测试共享 fixture -- 内存后端 + 真实 FleetApiClient + CoordinationEngine"""

import json
import re
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from binfleet.client import FleetApiClient
from binfleet.coordinator import CoordinationEngine

BASE_URL = "http://fleet.test/api"
TOKEN = "driver-token"


class FakeFleetBackend:
    """模拟收运后端的 REST 行为，经由 httpx.MockTransport 接入"""

    def __init__(self) -> None:
        self.online = True
        self.token_valid = True
        self.requests: list[tuple[str, str]] = []
        self.tasks: dict[str, dict] = {
            "7": {
                "id": 7,
                "bin_id": 47,
                "location": "Krishnarajapuram, Main Road",
                "status": "pending",
                "priority": "high",
                "latitude": 13.0170,
                "longitude": 77.7044,
            },
        }
        self.live_streams: list[dict] = [
            {
                "id": 3,
                "driver_name": "Raj Kumar",
                "location": "Whitefield",
                "status": "in-progress",
                "start_time": "2025-04-28T09:00:00Z",
                "bins_collected": 4,
                "coordinates": {"latitude": 12.97, "longitude": 77.75},
            }
        ]
        self.schedules: list[dict] = [
            {"id": 1, "area": "Whitefield", "day": "Monday", "time": "08:00", "status": "active"}
        ]
        self.notifications: list[dict] = [
            {
                "id": 100,
                "type": "task_assigned",
                "title": "New Task Assigned",
                "message": "Bin #47",
                "created_at": "2025-04-28T09:00:00Z",
                "is_read": False,
            }
        ]
        self.appointments: list[dict] = []
        self.location: tuple[float, float] | None = None
        self.stream: dict | None = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        self.requests.append((request.method, path))

        if not self.online:
            raise httpx.ConnectError("connection refused", request=request)
        if not self.token_valid or request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"success": False, "message": "Invalid token"})

        body = json.loads(request.content) if request.content else {}
        method = request.method

        if method == "GET" and path == "/driver/profile":
            return _ok(profile={"id": 42, "name": "Raj Kumar", "vehicle_info": "Truck #05"})
        if method == "GET" and path == "/driver/tasks":
            return _ok(data=list(self.tasks.values()))
        if method == "GET" and path == "/citizen/live-streams":
            return _ok(data=self.live_streams)
        if method == "GET" and path == "/driver/collection-schedules":
            return _ok(data=self.schedules)
        if method == "GET" and path == "/notifications":
            return _ok(data=self.notifications)
        if method == "PATCH" and path == "/driver/location":
            self.location = (body["latitude"], body["longitude"])
            return _ok(message="Location updated successfully")

        if match := re.fullmatch(r"/driver/tasks/(\w+)/status", path):
            task = self.tasks.get(match.group(1))
            if task is None:
                return httpx.Response(404, json={"success": False, "message": "Task not found"})
            task["status"] = body["status"]
            return _ok(message="Task status updated successfully")
        if match := re.fullmatch(r"/driver/tasks/(\w+)/schedule", path):
            task_id = match.group(1)
            existing = [a for a in self.appointments if a["task_id"] == task_id]
            if method == "DELETE":
                if not existing:
                    return httpx.Response(404, json={"success": False, "message": "No schedule"})
                self.appointments = [a for a in self.appointments if a["task_id"] != task_id]
                return _ok(message="Schedule cancelled successfully.")
            if not body.get("date") or not body.get("time_slot"):
                return httpx.Response(
                    400, json={"success": False, "message": "Date and time slot are required"}
                )
            if method == "PUT":
                if not existing:
                    return httpx.Response(404, json={"success": False, "message": "No schedule"})
                existing[-1].update(body)
                return _ok(message="Schedule updated successfully")
            record = {"id": 500 + len(self.appointments) + 1, "task_id": task_id, **body}
            self.appointments.append(record)
            return _ok(schedule=record)
        if method == "POST" and path == "/driver/stream/start":
            self.stream = {
                "id": 31,
                "task_id": body["task_id"],
                "task_location": body.get("location"),
                "status": "in-progress",
                "start_time": "2025-04-28T09:30:00Z",
            }
            self._set_live_video(True)
            return _ok(message="Live stream started", streamId=31)
        if method == "POST" and path == "/driver/stream/stop":
            self.stream = None
            self._set_live_video(False)
            return _ok(message="Live stream stopped")
        if method == "GET" and path == "/driver/stream/status":
            return _ok(data=self.stream)
        if match := re.fullmatch(r"/notifications/(\w+)/read", path):
            for item in self.notifications:
                if str(item["id"]) == match.group(1):
                    item["is_read"] = True
            return _ok()

        return httpx.Response(404, json={"success": False, "message": "Not found"})

    def _set_live_video(self, on: bool) -> None:
        # 当前司机的直播会话
        for session in self.live_streams:
            if session["driver_name"] == "Raj Kumar":
                session["has_live_video"] = on


def _ok(**payload) -> httpx.Response:
    return httpx.Response(200, json={"success": True, **payload})


@pytest.fixture
def backend() -> FakeFleetBackend:
    return FakeFleetBackend()


@pytest_asyncio.fixture
async def api_client(backend) -> AsyncGenerator[FleetApiClient, None]:
    client = FleetApiClient(base_url=BASE_URL, api_token=TOKEN, transport=backend.transport())
    yield client
    await client.close()


@pytest.fixture
def auth_events() -> list:
    return []


@pytest.fixture
def integration_engine(api_client, auth_events) -> CoordinationEngine:
    return CoordinationEngine(api_client, on_auth_expired=auth_events.append)
