"""RefreshScheduler -- 按数据源独立节拍的周期刷新

每个数据源一个 asyncio.Task，节拍互不影响，可以重叠执行。
任一任务抛出 AuthError 时停止全部任务并通知上层重新认证；
其他异常记录日志后继续下一轮。
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from binfleet.core.exceptions import AuthError

from .clock import CancellationToken, Clock, SystemClock

log = structlog.get_logger()

RefreshJob = Callable[[CancellationToken], Awaitable[object]]
AuthErrorHandler = Callable[[AuthError], Awaitable[None] | None]


class _Registration:
    def __init__(self, name: str, interval_s: float, job: RefreshJob) -> None:
        self.name = name
        self.interval_s = interval_s
        self.job = job
        self.runs = 0
        self.failures = 0


class RefreshScheduler:
    """周期刷新调度器"""

    def __init__(
        self,
        clock: Clock | None = None,
        on_auth_error: AuthErrorHandler | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._on_auth_error = on_auth_error
        self._jobs: dict[str, _Registration] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._token = CancellationToken()
        self._auth_failed = False

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    @property
    def token(self) -> CancellationToken:
        return self._token

    def register(self, name: str, interval_s: float, job: RefreshJob) -> None:
        """登记一个数据源的刷新任务

        Raises:
            ValueError: 间隔非正数，或调度器已启动后重复登记同名任务
        """
        if interval_s <= 0:
            raise ValueError(f"Refresh interval must be positive: {name}={interval_s}")
        if name in self._tasks:
            raise ValueError(f"Refresh job already running: {name}")
        self._jobs[name] = _Registration(name, interval_s, job)

    def stats(self) -> dict[str, dict[str, float | int]]:
        return {
            name: {"interval_s": r.interval_s, "runs": r.runs, "failures": r.failures}
            for name, r in self._jobs.items()
        }

    def start(self) -> None:
        """启动全部已登记任务（需在事件循环内调用）"""
        if self.running:
            return
        self._token = CancellationToken()
        self._auth_failed = False
        for name, registration in self._jobs.items():
            self._tasks[name] = asyncio.create_task(
                self._loop(registration, self._token),
                name=f"refresh:{name}",
            )
        log.info(
            "refresh_scheduler_started",
            jobs={name: r.interval_s for name, r in self._jobs.items()},
        )

    async def stop(self) -> None:
        """整体取消全部刷新任务，在途拉取的结果将被丢弃"""
        self._token.cancel()
        current = asyncio.current_task()
        tasks = [t for t in self._tasks.values() if t is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        log.info("refresh_scheduler_stopped")

    async def run_once(self, name: str) -> None:
        """立即执行一次指定任务（不影响其节拍）"""
        await self._jobs[name].job(self._token)

    async def _loop(self, registration: _Registration, token: CancellationToken) -> None:
        # 每个任务运行在独立的 context 副本中，job 字段只作用于本任务的日志
        structlog.contextvars.bind_contextvars(job=registration.name)
        while not token.cancelled:
            try:
                await registration.job(token)
                registration.runs += 1
            except asyncio.CancelledError:
                raise
            except AuthError as e:
                registration.failures += 1
                log.warning("refresh_auth_failed", job=registration.name, error=str(e))
                await self._handle_auth_error(e)
                return
            except Exception as e:
                registration.failures += 1
                log.error(
                    "refresh_job_failed",
                    job=registration.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            if token.cancelled:
                return
            await self._clock.sleep(registration.interval_s)

    async def _handle_auth_error(self, error: AuthError) -> None:
        # 多个任务可能同时遇到 401，只处理一次
        if self._auth_failed:
            return
        self._auth_failed = True
        await self.stop()
        if self._on_auth_error is not None:
            result = self._on_auth_error(error)
            if asyncio.iscoroutine(result):
                await result
