"""CLI 入口模块 -- python -m binfleet.coordinator <command>

支持的命令：
  run                          启动协调引擎与周期刷新，Ctrl-C 退出
  snapshot                     执行一次全量刷新并输出摘要 JSON
  distance LAT1 LON1 LAT2 LON2 计算两点直线距离
"""

import asyncio
import json
import sys

import structlog

from binfleet.client import FleetApiClient, load_client_config
from binfleet.core.config import load_coordinator_config
from binfleet.core.exceptions import AuthError
from binfleet.core.geo import format_distance_km, haversine_distance_km
from binfleet.core.store import SnapshotCache

from .engine import CoordinationEngine
from .logging_config import setup_logging

log = structlog.get_logger()

USAGE = """用法: python -m binfleet.coordinator <command>
命令:
  run                          启动协调引擎与周期刷新
  snapshot                     执行一次全量刷新并输出摘要 JSON
  distance LAT1 LON1 LAT2 LON2 计算两点直线距离（公里）"""


def main(argv: list[str] | None = None) -> int:
    """CLI 主入口"""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE)
        return 1

    command = args[0]
    if command == "distance":
        return distance(args[1:])
    if command not in ("run", "snapshot"):
        print(f"未知命令: {command}")
        print(USAGE)
        return 1

    setup_logging()
    if command == "snapshot":
        return asyncio.run(snapshot())
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    return 0


def distance(args: list[str]) -> int:
    if len(args) != 4:
        print("用法: python -m binfleet.coordinator distance LAT1 LON1 LAT2 LON2")
        return 1
    try:
        lat1, lon1, lat2, lon2 = (float(a) for a in args)
    except ValueError:
        print(f"坐标必须是数字: {' '.join(args)}")
        return 1
    print(format_distance_km(haversine_distance_km(lat1, lon1, lat2, lon2)))
    return 0


async def _open_engine() -> tuple[CoordinationEngine, FleetApiClient, SnapshotCache | None]:
    config = load_coordinator_config()
    client = FleetApiClient.from_config(load_client_config())
    cache = await SnapshotCache.open(config.cache_path) if config.cache_path else None
    engine = CoordinationEngine(client, config=config, cache=cache)
    return engine, client, cache


async def snapshot() -> int:
    """执行一次全量刷新"""
    engine, client, cache = await _open_engine()
    try:
        await engine.refresh_dashboard()
    except AuthError as e:
        print(f"认证失败，请重新登录: {e}")
        return 2
    finally:
        await client.close()
        if cache is not None:
            await cache.close()

    print(json.dumps(engine.summary(), ensure_ascii=False, indent=2, default=str))
    return 0


async def run() -> None:
    """启动周期刷新直到被取消或认证失效"""
    engine, client, cache = await _open_engine()
    stopped = asyncio.Event()

    def on_auth_error(error: AuthError) -> None:
        log.error("coordinator_stopping_auth_expired", error=str(error))
        stopped.set()

    scheduler = engine.build_scheduler(on_auth_error=on_auth_error)
    scheduler.start()
    log.info("coordinator_started", healthy=await client.health_check())
    try:
        await stopped.wait()
    finally:
        await scheduler.stop()
        await client.close()
        if cache is not None:
            await cache.close()
        log.info("coordinator_stopped")


if __name__ == "__main__":
    sys.exit(main())
