"""SnapshotCache 单元测试"""

from datetime import UTC, datetime

from binfleet.core.store import SnapshotCache

FETCHED_AT = datetime(2025, 4, 28, 9, 30, tzinfo=UTC)


async def test_put_and_get(snapshot_cache):
    payload = [{"id": 1, "location": "Whitefield, Near Mall"}]
    await snapshot_cache.put("tasks", payload, FETCHED_AT)

    cached = await snapshot_cache.get("tasks")
    assert cached.source == "tasks"
    assert cached.payload == payload
    assert cached.fetched_at == FETCHED_AT


async def test_missing_source(snapshot_cache):
    assert await snapshot_cache.get("profile") is None


async def test_put_overwrites(snapshot_cache):
    await snapshot_cache.put("profile", {"name": "A"}, FETCHED_AT)
    await snapshot_cache.put("profile", {"name": "B"}, FETCHED_AT)
    assert (await snapshot_cache.get("profile")).payload == {"name": "B"}


async def test_survives_reopen(tmp_path):
    db_path = tmp_path / "snapshots.db"
    cache = await SnapshotCache.open(db_path)
    await cache.put("live_sessions", [], FETCHED_AT)
    await cache.close()

    reopened = await SnapshotCache.open(db_path)
    try:
        cached = await reopened.get("live_sessions")
        assert cached.payload == []
    finally:
        await reopened.close()


async def test_wal_mode(snapshot_cache):
    cursor = await snapshot_cache._conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    assert row[0] == "wal"
