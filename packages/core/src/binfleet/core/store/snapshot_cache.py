"""SnapshotCache -- 最近一次成功拉取的原始数据快照

上游不可达且组件内存中没有数据（例如进程刚重启）时，
优先使用这里的快照，其次才是演示数据。仅缓存原始载荷，
不是任务的持久化层。
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
from pydantic import BaseModel, Field

_SNAPSHOTS_DDL = """
CREATE TABLE IF NOT EXISTS snapshots (
    source      TEXT PRIMARY KEY,
    payload     TEXT NOT NULL DEFAULT 'null',
    fetched_at  TEXT NOT NULL
);
"""


class CachedSnapshot(BaseModel):
    """缓存的快照"""

    source: str = Field(description="数据源名称")
    payload: Any = Field(description="原始载荷")
    fetched_at: datetime = Field(description="拉取时间")


async def init_cache_db(conn: aiosqlite.Connection) -> None:
    """初始化缓存库：设置 PRAGMA + 创建表"""
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")
    await conn.execute(_SNAPSHOTS_DDL)
    await conn.commit()


class SnapshotCache:
    """按数据源保存最近一次成功载荷"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    @classmethod
    async def open(cls, db_path: str | Path) -> "SnapshotCache":
        """打开（必要时创建）缓存库"""
        db_dir = Path(db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(db_path))
        await init_cache_db(conn)
        return cls(conn)

    async def put(self, source: str, payload: Any, fetched_at: datetime) -> None:
        try:
            await self._conn.execute(
                """
                INSERT INTO snapshots (source, payload, fetched_at)
                VALUES (?, ?, ?)
                ON CONFLICT(source) DO UPDATE SET
                    payload = excluded.payload,
                    fetched_at = excluded.fetched_at
                """,
                (
                    source,
                    json.dumps(payload, ensure_ascii=False, default=str),
                    fetched_at.isoformat(),
                ),
            )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

    async def get(self, source: str) -> CachedSnapshot | None:
        cursor = await self._conn.execute(
            "SELECT source, payload, fetched_at FROM snapshots WHERE source = ?",
            (source,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return CachedSnapshot(
            source=row[0],
            payload=json.loads(row[1]),
            fetched_at=datetime.fromisoformat(row[2]),
        )

    async def close(self) -> None:
        await self._conn.close()
