"""
database.py — async SQLite persistence via aiosqlite.

Tables:
  scans   — one row per completed analysis, owned by the user who ran it

The DB file is created automatically on first run. Scans are written
once and never updated; only their owner may delete them.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

import config

logger = logging.getLogger(__name__)

# Store the DB in a dedicated data/ directory so Docker volume mounts work
# correctly (mount ./data:/app/data) and the file survives container restarts.
_DATA_DIR = Path(config.DATA_DIR)
_DATA_DIR.mkdir(parents=True, exist_ok=True)

DB_PATH = str(_DATA_DIR / "quickpick.db")
_lock = asyncio.Lock()          # serialise schema migrations


# ── Data models ───────────────────────────────────────────────────────────────

@dataclass
class Scan:
    id: str
    user_id: str
    image_url: str              # data: URI or placeholder token
    product_name: str
    analysis_result: str        # full raw model output
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "imageUrl": self.image_url,
            "productName": self.product_name,
            "analysisResult": self.analysis_result,
            "createdAt": self.created_at.isoformat(),
        }


# ── Schema ────────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS scans (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    image_url       TEXT NOT NULL DEFAULT '',
    product_name    TEXT NOT NULL DEFAULT 'Unknown Product',
    analysis_result TEXT NOT NULL,
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_scans_user_created ON scans (user_id, created_at);
"""


async def init_db() -> None:
    """Create tables if they don't exist. Safe to call multiple times."""
    async with _lock:
        async with aiosqlite.connect(DB_PATH) as db:
            await db.executescript(_SCHEMA)
            await db.commit()
    logger.info("Database initialised at %s", DB_PATH)


def _row_to_scan(r: aiosqlite.Row) -> Scan:
    return Scan(
        id=r["id"],
        user_id=r["user_id"],
        image_url=r["image_url"],
        product_name=r["product_name"],
        analysis_result=r["analysis_result"],
        created_at=datetime.fromisoformat(r["created_at"]),
    )


# ── Scan operations ───────────────────────────────────────────────────────────

async def create_scan(
    user_id: str,
    analysis_result: str,
    product_name: str,
    image_url: str,
) -> Scan:
    """Insert one scan and return it."""
    scan = Scan(
        id=uuid.uuid4().hex,
        user_id=user_id,
        image_url=image_url,
        product_name=product_name,
        analysis_result=analysis_result,
        created_at=datetime.now(timezone.utc),
    )
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            """INSERT INTO scans
               (id, user_id, image_url, product_name, analysis_result, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (scan.id, scan.user_id, scan.image_url, scan.product_name,
             scan.analysis_result, scan.created_at.isoformat()),
        )
        await db.commit()
    return scan


async def get_scan(scan_id: str) -> Optional[Scan]:
    """Return the scan with scan_id, or None."""
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute("SELECT * FROM scans WHERE id = ?", (scan_id,)) as cur:
            row = await cur.fetchone()
    return _row_to_scan(row) if row else None


async def list_scans(user_id: str, limit: Optional[int] = None) -> list[Scan]:
    """Return user_id's scans, most recent first."""
    sql = "SELECT * FROM scans WHERE user_id = ? ORDER BY created_at DESC"
    params: tuple = (user_id,)
    if limit is not None:
        sql += " LIMIT ?"
        params = (user_id, limit)
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(sql, params) as cur:
            rows = await cur.fetchall()
    return [_row_to_scan(r) for r in rows]


async def delete_scan(scan_id: str) -> bool:
    """Delete a scan by id. Returns True if a row was deleted."""
    async with aiosqlite.connect(DB_PATH) as db:
        cursor = await db.execute("DELETE FROM scans WHERE id = ?", (scan_id,))
        await db.commit()
        return cursor.rowcount > 0


async def get_scan_count() -> int:
    """Total scans stored (health check)."""
    async with aiosqlite.connect(DB_PATH) as db:
        cur = await db.execute("SELECT COUNT(*) FROM scans")
        row = await cur.fetchone()
        await cur.close()
    return row[0] if row else 0
