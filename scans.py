"""
scans.py — best-effort scan persistence after an analysis completes.

schedule_save() is called by the /analyze handler only after the whole
response has been written, so the user never waits on the database.
Failures are logged and dropped: the analysis the user already received
stays valid whether or not it was stored.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import config
import database as db
from sections import extract_product_name

logger = logging.getLogger(__name__)

# Strong references so pending writes aren't garbage-collected mid-flight
_pending: set[asyncio.Task] = set()


async def save_scan(user_id: str, analysis_text: str, image_ref: str) -> Optional[db.Scan]:
    """Write one scan row. Never raises; returns None on failure."""
    product_name = extract_product_name(analysis_text)
    try:
        scan = await asyncio.wait_for(
            db.create_scan(
                user_id=user_id,
                analysis_result=analysis_text,
                product_name=product_name,
                image_url=image_ref,
            ),
            timeout=config.SCAN_WRITE_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.error("Saving scan for %s timed out after %.1fs", user_id, config.SCAN_WRITE_TIMEOUT)
        return None
    except Exception as exc:
        logger.error("Saving scan for %s failed: %s", user_id, exc, exc_info=True)
        return None

    logger.info("💾 Saved scan %s (%s) for %s", scan.id, product_name, user_id)
    return scan


def schedule_save(user_id: str, analysis_text: str, image_ref: str) -> asyncio.Task:
    """Fire-and-forget save_scan() in the running loop."""
    task = asyncio.create_task(save_scan(user_id, analysis_text, image_ref))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain() -> None:
    """Wait for in-flight writes (called on shutdown)."""
    if _pending:
        logger.info("Waiting for %d pending scan write(s)…", len(_pending))
        await asyncio.gather(*list(_pending), return_exceptions=True)
