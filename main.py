"""
main.py — Single entry point.

Runs the QuickPick aiohttp API in one asyncio event loop.

Architecture:
  asyncio event loop
    ├── aiohttp web server  (/analyze streaming, scan history)
    └── detached scan writes (drained on shutdown)
"""
import asyncio
import logging
import signal
import sys
from pathlib import Path

import config

# Log file lives in the same data/ directory as the database so that a single
# Docker volume mount (./data:/app/data) captures both.
_data_dir = Path(config.DATA_DIR)
_data_dir.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(str(_data_dir / "quickpick.log"), encoding="utf-8"),
    ],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def run() -> None:
    # ── Database bootstrap (must happen before the server accepts requests) ──
    import database as _db
    try:
        await _db.init_db()
        logger.info("Database ready at %s", _db.DB_PATH)
    except Exception as exc:
        logger.critical("FATAL: database init failed: %s", exc, exc_info=True)
        raise

    if not config.GOOGLE_API_KEY:
        logger.warning("GOOGLE_GENERATIVE_AI_API_KEY is missing — /analyze will answer 500")
    if not config.AUTH_JWT_KEY:
        logger.warning("AUTH_JWT_KEY is missing — scans will not be saved")

    from server import start_server
    import scans
    web_runner = await start_server()

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    logger.info("✅ QuickPick is running. Press Ctrl+C to stop.")
    try:
        await stop_event.wait()
    except (KeyboardInterrupt, SystemExit):
        pass

    # Graceful shutdown
    logger.info("Shutting down…")
    await web_runner.cleanup()
    await scans.drain()
    logger.info("Goodbye.")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
