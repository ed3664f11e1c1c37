"""
Shared pytest fixtures.

Every test gets a clean temporary DATA_DIR via the `tmp_data_dir` fixture
so tests are fully isolated from each other and from the real quickpick.db.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """
    Redirect DATA_DIR to a fresh tmp directory for every test.
    This gives each test a clean SQLite file and prevents cross-test pollution.
    """
    data = tmp_path / "data"
    data.mkdir()
    monkeypatch.setenv("DATA_DIR", str(data))

    # Patch the module-level DB_PATH that was already computed at import time
    import config
    import database
    monkeypatch.setattr(config, "DATA_DIR", str(data))
    monkeypatch.setattr(database, "DB_PATH", str(data / "quickpick.db"))
    monkeypatch.setattr(database, "_DATA_DIR", data)

    # Also reset the internal lock so tests don't share state
    import asyncio
    monkeypatch.setattr(database, "_lock", asyncio.Lock())

    yield data


@pytest.fixture(autouse=True)
def reset_providers():
    """Each test starts with a clean provider cache and no pending writes."""
    from providers import manager
    import scans
    manager._providers = {}
    scans._pending.clear()
    yield
    manager._providers = {}
    scans._pending.clear()


@pytest.fixture
def auth_secret(monkeypatch):
    """Enable HS256 session tokens for the duration of a test."""
    import config
    secret = "test-secret-that-is-long-enough-for-hs256"
    monkeypatch.setattr(config, "AUTH_JWT_KEY", secret)
    monkeypatch.setattr(config, "AUTH_JWT_ALGORITHMS", ["HS256"])
    monkeypatch.setattr(config, "AUTH_JWT_ISSUER", None)
    monkeypatch.setattr(config, "AUTH_JWT_AUDIENCE", None)
    return secret


@pytest.fixture
def make_token(auth_secret):
    """make_token("user_a") → signed session token for user_a."""
    import time
    import jwt

    def _make(user_id: str, expires_in: int = 3600) -> str:
        return jwt.encode(
            {"sub": user_id, "exp": int(time.time()) + expires_in},
            auth_secret,
            algorithm="HS256",
        )

    return _make
