"""
auth.py — resolves the calling user from a hosted-auth session token.

The auth provider issues a signed JWT per session. Browsers send it in the
session cookie, API clients as "Authorization: Bearer <token>". The token's
"sub" claim is the user id stored on every scan.

If AUTH_JWT_KEY is not configured every request is treated as anonymous:
/analyze still works (nothing is saved) and the scan routes answer 401.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

import jwt
from aiohttp import web

import config

logger = logging.getLogger(__name__)

_warned_unconfigured = False


def _token_from(request: web.Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    cookie = request.cookies.get(config.AUTH_SESSION_COOKIE)
    return cookie or None


def verify_token(token: str) -> Optional[str]:
    """Return the user id for a valid token, None otherwise."""
    global _warned_unconfigured
    if not config.AUTH_JWT_KEY:
        if not _warned_unconfigured:
            logger.warning("AUTH_JWT_KEY not configured — all requests are anonymous")
            _warned_unconfigured = True
        return None

    options = {"require": ["sub", "exp"]}
    if not config.AUTH_JWT_AUDIENCE:
        options["verify_aud"] = False
    try:
        claims = jwt.decode(
            token,
            config.AUTH_JWT_KEY,
            algorithms=config.AUTH_JWT_ALGORITHMS,
            issuer=config.AUTH_JWT_ISSUER,
            audience=config.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired session token")
        return None
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected session token: %s", exc)
        return None
    return str(claims["sub"])


@web.middleware
async def auth_middleware(request: web.Request, handler):
    token = _token_from(request)
    request["user_id"] = verify_token(token) if token else None
    return await handler(request)


def require_user(request: web.Request) -> str:
    """Return the caller's user id or raise 401 with a JSON body."""
    user_id = request.get("user_id")
    if not user_id:
        raise web.HTTPUnauthorized(
            text=json.dumps({"error": "Unauthorized", "message": "You must be logged in to do that"}),
            content_type="application/json",
        )
    return user_id
