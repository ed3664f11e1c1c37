"""
server.py — QuickPick HTTP API (aiohttp).

Endpoints:
  POST   /analyze      → stream a product analysis (0:"text"\\n frames)
  GET    /scans        → caller's scan history, most recent first (?limit=N)
  GET    /scan/{id}    → one scan with parsed sections (owner only)
  DELETE /scan/{id}    → delete one scan (owner only)
  GET    /health       → plain-text health check

/analyze accepts either multipart/form-data with a "file" field (plus an
optional "file2" for compare mode) or a JSON body:
  {"image": "data:image/jpeg;base64,…", "image2": "data:…"}

Errors before streaming starts come back as JSON with a 4xx/5xx status.
Once the stream has started the status is already 200; an upstream failure
is reported in-band as a 3:"message" frame.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

from aiohttp import web

import config
import database as db
import datastream
import scans
from auth import auth_middleware, require_user
from image_analyzer import InputError, build_request, normalize_mime, to_data_uri
from providers import manager
from providers.manager import AllModelsFailedError, ConfigurationError
from sections import (
    parse_health_comparison, parse_health_grade, parse_sections, snippet,
)

logger = logging.getLogger(__name__)


def _json_error(status: int, error: str, message: Optional[str] = None,
                details: Optional[str] = None) -> web.Response:
    body = {"error": error}
    if message:
        body["message"] = message
    if details:
        body["details"] = details
    return web.json_response(body, status=status)


def _http_error(exc_class: type[web.HTTPException], error: str, message: str) -> web.HTTPException:
    return exc_class(
        text=json.dumps({"error": error, "message": message}),
        content_type="application/json",
    )


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Unexpected exceptions become a JSON 500 instead of an HTML page."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as exc:
        logger.error("❌ Unhandled error on %s %s: %s", request.method, request.path, exc, exc_info=True)
        return _json_error(500, "Internal Server Error", str(exc) or "An unexpected error occurred")


# ── /analyze ──────────────────────────────────────────────────────────────────

async def _read_images(request: web.Request) -> tuple[Optional[object], Optional[object]]:
    """Pull (image, image2) out of a multipart or JSON body."""
    if request.content_type.startswith("multipart/"):
        form = await request.post()
        images = []
        for name in ("file", "file2"):
            field = form.get(name)
            if isinstance(field, web.FileField):
                data = field.file.read()
                images.append(to_data_uri(data, normalize_mime(field.content_type)) if data else None)
            else:
                images.append(None)
        return images[0], images[1]

    try:
        body = await request.json()
    except ValueError:
        raise InputError("No image provided")
    if not isinstance(body, dict):
        raise InputError("No image provided")
    return body.get("image"), body.get("image2")


async def _send(response: web.StreamResponse, *frames: bytes) -> bool:
    """Write frames to the client. False if the client has gone away."""
    try:
        for frame in frames:
            await response.write(frame)
    except ConnectionResetError:
        logger.info("Client disconnected mid-stream; analysis not saved")
        return False
    return True


async def handle_analyze(request: web.Request) -> web.StreamResponse:
    logger.info("🚀 /analyze — starting image analysis request")
    user_id = request.get("user_id")

    try:
        image, image2 = await _read_images(request)
        analysis = build_request(image, image2)
    except InputError as exc:
        logger.info("❌ Rejected /analyze: %s", exc)
        return _json_error(400, str(exc))

    try:
        provider_name, fragments = await manager.open_stream(analysis)
    except ConfigurationError as exc:
        logger.error("❌ %s", exc)
        return _json_error(500, "API key not configured", details=str(exc))
    except AllModelsFailedError as exc:
        return _json_error(502, "Failed to analyze image", message=str(exc), details=exc.details)

    response = web.StreamResponse(
        status=200,
        headers={
            "Content-Type": "text/plain; charset=utf-8",
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
            "X-Model": provider_name,
        },
    )
    response.enable_chunked_encoding()
    await response.prepare(request)

    parts: list[str] = []
    upstream_error: Optional[BaseException] = None
    try:
        while True:
            # Upstream failures (any exception, resets included) end up here,
            # client disconnects only in _send().
            try:
                text = await anext(fragments)
            except StopAsyncIteration:
                break
            except Exception as exc:
                upstream_error = exc
                logger.error("❌ %s failed mid-stream after %d fragment(s): %s",
                             provider_name, len(parts), exc)
                break
            parts.append(text)
            if not await _send(response, datastream.encode_text(text)):
                return response
    finally:
        await fragments.aclose()

    if upstream_error is not None:
        tail = [datastream.encode_error(str(upstream_error) or "Stream interrupted"),
                datastream.encode_finish("error")]
    else:
        tail = [datastream.encode_finish()]
    if not await _send(response, *tail):
        return response
    await response.write_eof()

    full_text = "".join(parts)
    logger.info("✅ Streamed %d chars from %s", len(full_text), provider_name)
    if full_text and not parse_sections(full_text, analysis.schema):
        logger.info("Answer from %s has no %s-mode sections; client shows raw text",
                    provider_name, analysis.mode)

    # Only complete analyses are stored, and only after the client has them.
    if user_id and upstream_error is None and full_text.strip():
        image_ref = analysis.images[0].data_uri if config.STORE_SCAN_IMAGES else config.IMAGE_PLACEHOLDER
        scans.schedule_save(user_id, full_text, image_ref)
    return response


# ── Scan history ──────────────────────────────────────────────────────────────

async def handle_list_scans(request: web.Request) -> web.Response:
    user_id = require_user(request)
    limit: Optional[int] = None
    if "limit" in request.query:
        try:
            limit = int(request.query["limit"])
        except ValueError:
            limit = 0
        if limit < 1:
            raise _http_error(web.HTTPBadRequest, "Bad Request", "limit must be a positive integer")
    items = await db.list_scans(user_id, limit=limit)
    return web.json_response([
        {
            "id": s.id,
            "productName": s.product_name,
            "imageUrl": s.image_url,
            "snippet": snippet(s.analysis_result),
            "createdAt": s.created_at.isoformat(),
        }
        for s in items
    ])


async def handle_get_scan(request: web.Request) -> web.Response:
    user_id = require_user(request)
    scan = await db.get_scan(request.match_info["id"])
    # Someone else's scan looks exactly like a missing one.
    if scan is None or scan.user_id != user_id:
        raise _http_error(web.HTTPNotFound, "Not Found", "Scan not found")

    sections = parse_sections(scan.analysis_result)
    health = parse_health_grade(sections.get("HEALTH SCORE"))
    payload = scan.to_dict()
    payload["sections"] = sections
    payload["healthScore"] = health.to_dict() if health else None
    payload["healthComparison"] = [
        {"product": name, **grade.to_dict()}
        for name, grade in parse_health_comparison(sections.get("HEALTH COMPARISON"))
    ]
    return web.json_response(payload)


async def handle_delete_scan(request: web.Request) -> web.Response:
    user_id = require_user(request)
    scan_id = request.match_info["id"]

    scan = await db.get_scan(scan_id)
    if scan is None:
        raise _http_error(web.HTTPNotFound, "Not Found", "Scan not found")
    if scan.user_id != user_id:
        logger.warning("User %s tried to delete scan %s owned by someone else", user_id, scan_id)
        raise _http_error(web.HTTPForbidden, "Forbidden", "You do not have permission to delete this scan")

    await db.delete_scan(scan_id)
    logger.info("✅ Scan %s deleted by user %s", scan_id, user_id)
    return web.json_response({"success": True, "message": "Scan deleted successfully"})


async def handle_health(request: web.Request) -> web.Response:
    """Health check — returns 200 OK. Use with uptime monitors."""
    total = await db.get_scan_count()
    return web.Response(text=f"OK — {total} scans stored", content_type="text/plain")


# ── App factory ───────────────────────────────────────────────────────────────

def build_web_app() -> web.Application:
    app = web.Application(
        middlewares=[error_middleware, auth_middleware],
        client_max_size=config.MAX_UPLOAD_MB * 1024 * 1024,
    )
    app.router.add_post("/analyze",        handle_analyze)
    app.router.add_get("/scans",           handle_list_scans)
    app.router.add_get("/scan/{id}",       handle_get_scan)
    app.router.add_delete("/scan/{id}",    handle_delete_scan)
    app.router.add_get("/health",          handle_health)
    return app


async def start_server() -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app()
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, config.HOST, config.PORT)
    await site.start()
    logger.info("🛒 QuickPick API listening on %s:%d", config.HOST, config.PORT)
    return runner
