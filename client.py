"""
client.py — terminal client for the QuickPick API.

Usage:
  python client.py analyze photo.jpg              single product
  python client.py analyze a.jpg b.jpg            compare two products
  python client.py history                        your saved scans
  python client.py show <scan_id>
  python client.py delete <scan_id>

Environment:
  QUICKPICK_URL     API base URL (default http://localhost:8080)
  QUICKPICK_TOKEN   session token (needed for history/show/delete and for
                    analyses to be saved)

While an analysis streams, the answer is re-parsed on every chunk and
redrawn (TTY only); the final structured view is printed at the end.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

import aiohttp

import style
from datastream import DataStreamDecoder
from image_analyzer import to_data_uri
from sections import SCHEMAS, SectionSpec

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:8080"
_CLEAR = "\033[2J\033[H"


class LiveView:
    """Redraws the parsed analysis each time new text arrives."""

    def __init__(self, out: TextIO, colour: bool = True, redraw: Optional[bool] = None,
                 schema: Optional[tuple[SectionSpec, ...]] = None):
        self.out = out
        self.colour = colour
        self.schema = schema
        self.redraw = out.isatty() if redraw is None else redraw
        self.frame = 0

    def update(self, text: str) -> None:
        if not self.redraw or not text:
            return
        self.frame += 1
        spinner = style.LOADING[self.frame % len(style.LOADING)]
        view = style.render_analysis(text, live=True, colour=self.colour, schema=self.schema)
        self.out.write(f"{_CLEAR}{view}\n{spinner}\n")
        self.out.flush()

    def finish(self, text: str, errors: list[str], complete: bool = True) -> None:
        if self.redraw:
            self.out.write(_CLEAR)
        self.out.write(style.render_analysis(text, colour=self.colour, schema=self.schema) + "\n")
        if errors or not complete:
            self.out.write(style.incomplete_notice(errors) + "\n")
        self.out.flush()


def _headers(token: Optional[str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def read_image(path: str) -> str:
    data = Path(path).read_bytes()
    mime, _ = mimetypes.guess_type(path)
    return to_data_uri(data, mime)


def schema_for(images: Sequence[str]) -> tuple[SectionSpec, ...]:
    """Headers expected back: two images mean compare mode."""
    return SCHEMAS["compare" if len(images) == 2 else "single"]


class ApiError(RuntimeError):
    """Non-200 answer from the API."""

    def __init__(self, status: int, payload: Optional[dict]):
        self.status = status
        self.payload = payload or {}
        super().__init__(style.error_line(status, payload))


async def _error_payload(resp: aiohttp.ClientResponse) -> Optional[dict]:
    try:
        payload = await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return {"error": (await resp.text()) or resp.reason}
    return payload if isinstance(payload, dict) else None


# ── Commands ──────────────────────────────────────────────────────────────────

async def analyze(
    session: aiohttp.ClientSession,
    base_url: str,
    images: Sequence[str],
    token: Optional[str] = None,
    view: Optional[LiveView] = None,
) -> DataStreamDecoder:
    """POST the image(s) and decode the streamed answer."""
    body = {"image": images[0]}
    if len(images) > 1:
        body["image2"] = images[1]

    decoder = DataStreamDecoder()
    async with session.post(f"{base_url}/analyze", json=body, headers=_headers(token)) as resp:
        if resp.status != 200:
            raise ApiError(resp.status, await _error_payload(resp))
        async for chunk in resp.content.iter_any():
            if decoder.feed(chunk) and view:
                view.update(decoder.text)
        decoder.finish()

    if view:
        view.finish(decoder.text, decoder.errors, decoder.complete)
    return decoder


async def _request_json(session: aiohttp.ClientSession, method: str, url: str, token: Optional[str]):
    async with session.request(method, url, headers=_headers(token)) as resp:
        if resp.status != 200:
            raise ApiError(resp.status, await _error_payload(resp))
        return await resp.json()


async def _run(ns: argparse.Namespace) -> int:
    base_url = ns.url.rstrip("/")
    colour = not ns.no_colour and sys.stdout.isatty()

    async with aiohttp.ClientSession() as session:
        try:
            if ns.command == "analyze":
                images = [read_image(p) for p in ns.images]
                view = LiveView(sys.stdout, colour, schema=schema_for(images))
                decoder = await analyze(session, base_url, images, ns.token, view)
                return 0 if decoder.complete else 1

            if ns.command == "history":
                url = f"{base_url}/scans" + (f"?limit={ns.limit}" if ns.limit else "")
                items = await _request_json(session, "GET", url, ns.token)
                print(style.scan_list(items))
                return 0

            if ns.command == "show":
                scan = await _request_json(session, "GET", f"{base_url}/scan/{ns.scan_id}", ns.token)
                print(f"{scan['productName']}  ({scan['createdAt'][:16].replace('T', ' ')})")
                print(style.render_analysis(scan["analysisResult"], colour=colour))
                return 0

            if ns.command == "delete":
                result = await _request_json(session, "DELETE", f"{base_url}/scan/{ns.scan_id}", ns.token)
                print(f"🗑️  {result.get('message', 'Deleted')}")
                return 0
        except ApiError as exc:
            print(str(exc), file=sys.stderr)
            return 2
        except aiohttp.ClientError as exc:
            print(f"❌ Could not reach {base_url}: {exc}", file=sys.stderr)
            return 2
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quickpick", description="QuickPick shopping assistant client")
    parser.add_argument("--url", default=os.getenv("QUICKPICK_URL", DEFAULT_URL))
    parser.add_argument("--token", default=os.getenv("QUICKPICK_TOKEN"))
    parser.add_argument("--no-colour", action="store_true", help="Plain output without ANSI colours")
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="Analyze one product or compare two")
    p_analyze.add_argument("images", nargs="+", metavar="IMAGE")

    p_history = sub.add_parser("history", help="List your saved scans")
    p_history.add_argument("--limit", type=int, default=None, help="Only the N most recent scans")

    p_show = sub.add_parser("show", help="Show one saved scan")
    p_show.add_argument("scan_id")

    p_delete = sub.add_parser("delete", help="Delete one saved scan")
    p_delete.add_argument("scan_id")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = build_parser().parse_args(argv)
    if ns.command == "analyze" and len(ns.images) > 2:
        print("❌ At most two images can be compared.", file=sys.stderr)
        return 2
    return asyncio.run(_run(ns))


if __name__ == "__main__":
    sys.exit(main())
