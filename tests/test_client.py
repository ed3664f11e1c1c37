"""
Tests for client.py — streaming analyze against a live test server,
LiveView rendering, and the command-line parser.
"""
from __future__ import annotations

import io
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

import client
import database as db
import server
from datastream import encode_text
from providers import manager
from providers.manager import AllModelsFailedError
from sections import COMPARE_SCHEMA, SINGLE_SCHEMA

JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


@pytest_asyncio.fixture
async def base_url():
    await db.init_db()
    async with TestServer(server.build_web_app()) as srv:
        yield str(srv.make_url("")).rstrip("/")


async def _cut_off_stream(request):
    """Sends text, then ends the body without a finish frame."""
    resp = web.StreamResponse(headers={"Content-Type": "text/plain; charset=utf-8"})
    await resp.prepare(request)
    await resp.write(encode_text("HEADLINE: Chips\n"))
    await resp.write_eof()
    return resp


@pytest_asyncio.fixture
async def cut_off_url():
    app = web.Application()
    app.router.add_post("/analyze", _cut_off_stream)
    async with TestServer(app) as srv:
        yield str(srv.make_url("")).rstrip("/")


async def fragments(parts, error=None):
    for text in parts:
        yield text
    if error is not None:
        raise error


def gateway(parts, error=None):
    return patch.object(
        manager, "open_stream",
        AsyncMock(side_effect=lambda request: ("google/test", fragments(parts, error))),
    )


@pytest.mark.asyncio
class TestAnalyze:
    async def test_streamed_text_reassembled(self, base_url):
        out = io.StringIO()
        view = client.LiveView(out, colour=False, redraw=True)
        with gateway(["HEADLINE: Chips\n", "VERDICT: ", "Buy it"]):
            async with aiohttp.ClientSession() as session:
                decoder = await client.analyze(session, base_url, [client.to_data_uri(JPEG)], view=view)
        assert decoder.text == "HEADLINE: Chips\nVERDICT: Buy it"
        assert decoder.finish_reason == "stop"
        rendered = out.getvalue()
        assert "Verdict" in rendered
        assert "Buy it" in rendered

    async def test_compare_sends_both_images(self, base_url):
        with gateway(["WINNER: B"]) as mock_open:
            async with aiohttp.ClientSession() as session:
                uri = client.to_data_uri(JPEG)
                await client.analyze(session, base_url, [uri, uri])
        assert mock_open.call_args.args[0].mode == "compare"

    async def test_mid_stream_error_reported(self, base_url):
        out = io.StringIO()
        view = client.LiveView(out, colour=False, redraw=False)
        with gateway(["HEADLINE: Chips\n"], error=RuntimeError("upstream dropped")):
            async with aiohttp.ClientSession() as session:
                decoder = await client.analyze(session, base_url, [client.to_data_uri(JPEG)], view=view)
        assert decoder.errors == ["upstream dropped"]
        assert "Analysis incomplete" in out.getvalue()

    async def test_error_status_raises_api_error(self, base_url):
        err = AllModelsFailedError("google/x", RuntimeError("quota"))
        with patch.object(manager, "open_stream", AsyncMock(side_effect=err)):
            async with aiohttp.ClientSession() as session:
                with pytest.raises(client.ApiError) as info:
                    await client.analyze(session, base_url, [client.to_data_uri(JPEG)])
        assert info.value.status == 502
        assert info.value.payload["error"] == "Failed to analyze image"

    async def test_missing_finish_frame_is_incomplete(self, cut_off_url):
        out = io.StringIO()
        view = client.LiveView(out, colour=False, redraw=False)
        async with aiohttp.ClientSession() as session:
            decoder = await client.analyze(session, cut_off_url, [client.to_data_uri(JPEG)], view=view)
        assert decoder.text == "HEADLINE: Chips\n"
        assert decoder.errors == []
        assert decoder.finish_reason is None
        assert not decoder.complete
        assert "Analysis incomplete" in out.getvalue()

    async def test_complete_stream_has_no_notice(self, base_url):
        out = io.StringIO()
        view = client.LiveView(out, colour=False, redraw=False)
        with gateway(["HEADLINE: Chips\n", "VERDICT: ok"]):
            async with aiohttp.ClientSession() as session:
                decoder = await client.analyze(session, base_url, [client.to_data_uri(JPEG)], view=view)
        assert decoder.complete
        assert "Analysis incomplete" not in out.getvalue()


@pytest.mark.asyncio
class TestRunExitCode:
    async def test_cut_off_stream_exits_1(self, cut_off_url, tmp_path, capsys):
        photo = tmp_path / "snack.jpg"
        photo.write_bytes(JPEG)
        ns = client.build_parser().parse_args(["--url", cut_off_url, "analyze", str(photo)])
        assert await client._run(ns) == 1
        assert "Analysis incomplete" in capsys.readouterr().out

    async def test_complete_stream_exits_0(self, base_url, tmp_path, capsys):
        photo = tmp_path / "snack.jpg"
        photo.write_bytes(JPEG)
        ns = client.build_parser().parse_args(["--url", base_url, "analyze", str(photo)])
        with gateway(["HEADLINE: Chips\n", "VERDICT: ok"]):
            assert await client._run(ns) == 0
        assert "Analysis incomplete" not in capsys.readouterr().out


class TestSchemaFor:
    def test_one_image_is_single(self):
        assert client.schema_for(["a"]) == SINGLE_SCHEMA

    def test_two_images_is_compare(self):
        assert client.schema_for(["a", "b"]) == COMPARE_SCHEMA


class TestLiveView:
    def test_no_redraw_off_tty(self):
        out = io.StringIO()
        view = client.LiveView(out, colour=False)
        view.update("HEADLINE: x")
        assert out.getvalue() == ""

    def test_redraw_shows_cursor(self):
        out = io.StringIO()
        view = client.LiveView(out, colour=False, redraw=True)
        view.update("HEADLINE: x")
        assert "▊" in out.getvalue()

    def test_finish_prints_final_view(self):
        out = io.StringIO()
        client.LiveView(out, colour=False, redraw=False).finish("Please retake the photo.", [])
        assert "Please retake the photo." in out.getvalue()
        assert "▊" not in out.getvalue()

    def test_finish_flags_incomplete_without_errors(self):
        out = io.StringIO()
        client.LiveView(out, colour=False, redraw=False).finish("HEADLINE: x", [], complete=False)
        assert "Analysis incomplete" in out.getvalue()

    def test_single_mode_ignores_compare_headers(self):
        out = io.StringIO()
        view = client.LiveView(out, colour=False, redraw=True, schema=SINGLE_SCHEMA)
        view.update("HEADLINE: Chips\nWINNER: Other brand\nVERDICT: ok")
        view.finish("HEADLINE: Chips\nWINNER: Other brand\nVERDICT: ok", [])
        rendered = out.getvalue()
        assert "Winner" not in rendered
        assert "WINNER: Other brand" in rendered

    def test_compare_mode_shows_winner(self):
        out = io.StringIO()
        view = client.LiveView(out, colour=False, redraw=False, schema=COMPARE_SCHEMA)
        view.finish("HEADLINE: A vs B\nWINNER: B\nVERDICT: ok", [])
        assert "Winner" in out.getvalue()


class TestReadImage:
    def test_png_mime_from_extension(self, tmp_path):
        path = tmp_path / "shot.png"
        path.write_bytes(b"\x89PNG-data")
        assert client.read_image(str(path)).startswith("data:image/png;base64,")

    def test_unknown_extension_is_jpeg(self, tmp_path):
        path = tmp_path / "shot.bin"
        path.write_bytes(b"data")
        assert client.read_image(str(path)).startswith("data:image/jpeg;base64,")


class TestParser:
    def test_analyze_two_images(self):
        ns = client.build_parser().parse_args(["analyze", "a.jpg", "b.jpg"])
        assert ns.command == "analyze"
        assert ns.images == ["a.jpg", "b.jpg"]

    def test_delete(self):
        ns = client.build_parser().parse_args(["--token", "t", "delete", "abc"])
        assert (ns.command, ns.scan_id, ns.token) == ("delete", "abc", "t")

    def test_history_limit(self):
        ns = client.build_parser().parse_args(["history", "--limit", "5"])
        assert (ns.command, ns.limit) == ("history", 5)

    def test_command_required(self):
        with pytest.raises(SystemExit):
            client.build_parser().parse_args([])

    def test_more_than_two_images_rejected(self):
        assert client.main(["analyze", "a.jpg", "b.jpg", "c.jpg"]) == 2
