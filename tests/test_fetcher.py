from __future__ import annotations

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest

from testflight_monitor.config import DEFAULT_USER_AGENT
from testflight_monitor.errors import FetchError
from testflight_monitor.fetcher import fetch_page

JOIN_PAGE = (
    "<!doctype html><html><head><title>Join the beta - Acme - TestFlight</title></head>"
    "<body><h1>Join the beta - Acme</h1><p>This beta is full.</p></body></html>"
)


class _Handler(BaseHTTPRequestHandler):
    seen_headers: dict[str, str] = {}

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def _send(self, status: int, body: bytes, headers: dict[str, str] | None = None) -> None:
        self.send_response(status)
        for k, v in (headers or {}).items():
            self.send_header(k, v)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        type(self).seen_headers = {k.lower(): v for k, v in self.headers.items()}

        if self.path == "/join/abc":
            self._send(200, JOIN_PAGE.encode("utf-8"), {"Content-Type": "text/html; charset=utf-8"})
            return
        if self.path == "/redirect":
            self._send(302, b"", {"Location": "/join/abc"})
            return
        if self.path == "/slow":
            time.sleep(1.0)
            self._send(200, b"<html></html>", {"Content-Type": "text/html"})
            return
        self._send(404, b"not found", {"Content-Type": "text/plain"})


@pytest.fixture(scope="module")
def base_url() -> str:
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{httpd.server_address[1]}"
    finally:
        httpd.shutdown()
        httpd.server_close()


@pytest.mark.asyncio
async def test_fetch_returns_html_and_sends_browser_headers(base_url: str) -> None:
    async with httpx.AsyncClient(trust_env=False) as client:
        html = await fetch_page(client, f"{base_url}/join/abc")

    assert html == JOIN_PAGE
    assert _Handler.seen_headers["user-agent"] == DEFAULT_USER_AGENT
    assert "text/html" in _Handler.seen_headers["accept"]
    assert _Handler.seen_headers["accept-language"].startswith("en-US")


@pytest.mark.asyncio
async def test_fetch_follows_redirects(base_url: str) -> None:
    async with httpx.AsyncClient(trust_env=False) as client:
        html = await fetch_page(client, f"{base_url}/redirect", user_agent="custom-agent/1.0")

    assert html == JOIN_PAGE
    assert _Handler.seen_headers["user-agent"] == "custom-agent/1.0"


@pytest.mark.asyncio
async def test_non_success_status_raises_fetch_error(base_url: str) -> None:
    async with httpx.AsyncClient(trust_env=False) as client:
        with pytest.raises(FetchError, match="404"):
            await fetch_page(client, f"{base_url}/missing")


@pytest.mark.asyncio
async def test_timeout_raises_fetch_error(base_url: str) -> None:
    async with httpx.AsyncClient(trust_env=False) as client:
        with pytest.raises(FetchError, match="timed out"):
            await fetch_page(client, f"{base_url}/slow", timeout=0.2)


@pytest.mark.asyncio
async def test_connection_error_raises_fetch_error() -> None:
    async with httpx.AsyncClient(trust_env=False) as client:
        with pytest.raises(FetchError, match="http_error"):
            await fetch_page(client, "http://127.0.0.1:9/join/abc")


@pytest.mark.asyncio
async def test_malformed_url_raises_fetch_error() -> None:
    async with httpx.AsyncClient(trust_env=False) as client:
        with pytest.raises(FetchError, match="invalid URL"):
            await fetch_page(client, "http://[::1/join/abc")
