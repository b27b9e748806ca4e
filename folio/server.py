"""Development server for Folio.

Serves the current Snapshot from memory with live reload:
- Injects a reload script into HTML responses.
- Serves 404.html from the snapshot (when present) for missing paths.
- Sends a reload message to websocket clients whenever a snapshot with
  different content is published.

The snapshot reference is replaced in a single assignment by the
coordinator; request threads read it once per request, so every response
comes from one complete snapshot.

Key classes:
- DevServer: Holds the published snapshot and runs the HTTP and websocket servers.
- _SnapshotHandler: HTTP request handler reading from the DevServer.
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import posixpath
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import unquote, urlsplit

import websockets

from .errors import ServeError
from .html_utils import inject_script
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

RELOAD_SCRIPT_TEMPLATE = """
<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    const data = JSON.parse(event.data || '{{}}');
    if (data.type === 'reload') location.reload();
  }};
}})();
</script>
"""

NOT_FOUND_PAGE = "404.html"


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    if content_type is None:
        return "application/octet-stream"
    if content_type.startswith("text/") or content_type in (
        "application/javascript",
        "application/json",
        "application/xml",
        "image/svg+xml",
    ):
        return f"{content_type}; charset=utf-8"
    return content_type


def _candidates(request_path: str) -> list[str]:
    """Snapshot keys that may answer ``request_path``, in lookup order."""
    path = unquote(urlsplit(request_path).path)
    normalized = posixpath.normpath("/" + path.lstrip("/")).lstrip("/")
    if normalized in ("", "."):
        return ["index.html"]
    if path.endswith("/"):
        return [f"{normalized}/index.html"]
    return [normalized, f"{normalized}/index.html"]


class _SnapshotHandler(BaseHTTPRequestHandler):
    """HTTP request handler serving files from the current snapshot.

    Attributes:
        dev_server: Server holding the snapshot.
        reload_script: JavaScript injected into HTML pages.
    """

    dev_server: DevServer
    reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=4001)

    def do_GET(self):
        self._respond(include_body=True)

    def do_HEAD(self):
        self._respond(include_body=False)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def _respond(self, include_body: bool) -> None:
        snapshot = self.dev_server.snapshot
        status = 200
        try:
            body, content_type = self.dev_server.get(self.path, snapshot)
        except KeyError:
            status = 404
            if NOT_FOUND_PAGE in snapshot:
                body, content_type = snapshot[NOT_FOUND_PAGE], guess_content_type(NOT_FOUND_PAGE)
            else:
                body, content_type = b"404 Not Found", "text/plain; charset=utf-8"

        if content_type.startswith("text/html"):
            html = body.decode("utf-8", errors="replace")
            body = inject_script(html, self.reload_script).encode("utf-8")

        try:
            self.send_response(status)
            self.send_header("Content-type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            if include_body:
                self.wfile.write(body)
        except OSError as exc:
            logger.warning("Failed to send %s: %s", self.path, exc)


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        http_port: Port for the HTTP server.
        ws_port: Port for websocket connections.
        host: Interface to bind.
        _ws_clients: Connected websocket clients.
        _loop: Event loop running the websocket server.
    """

    def __init__(self, http_port: int = 4000, ws_port: int | None = None, host: str = "localhost"):
        self.http_port = int(http_port)
        self.ws_port = int(ws_port) if ws_port is not None else self.http_port + 1
        self.host = host
        self._snapshot = Snapshot()
        self._reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=self.ws_port)
        self._httpd: ThreadingHTTPServer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def publish(self, snapshot: Snapshot) -> bool:
        """Make ``snapshot`` the served site.

        Returns:
            True when the content changed and clients were told to reload.
        """
        previous = self._snapshot
        self._snapshot = snapshot
        if previous.digest == snapshot.digest:
            return False
        self._broadcast_reload()
        return True

    def get(self, path: str, snapshot: Snapshot | None = None) -> tuple[bytes, str]:
        """Look up a request path.

        Args:
            path: Request path, e.g. ``/issue-1/``.
            snapshot: Snapshot to read; the published one when omitted.

        Returns:
            (content, content type).

        Raises:
            KeyError: If no file answers the path.
        """
        snapshot = snapshot if snapshot is not None else self._snapshot
        for candidate in _candidates(path):
            if candidate in snapshot:
                return snapshot[candidate], guess_content_type(candidate)
        raise KeyError(path)

    def start(self) -> None:
        """Bind the HTTP server and start both servers on daemon threads.

        Raises:
            ServeError: If the HTTP port cannot be bound.
        """
        handler = type(
            "_SnapshotHandlerForServer",
            (_SnapshotHandler,),
            {"dev_server": self, "reload_script": self._reload_script},
        )
        try:
            self._httpd = ThreadingHTTPServer((self.host, self.http_port), handler)
        except OSError as exc:
            raise ServeError(f"Cannot bind port {self.http_port}: {exc}", None, exc) from exc
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        logger.info("Serving at http://%s:%d", self.host, self.http_port)

    def stop(self) -> None:
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("Live reload unavailable (port %d): %s", self.ws_port, exc)
        except RuntimeError:
            # Loop stopped by stop() before the server future finished.
            pass

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        if not self._loop.is_running():
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception as exc:
                logger.debug("Dropping live reload client: %s", exc)
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
