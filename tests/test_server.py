import asyncio
import io
import socket
import threading

import pytest

from folio.errors import ServeError
from folio.server import DevServer, _SnapshotHandler, guess_content_type
from folio.snapshot import Snapshot

FILES = {
    "index.html": b"<html><body>Home</body></html>",
    "issue-1/index.html": b"<html><body>Issue</body></html>",
    "static/style.css": b"body{}",
    "feed.xml": b"<feed/>",
}


@pytest.fixture
def server():
    server = DevServer(http_port=5055)
    server.publish(Snapshot(FILES))
    return server


def test_ports_and_reload_script():
    server = DevServer(http_port=5055)
    assert server.ws_port == 5056
    explicit = DevServer(http_port=5055, ws_port=6000)
    assert explicit.ws_port == 6000
    assert ":6000" in explicit._reload_script


@pytest.mark.parametrize(
    "path, key",
    [
        ("/", "index.html"),
        ("", "index.html"),
        ("/index.html", "index.html"),
        ("/issue-1/", "issue-1/index.html"),
        ("/issue-1", "issue-1/index.html"),
        ("/issue-1/?utm=1", "issue-1/index.html"),
        ("/static/style.css", "static/style.css"),
        ("/../index.html", "index.html"),
        ("/%69ndex.html", "index.html"),
    ],
)
def test_get_resolves_paths(server, path, key):
    body, _ = server.get(path)
    assert body == FILES[key]


def test_get_missing_raises(server):
    with pytest.raises(KeyError):
        server.get("/nope/")
    with pytest.raises(KeyError):
        server.get("/static/")


def test_content_types(server):
    assert server.get("/")[1] == "text/html; charset=utf-8"
    assert server.get("/static/style.css")[1] == "text/css; charset=utf-8"
    assert guess_content_type("file.unknownext") == "application/octet-stream"
    assert guess_content_type("a.png") == "image/png"


def test_publish_skips_identical_content(server, monkeypatch):
    reloads = []
    monkeypatch.setattr(server, "_broadcast_reload", lambda: reloads.append(True))
    assert server.publish(Snapshot(dict(FILES))) is False
    assert reloads == []

    changed = dict(FILES, **{"index.html": b"<html><body>New</body></html>"})
    assert server.publish(Snapshot(changed)) is True
    assert reloads == [True]
    assert server.get("/")[0] == changed["index.html"]


def test_readers_see_whole_snapshots(server):
    old = Snapshot({"a.html": b"old-a", "b.html": b"old-b"})
    new = Snapshot({"a.html": b"new-a", "b.html": b"new-b"})
    server.publish(old)
    stop = threading.Event()
    mixed = []

    def reader():
        while not stop.is_set():
            snapshot = server.snapshot
            a = server.get("/a.html", snapshot)[0]
            b = server.get("/b.html", snapshot)[0]
            if a[:3] != b[:3]:
                mixed.append((a, b))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for _ in range(500):
        server.publish(new)
        server.publish(old)
    stop.set()
    for thread in threads:
        thread.join()
    assert mixed == []


def _handler(server, path, command="GET"):
    handler_cls = type(
        "_Handler", (_SnapshotHandler,), {"dev_server": server, "reload_script": "<script>reload</script>"}
    )
    handler = handler_cls.__new__(handler_cls)
    handler.path = path
    handler.command = command
    handler.request_version = "HTTP/1.1"
    handler.wfile = io.BytesIO()
    handler.codes = []
    handler.headers_sent = {}
    handler.send_response = lambda code, message=None: handler.codes.append(code)
    handler.send_header = lambda key, value: handler.headers_sent.__setitem__(key, value)
    handler.end_headers = lambda: None
    return handler


def test_handler_injects_reload_script(server):
    handler = _handler(server, "/")
    handler.do_GET()
    assert handler.codes == [200]
    assert handler.wfile.getvalue() == b"<html><body>Home<script>reload</script></body></html>"
    assert handler.headers_sent["Content-Length"] == str(len(handler.wfile.getvalue()))


def test_handler_serves_assets_untouched(server):
    handler = _handler(server, "/static/style.css")
    handler.do_GET()
    assert handler.wfile.getvalue() == b"body{}"
    assert handler.headers_sent["Content-type"] == "text/css; charset=utf-8"


def test_handler_head_sends_no_body(server):
    handler = _handler(server, "/", command="HEAD")
    handler.do_HEAD()
    assert handler.codes == [200]
    assert handler.wfile.getvalue() == b""


def test_handler_missing_path_without_404_page(server):
    handler = _handler(server, "/missing/")
    handler.do_GET()
    assert handler.codes == [404]
    assert handler.wfile.getvalue() == b"404 Not Found"


def test_handler_missing_path_uses_404_page(server):
    server.publish(Snapshot(dict(FILES, **{"404.html": b"<html><body>oops</body></html>"})))
    handler = _handler(server, "/missing/")
    handler.do_GET()
    assert handler.codes == [404]
    assert handler.wfile.getvalue() == b"<html><body>oops<script>reload</script></body></html>"


def test_handler_survives_broken_pipe(server, caplog):
    handler = _handler(server, "/")

    class BrokenPipe:
        def write(self, data):
            raise BrokenPipeError("client went away")

    handler.wfile = BrokenPipe()
    handler.do_GET()
    assert "Failed to send /" in caplog.text


def test_start_bind_failure_raises_serve_error():
    with socket.socket() as sock:
        sock.bind(("localhost", 0))
        sock.listen()
        port = sock.getsockname()[1]
        server = DevServer(http_port=port)
        with pytest.raises(ServeError, match=f"Cannot bind port {port}"):
            server.start()


def test_ws_start_failure_is_logged(caplog):
    server = DevServer(http_port=5055, ws_port=5057)

    async def fake_run():
        raise OSError("bind error")

    server._run_ws_server = fake_run
    server._start_ws()
    assert "Live reload unavailable (port 5057)" in caplog.text


def test_async_broadcast_drops_stale_clients():
    server = DevServer()

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class BadWS:
        async def send(self, msg):
            raise RuntimeError("fail")

    good = GoodWS()
    bad = BadWS()
    server._ws_clients = {good, bad}
    asyncio.run(server._async_broadcast("hello"))
    assert good.messages == ["hello"]
    assert bad not in server._ws_clients


def test_broadcast_reload_requires_running_loop(monkeypatch):
    server = DevServer()
    called = []
    monkeypatch.setattr(
        "folio.server.asyncio.run_coroutine_threadsafe",
        lambda coro, loop: called.append(coro),
    )
    server._broadcast_reload()
    assert called == []


def test_ws_handler_tracks_clients():
    server = DevServer()

    class DummyWS:
        def __init__(self):
            self.closed = False

        async def wait_closed(self):
            assert self in server._ws_clients
            self.closed = True

    ws = DummyWS()
    asyncio.run(server._ws_handler(ws))
    assert ws.closed
    assert ws not in server._ws_clients


def test_stop_without_start():
    server = DevServer()
    server.stop()
    assert server._httpd is None
