from __future__ import annotations

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from linkrot.config import ProbeConfig
from linkrot.probe import ProbeClient

PROXY_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy")


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        self._respond()

    def do_HEAD(self):
        self._respond()

    def do_PUT(self):
        self._respond()

    def _respond(self):
        self.server.record(self)
        path = self.path.split("?", 1)[0]
        if path == "/ok":
            self._send(200)
        elif path == "/redirect":
            self._send(301, location="/ok")
        elif path == "/missing":
            self._send(404)
        elif path == "/slow":
            time.sleep(1)
            self._send(200)
        else:
            self._send(500)

    def _send(self, status, location=None):
        body = b"hello\n"
        self.send_response(status)
        if location:
            self.send_header("Location", location)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def log_message(self, format, *args):
        pass


class _Server(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), _Handler)
        self._lock = threading.Lock()
        self.requests = []

    def record(self, handler):
        with self._lock:
            self.requests.append((handler.command, handler.path, dict(handler.headers)))

    def handle_error(self, request, client_address):
        # clients giving up on /slow leave broken pipes behind
        pass

    @property
    def port(self):
        return self.server_address[1]

    def url(self, path, host="127.0.0.1"):
        return f"http://{host}:{self.port}{path}"


@pytest.fixture(autouse=True)
def no_proxy(monkeypatch):
    for name in PROXY_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def server():
    srv = _Server()
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.shutdown()
    srv.server_close()
    thread.join()


@pytest.fixture
def make_client():
    clients = []

    def make(**kwargs):
        dns_cache = kwargs.pop("dns_cache_instance", None)
        client = ProbeClient(ProbeConfig(**kwargs), dns_cache=dns_cache)
        clients.append(client)
        return client.start()

    yield make
    for client in clients:
        client.close()


@pytest.fixture
def closed_port():
    """A local port nothing listens on."""
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
