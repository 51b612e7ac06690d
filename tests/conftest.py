"""
Shared fixtures: a recording destination endpoint and an in-process bridge.
"""

import json
import queue
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from forwarder.forwarder import Forwarder
from listener.listener import LineBridgeServer
from utils.config import BridgeConfig

from tests import TEST_CONFIG


class RecordedRequest:
    """One request seen by the recording endpoint."""

    def __init__(self, method, path, headers, body):
        self.method = method
        self.path = path
        self.headers = headers
        self.body = body

    def json(self):
        return json.loads(self.body.decode('utf-8'))


class RecordingHandler(BaseHTTPRequestHandler):
    """Records every POST and answers with the endpoint's canned response."""

    def do_POST(self):
        length = int(self.headers.get('Content-Length', 0))
        body = self.rfile.read(length) if length else b''
        endpoint = self.server.endpoint
        endpoint.requests.put(RecordedRequest(self.command, self.path, dict(self.headers), body))

        if endpoint.delay:
            time.sleep(endpoint.delay)

        status, payload = endpoint.status, endpoint.response_body
        data = payload if isinstance(payload, bytes) else json.dumps(payload).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_GET(self):
        self.send_response(200)
        self.send_header('Content-Length', '0')
        self.end_headers()

    def log_message(self, format, *args):
        pass


class RecordingEndpoint:
    """Local HTTP destination standing in for the real registration service."""

    def __init__(self):
        self.requests = queue.Queue()
        self.status = 200
        self.response_body = {'status': 'registered'}
        self.delay = 0
        self.httpd = ThreadingHTTPServer(('127.0.0.1', 0), RecordingHandler)
        self.httpd.daemon_threads = True
        self.httpd.endpoint = self
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    @property
    def url(self):
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}/register"

    def start(self):
        self.thread.start()

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()

    def is_ready(self):
        try:
            return requests.get(self.url, timeout=2).status_code == 200
        except requests.exceptions.RequestException:
            return False

    def wait_for(self, count, timeout=TEST_CONFIG['DEFAULT_TIMEOUT']):
        """Collect exactly `count` requests or fail."""
        received = []
        deadline = time.time() + timeout
        while len(received) < count:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise AssertionError(f"expected {count} requests, got {len(received)}")
            try:
                received.append(self.requests.get(timeout=remaining))
            except queue.Empty:
                continue
        return received

    def assert_no_more(self, wait=0.5):
        try:
            extra = self.requests.get(timeout=wait)
        except queue.Empty:
            return
        raise AssertionError(f"unexpected extra request: {extra.body!r}")


def unused_port():
    """A port nothing is listening on right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def endpoint():
    """Running recording endpoint, shut down after the test."""
    ep = RecordingEndpoint()
    ep.start()
    for _ in range(50):
        if ep.is_ready():
            break
        time.sleep(0.1)
    else:
        ep.stop()
        pytest.skip("Recording endpoint did not become ready in time")
    yield ep
    ep.stop()


@pytest.fixture
def start_bridge():
    """Factory fixture: start an in-process bridge on an ephemeral port."""
    servers = []

    def _start(url, close_connection=True, token=TEST_CONFIG['TOKEN'], timeout=5.0,
               max_connections=64, forwarder=None):
        config = BridgeConfig(
            port='0',
            close_connection=close_connection,
            url=url,
            token=token,
            timeout=timeout,
            max_connections=max_connections,
        )
        server = LineBridgeServer(config, forwarder=forwarder or Forwarder.from_config(config))
        server.bind()
        thread = threading.Thread(target=server.start, daemon=True)
        thread.start()
        if not server.ready.wait(TEST_CONFIG['STARTUP_WAIT_TIME']):
            pytest.fail("Bridge did not start in time")
        servers.append((server, thread))
        return server

    yield _start

    for server, thread in servers:
        server.stop()
        thread.join(timeout=5)


def connect(server):
    """Open a client connection to a running bridge."""
    sock = socket.create_connection(server.server_address, timeout=TEST_CONFIG['DEFAULT_TIMEOUT'])
    return sock
