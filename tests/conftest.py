"""
In-process TCP servers for the transport and connection tests.
"""
import socket
import threading

import pytest

from natsync import Connection, ConnectionOptions, NonBlockingSocket, Socket


class StreamServer:
    """
    Accept connections on an ephemeral port and run `script(conn, server)`
    for each one, one connection at a time.
    """

    def __init__(self, script):
        self.script = script
        self.listener = socket.create_server(("127.0.0.1", 0))
        self.listener.settimeout(0.1)
        self.port = self.listener.getsockname()[1]
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def address(self):
        return ("127.0.0.1", self.port)

    @staticmethod
    def hold_open(conn, timeout=5):
        """Keep the stream open until the client closes its end."""
        conn.settimeout(timeout)
        try:
            conn.recv(1)
        except socket.timeout:
            pass

    def _serve(self):
        while not self._stopped.is_set():
            try:
                conn, _ = self.listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                try:
                    self.script(conn, self)
                except OSError:
                    pass

    def stop(self):
        self._stopped.set()
        self._thread.join(5)
        self.listener.close()


class FakeServer:
    """
    Minimal protocol peer. `expect_connection` accepts one client in the
    background and answers its handshake; afterwards the test drives the
    server side directly with `readline` / `read_exact` / `send`.
    """

    INFO = b'INFO {"server_id":"FAKE-SERVER-1","version":"2.10.0","host":"127.0.0.1","port":4222,"max_payload":1048576,"proto":1}\r\n'

    def __init__(self, handshake_reply=b"PONG\r\n", info=None):
        self.handshake_reply = handshake_reply
        self.info = info if info is not None else self.INFO
        self.handshake = []
        self.listener = socket.create_server(("127.0.0.1", 0))
        self.listener.settimeout(5)
        self.port = self.listener.getsockname()[1]
        self.conn = None
        self.reader = None
        self._connections = []
        self._thread = None

    @property
    def options(self):
        return ConnectionOptions(host="127.0.0.1", port=self.port)

    def expect_connection(self):
        self._thread = threading.Thread(target=self._accept, daemon=True)
        self._thread.start()

    def _accept(self):
        conn, _ = self.listener.accept()
        conn.settimeout(5)
        self.conn = conn
        self.reader = conn.makefile("rb")
        self._connections.append((conn, self.reader))

        conn.sendall(self.info)
        self.handshake = []
        while True:
            line = self.reader.readline()
            if not line:
                return
            self.handshake.append(line)
            if line.startswith(b"PING"):
                break
        conn.sendall(self.handshake_reply)

    def wait_ready(self, timeout=5):
        self._thread.join(timeout)

    def run(self, script):
        """Run `script(server)` in the background, e.g. to answer a request."""
        self._thread = threading.Thread(target=script, args=(self,), daemon=True)
        self._thread.start()

    def join(self, timeout=5):
        self._thread.join(timeout)

    def readline(self):
        return self.reader.readline()

    def read_exact(self, size):
        return self.reader.read(size)

    def send(self, data):
        self.conn.sendall(data)

    def close(self):
        for conn, reader in self._connections:
            reader.close()
            conn.close()
        self.listener.close()


@pytest.fixture
def stream_server():
    servers = []

    def start(script):
        server = StreamServer(script)
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.stop()


@pytest.fixture
def fake_server_factory():
    servers = []

    def start(**kwargs):
        server = FakeServer(**kwargs)
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.close()


@pytest.fixture
def fake_server(fake_server_factory):
    return fake_server_factory()


@pytest.fixture(params=["nonblocking", "blocking"])
def connected(request, fake_server):
    """
    A READY connection over either transport plus the server side of it.
    """
    if request.param == "nonblocking":
        transport = NonBlockingSocket()
    else:
        transport = Socket()

    fake_server.expect_connection()
    nc = Connection(fake_server.options, transport=transport)
    nc.connect(timeout=1.0)
    fake_server.wait_ready()

    yield nc, fake_server

    nc.close()
