"""
Tests for connection.py: handshake, verbs and the dispatch loop, over both
transports.
"""
import json
import time

import pytest

from natsync import (
    Connection,
    ConnectionStatus,
    HandshakeError,
    NonBlockingSocket,
    ProtocolError,
    Socket,
    SubscriptionNotFoundError,
)
from natsync.protocol.commands import parse_msg_header


def test_handshake(connected):
    nc, server = connected
    connect_line, ping_line = server.handshake

    assert connect_line.startswith(b"CONNECT {")
    options = json.loads(connect_line[len(b"CONNECT "):])
    assert options["lang"] == "python"
    assert options["verbose"] is False
    assert ping_line == b"PING\r\n"

    assert nc.status is ConnectionStatus.READY
    assert nc.connected_server_id == "FAKE-SERVER-1"
    assert nc.server_info.max_payload == 1048576
    assert nc.pings_count() == 1


def test_subscribe_round_trip(connected):
    nc, server = connected
    received = []
    sid = nc.subscribe("foo", received.append)

    assert len(sid) == 16
    assert server.readline() == f"SUB foo {sid}\r\n".encode()

    server.send(f"MSG foo {sid} 5\r\nhello\r\n".encode())
    nc.wait(1)

    assert len(received) == 1
    msg = received[0]
    assert msg.subject == "foo"
    assert msg.payload == b"hello"
    assert msg.sid == sid
    assert msg.reply_to is None
    assert msg.connection is nc


def test_unknown_subscription_raises(connected):
    nc, server = connected
    server.send(b"MSG foo nosuchsid 2\r\nhi\r\n")

    with pytest.raises(SubscriptionNotFoundError) as excinfo:
        nc.wait(1)
    assert excinfo.value.sid == "nosuchsid"


def test_wait_quantity_ignores_pings(connected):
    nc, server = connected
    received = []
    sid = nc.subscribe("foo", received.append)
    server.readline()

    server.send(
        b"PING\r\n"
        + f"MSG foo {sid} 1\r\na\r\n".encode()
        + b"PING\r\n"
        + f"MSG foo {sid} 1\r\nb\r\n".encode()
        + f"MSG foo {sid} 1\r\nc\r\n".encode()
    )
    nc.wait(2)

    assert [m.payload for m in received] == [b"a", b"b"]
    assert server.readline() == b"PONG\r\n"
    assert server.readline() == b"PONG\r\n"

    nc.wait(1)
    assert [m.payload for m in received] == [b"a", b"b", b"c"]


def test_unsubscribe_without_quantity_is_immediate(connected):
    nc, server = connected
    sid = nc.subscribe("foo", lambda msg: None)
    server.readline()

    nc.unsubscribe(sid)
    assert server.readline() == f"UNSUB {sid}\r\n".encode()
    assert nc.subscriptions_count() == 0

    server.send(f"MSG foo {sid} 2\r\nhi\r\n".encode())
    with pytest.raises(SubscriptionNotFoundError):
        nc.wait(1)


def test_unsubscribe_with_quantity_keeps_callback(connected):
    nc, server = connected
    received = []
    sid = nc.subscribe("foo", received.append)
    server.readline()

    nc.unsubscribe(sid, 1)
    assert server.readline() == f"UNSUB {sid} 1\r\n".encode()
    assert nc.get_subscriptions() == [sid]

    # A late delivery still reaches the callback
    server.send(f"MSG foo {sid} 1\r\na\r\nMSG foo {sid} 1\r\nb\r\n".encode())
    nc.wait(2)
    assert [m.payload for m in received] == [b"a", b"b"]


def test_queue_subscribe(connected):
    nc, server = connected
    sid = nc.queue_subscribe("jobs", "workers", lambda msg: None)
    assert server.readline() == f"SUB jobs workers {sid}\r\n".encode()


def test_subscribe_requires_callable(connected):
    nc, _ = connected
    with pytest.raises(TypeError):
        nc.subscribe("foo", "not callable")


@pytest.mark.parametrize("payload, inbox, header, body", [
    ("héllo", None, b"PUB foo 6\r\n", "héllo".encode()),
    (b"\x00\x01", "_INBOX.abc", b"PUB foo _INBOX.abc 2\r\n", b"\x00\x01"),
    (None, None, b"PUB foo 0\r\n", b""),
])
def test_publish(connected, payload, inbox, header, body):
    nc, server = connected
    nc.publish("foo", payload, inbox)

    assert server.readline() == header
    assert server.read_exact(len(body) + 2) == body + b"\r\n"
    assert nc.pubs_count() == 1


def test_ping_counts(connected):
    nc, server = connected
    nc.ping()
    nc.ping()
    assert server.readline() == b"PING\r\n"
    assert nc.pings_count() == 3


def test_msg_with_reply_subject_and_reply(connected):
    nc, server = connected

    def answer(msg):
        msg.reply(b"ack")

    sid = nc.subscribe("help", answer)
    server.readline()

    server.send(f"MSG help {sid} _INBOX.42 3\r\nsos\r\n".encode())
    nc.wait(1)

    assert server.readline() == b"PUB _INBOX.42 3\r\n"
    assert server.read_exact(5) == b"ack\r\n"


def test_request(connected):
    nc, server = connected
    replies = []

    def responder(srv):
        sub = srv.readline().split()
        inbox, sid = sub[1].decode(), sub[2].decode()
        assert srv.readline() == f"UNSUB {sid} 1\r\n".encode()
        pub = srv.readline().split()
        assert pub[1] == b"time" and pub[2].decode() == inbox
        assert srv.read_exact(int(pub[3]) + 2) == b"now?\r\n"
        srv.send(f"MSG {inbox} {sid} 5\r\n12:00\r\n".encode())

    server.run(responder)
    nc.request("time", "now?", replies.append, timeout=2.0)
    server.join()

    assert len(replies) == 1
    assert replies[0].payload == b"12:00"
    assert replies[0].subject.startswith("_INBOX.")
    assert nc.pubs_count() == 1


def test_malformed_msg_header(connected):
    nc, server = connected
    server.send(b"MSG foo\r\n")
    with pytest.raises(ProtocolError):
        nc.wait(1)


def test_other_frames_are_ignored(connected):
    nc, server = connected
    received = []
    sid = nc.subscribe("foo", received.append)
    server.readline()

    server.send(b"+OK\r\nPONG\r\n-ERR 'Unknown Protocol Operation'\r\n" + f"MSG foo {sid} 2\r\nok\r\n".encode())
    nc.wait(1)
    assert [m.payload for m in received] == [b"ok"]


def test_close_is_idempotent(connected):
    nc, _ = connected
    nc.close()
    nc.close()
    assert not nc.is_connected()
    assert nc.status is ConnectionStatus.DISCONNECTED


def test_reconnect(connected):
    nc, server = connected
    server.expect_connection()
    nc.reconnect()
    server.wait_ready()

    assert nc.is_connected()
    assert nc.reconnects_count() == 1
    assert nc.status is ConnectionStatus.READY
    assert server.handshake[-1] == b"PING\r\n"
    assert nc.pings_count() == 2


def test_wait_with_timeout_is_bounded(fake_server):
    fake_server.expect_connection()
    nc = Connection(fake_server.options, transport=NonBlockingSocket(read_timeout=5.0))
    nc.connect(timeout=1.0)
    fake_server.wait_ready()
    try:
        start = time.monotonic()
        nc.wait_with_timeout(0, 0.3)
        elapsed = time.monotonic() - start
    finally:
        nc.close()

    assert 0.3 <= elapsed < 2.0


def test_short_payload_ends_wait(fake_server):
    fake_server.expect_connection()
    nc = Connection(fake_server.options, transport=NonBlockingSocket())
    nc.connect(timeout=1.0)
    fake_server.wait_ready()
    received = []
    try:
        sid = nc.subscribe("foo", received.append)
        fake_server.readline()
        fake_server.send(f"MSG foo {sid} 10\r\nabc".encode())
        nc.wait(1)
    finally:
        nc.close()

    assert received == []


def test_handshake_error(fake_server_factory):
    server = fake_server_factory(handshake_reply=b"-ERR 'Authorization Violation'\r\n")
    server.expect_connection()
    nc = Connection(server.options, transport=Socket())
    with pytest.raises(HandshakeError) as excinfo:
        nc.connect(timeout=1.0)

    assert excinfo.value.response == "-ERR 'Authorization Violation'"
    assert not nc.is_connected()
    assert nc.status is ConnectionStatus.DISCONNECTED


@pytest.mark.parametrize("info", [
    b'INFO {"server_id":"S","max_payload":"big"}\r\n',
    b'INFO {"server_id":"S","connect_urls":5}\r\n',
])
def test_malformed_greeting_closes_connection(fake_server_factory, info):
    server = fake_server_factory(info=info)
    server.expect_connection()
    nc = Connection(server.options, transport=NonBlockingSocket())
    with pytest.raises(ProtocolError):
        nc.connect(timeout=1.0)

    assert not nc.is_connected()
    assert nc.status is ConnectionStatus.DISCONNECTED


def test_connect_twice_replaces_stream(fake_server):
    fake_server.expect_connection()
    nc = Connection(fake_server.options, transport=Socket())
    nc.connect(timeout=1.0)
    fake_server.wait_ready()
    first = nc.transport.raw_socket

    fake_server.expect_connection()
    nc.connect(timeout=1.0)
    fake_server.wait_ready()
    try:
        assert first.fileno() == -1
        assert nc.transport.raw_socket is not first
        assert nc.status is ConnectionStatus.READY
    finally:
        nc.close()


def test_context_manager_closes(fake_server):
    fake_server.expect_connection()
    with Connection(fake_server.options) as nc:
        nc.connect(timeout=1.0)
        fake_server.wait_ready()
        assert nc.is_connected()
    assert not nc.is_connected()


def test_parse_msg_header_fields():
    header = parse_msg_header(b"MSG foo.bar sid1 _INBOX.x 12\r\n")
    assert header == ("foo.bar", "sid1", "_INBOX.x", 12)
