import time
from typing import Optional, Union

from ..errors import HandshakeError, SubscriptionNotFoundError
from ..logger import setup_logger
from ..protocol.commands import (
    VERB,
    encode_connect,
    encode_pub,
    encode_sub,
    encode_unsub,
    is_error_response,
    parse_msg_header,
    )
from ..protocol.message import Message
from ..protocol.options import ConnectionOptions
from ..protocol.server_info import ServerInfo
from ..settings import DEFAULT_SOCKET_TIMEOUT
from ..utils.addr_handlers import format_addr
from ..utils.client_socket_configs import SocketConfig
from ..utils.id_handlers import generate_sid, new_inbox
from ..utils.json_handlers import load_config
from ..utils.string_handlers import has_line_terminator, remove_last_newline
from .client_types import MESSAGE_CALLBACK, ConnectionStatus, Subscription
from .nonblocking import NonBlockingSocket
from .transport import Socket, Transport

PING_PREFIX = VERB.PING.encode()
MSG_PREFIX = VERB.MSG.encode()


class Connection:
    """
    One client connection to a server.

    Everything runs on the caller's thread: verbs are written immediately and
    inbound frames are only processed inside `wait` / `wait_with_timeout`,
    which invoke subscription callbacks synchronously.

    Example:
        nc = Connection(ConnectionOptions(host="localhost", port=4222))
        nc.connect()
        nc.subscribe("greet", lambda msg: print(msg.text))
        nc.publish("greet", "hello")
        nc.wait(1)
        nc.close()
    """

    def __init__(
            self,
            options: Optional[ConnectionOptions] = None,
            transport: Optional[Transport] = None,
            name: Optional[str] = None,
        ):
        self.name = name if isinstance(name, str) else "natsync.connection"
        self.logger = setup_logger(self.name)

        self.options = options if options is not None else ConnectionOptions()
        self._transport = transport if transport is not None else NonBlockingSocket()

        # Used by connect() when called without a timeout
        self.connect_timeout: Optional[float] = None
        # Timeout of the last connect(), reused by reconnect()
        self._timeout: Optional[float] = None

        self._pings = 0
        self._pubs = 0
        self._reconnects = 0
        self._subscriptions: dict[str, Subscription] = {}

        self._server_info: Optional[ServerInfo] = None
        self._status = ConnectionStatus.DISCONNECTED

    @classmethod
    def from_config(cls, config_path: Optional[str], name: Optional[str] = None) -> "Connection":
        """
        Build a connection from a json file with optional "options" and
        "socket" sections. Invalid entries are logged and left at defaults.
        """
        config = load_config(config_path)

        options = ConnectionOptions()
        problems = options.merge_in(**config.get("options", {}))

        socket_cfg = SocketConfig()
        problems += socket_cfg.merge_in(**config.get("socket", {}))

        if socket_cfg.non_blocking:
            transport = NonBlockingSocket(chunk_size=socket_cfg.chunk_size, read_timeout=socket_cfg.read_timeout)
        else:
            transport = Socket(chunk_size=socket_cfg.chunk_size)

        connection = cls(options=options, transport=transport, name=name)
        connection.connect_timeout = socket_cfg.connect_timeout
        for problem in problems:
            connection.logger.error(f"Config {config_path}: {problem}")
        return connection

    # ==== STATE ====

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def server_info(self) -> Optional[ServerInfo]:
        return self._server_info

    @property
    def connected_server_id(self) -> Optional[str]:
        return self._server_info.server_id if self._server_info is not None else None

    def pings_count(self) -> int:
        return self._pings

    def pubs_count(self) -> int:
        return self._pubs

    def reconnects_count(self) -> int:
        return self._reconnects

    def subscriptions_count(self) -> int:
        return len(self._subscriptions)

    def get_subscriptions(self) -> list[str]:
        return list(self._subscriptions)

    def is_connected(self) -> bool:
        return self._transport.is_connected()

    # ==== CONNECTION LIFE CYCLE ====

    def connect(self, timeout: Optional[float] = None) -> None:
        """
        Open the stream, read the INFO greeting, send CONNECT and PING, and
        check the first reply. An -ERR from the server raises HandshakeError.
        """
        if timeout is None:
            timeout = self.connect_timeout
        self._timeout = timeout

        address = self.options.address
        self._transport.connect(address, timeout, self.options.context)
        self._status = ConnectionStatus.CONNECTED
        self.logger.info(f"Connected to server @({format_addr(address)})")

        handshake_timeout = timeout if timeout is not None else DEFAULT_SOCKET_TIMEOUT
        try:
            self._process_greeting(self._transport.receive(0, handshake_timeout))

            self._transport.send(encode_connect(self.options.to_json()))
            self.ping()

            response = self._transport.receive(0, handshake_timeout)
            if is_error_response(response):
                raise HandshakeError(remove_last_newline(response.decode("utf-8", errors="replace")))
        except Exception:
            self.close()
            raise

        if not response:
            self.logger.warning(f"No reply to the handshake PING within {handshake_timeout}s")
        self._status = ConnectionStatus.READY

    def _process_greeting(self, greeting: bytes) -> None:
        if is_error_response(greeting):
            raise HandshakeError(remove_last_newline(greeting.decode("utf-8", errors="replace")))

        if greeting.startswith(VERB.INFO.encode()):
            self._server_info = ServerInfo.from_line(greeting)
            self.logger.info(f"Server id: {self._server_info.server_id}")
        elif greeting:
            self.logger.warning(f"Unexpected greeting from server: {greeting[:40]!r}")
        else:
            self.logger.warning("No INFO greeting received from server")

    def reconnect(self) -> None:
        self._reconnects += 1
        self.logger.info(f"Reconnecting (attempt {self._reconnects})")
        self.close()
        self.connect(self._timeout)

    def close(self) -> None:
        if not self._transport.is_connected():
            return

        self._transport.close()
        self._status = ConnectionStatus.DISCONNECTED
        self.logger.info("Disconnected from server.")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ==== VERBS ====

    def ping(self) -> None:
        self._transport.send(VERB.PING.encode())
        self._pings += 1

    def subscribe(self, subject: str, callback: MESSAGE_CALLBACK) -> str:
        return self._subscribe(subject, None, callback)

    def queue_subscribe(self, subject: str, queue: str, callback: MESSAGE_CALLBACK) -> str:
        return self._subscribe(subject, queue, callback)

    def _subscribe(self, subject: str, queue: Optional[str], callback: MESSAGE_CALLBACK) -> str:
        if not callable(callback):
            raise TypeError(f"Subscription callback for '{subject}' must be callable")

        sid = generate_sid()
        while sid in self._subscriptions:
            sid = generate_sid()

        self._transport.send(encode_sub(subject, sid, queue))
        self._subscriptions[sid] = Subscription(sid=sid, subject=subject, callback=callback, queue=queue)
        return sid

    def unsubscribe(self, sid: str, quantity: Optional[int] = None) -> None:
        """
        Without `quantity` the callback is dropped right away. With it, the
        server is told to stop after `quantity` more messages and the callback
        stays registered here.
        """
        self._transport.send(encode_unsub(sid, quantity))
        if quantity is None:
            self._subscriptions.pop(sid, None)

    def publish(self, subject: str, payload: Union[bytes, str, None] = None, inbox: Optional[str] = None) -> None:
        if payload is None:
            payload = b""
        elif isinstance(payload, str):
            payload = payload.encode("utf-8")

        self._transport.send(encode_pub(subject, payload, inbox))
        self._pubs += 1

    def request(
            self,
            subject: str,
            payload: Union[bytes, str, None],
            callback: MESSAGE_CALLBACK,
            timeout: float = 0,
        ) -> None:
        """
        Publish with a fresh inbox as reply subject and dispatch one reply to
        `callback`. A positive `timeout` bounds the whole wait.
        """
        inbox = new_inbox()
        sid = self.subscribe(inbox, callback)
        self.unsubscribe(sid, 1)
        self.publish(subject, payload, inbox)
        self.wait_with_timeout(1, timeout)

    # ==== DISPATCH ====

    def wait(self, quantity: int = 0) -> "Connection":
        """
        Process inbound frames until `quantity` messages were dispatched
        (0 means no limit) or a read comes back empty.
        """
        return self._dispatch(quantity, None)

    def wait_with_timeout(self, quantity: int = 0, timeout: float = 0.0) -> "Connection":
        """
        Like `wait`, but also stop once `timeout` seconds have passed in total.
        """
        if timeout <= 0:
            return self.wait(quantity)
        return self._dispatch(quantity, timeout)

    def _dispatch(self, quantity: int, budget: Optional[float]) -> "Connection":
        count = 0
        start = time.monotonic()

        while self._transport.is_active():
            read_timeout = 0.0
            if budget is not None:
                read_timeout = budget - (time.monotonic() - start)
                if read_timeout <= 0:
                    return self

            line = self._transport.receive(0, read_timeout)
            if not line:
                return self

            if not has_line_terminator(line):
                self.logger.warning(f"Dropping incomplete frame after read timeout: {line[:40]!r}")
                return self

            if line.startswith(PING_PREFIX):
                self._handle_ping()

            elif line.startswith(MSG_PREFIX):
                if not self._handle_msg(line):
                    return self
                count += 1
                if quantity != 0 and count >= quantity:
                    return self

            elif is_error_response(line):
                self.logger.warning(f"Server error: {remove_last_newline(line.decode('utf-8', errors='replace'))}")

        return self

    def _handle_ping(self) -> None:
        self._transport.send(VERB.PONG.encode())

    def _handle_msg(self, line: bytes) -> bool:
        header = parse_msg_header(line)

        payload = self._transport.receive(header.length) if header.length > 0 else b""
        if len(payload) < header.length:
            self.logger.warning(
                f"Read timeout on payload for '{header.subject}': "
                f"{len(payload)} of {header.length} bytes"
            )
            return False

        msg = Message(
            subject=header.subject,
            payload=payload,
            sid=header.sid,
            connection=self,
            reply_to=header.reply_to,
        )

        subscription = self._subscriptions.get(header.sid)
        if subscription is None:
            raise SubscriptionNotFoundError(header.sid)

        subscription.callback(msg)
        return True
