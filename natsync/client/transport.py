"""
Stream transports.

`Transport` is the read/write capability the Connection depends on. Two
implementations exist and one is picked when the Connection is built:

- `Socket` (here): blocking reads bounded by the socket timeout.
- `NonBlockingSocket` (nonblocking.py): readiness-wait reads bounded by an
  idle timeout that resets whenever bytes arrive.

Line reads never consume bytes past the terminator. The next frame stays in
the kernel buffer, so select() keeps reporting it and no read-ahead has to be
carried between calls.
"""
import numbers
import select
import socket
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence, Tuple

from ..errors import ConnectError, ConnectionClosedError, WriteError
from ..logger import setup_logger
from ..settings import DEFAULT_CHUNK_SIZE, DEFAULT_SOCKET_TIMEOUT
from ..utils.addr_handlers import format_addr
from ..utils.string_handlers import terminate_line, has_line_terminator

# Upper bound for a single recv() / MSG_PEEK
RECV_BUFSIZE = 65536


class Transport(ABC):

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.logger = setup_logger("natsync.transport")
        self.chunk_size = chunk_size
        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None
        self._timeout: Optional[float] = None
        self._eof = False
        self._timed_out = False

    # ==== CONNECTION LIFE CYCLE ====

    def connect(
            self,
            address: Tuple[str, int],
            connect_timeout: Optional[float] = None,
            context: Optional[Sequence[Tuple[int, int, Any]]] = None,
        ) -> None:
        """
        Open the stream to `address`.

        `connect_timeout` bounds the connect call and becomes the initial
        read/write timeout. `context` is a sequence of (level, option, value)
        triples applied with setsockopt before connecting. An already open
        stream is closed first.
        """
        if connect_timeout is None:
            connect_timeout = DEFAULT_SOCKET_TIMEOUT
        self.close()

        sock = None
        try:
            host, port = address
            family, kind, proto, _, sockaddr = socket.getaddrinfo(
                host, port, type=socket.SOCK_STREAM)[0]
            sock = socket.socket(family, kind, proto)
            for level, option, value in context or ():
                sock.setsockopt(level, option, value)
            sock.settimeout(connect_timeout)
            sock.connect(sockaddr)
        except OSError as e:
            if sock is not None:
                sock.close()
            raise ConnectError.for_socket_error(e, format_addr(address)) from e

        self._socket = sock
        self._address = address
        self._eof = False
        self._timed_out = False
        self.set_timeout(connect_timeout)
        self._prepare(sock)
        self.logger.debug(f"Connected to {format_addr(address)}")

    def _prepare(self, sock: socket.socket) -> None:
        """Hook run once the socket is connected."""
        pass

    def close(self) -> None:
        if self._socket is None:
            return

        try:
            self._socket.close()
        finally:
            self._socket = None
        self.logger.debug(f"Closed connection to {format_addr(self._address)}")

    def is_connected(self) -> bool:
        return self._socket is not None

    def is_active(self) -> bool:
        if self._socket is None or self._socket.fileno() < 0:
            return False
        return not self._eof and not self._timed_out

    def set_timeout(self, seconds) -> bool:
        """
        Apply a read/write timeout. Returns False instead of raising when not
        connected or when `seconds` is not a number.
        """
        if not self.is_connected():
            return False
        if isinstance(seconds, bool) or not isinstance(seconds, numbers.Real):
            return False
        try:
            self._socket.settimeout(float(seconds))
        except (OSError, ValueError):
            return False
        self._timeout = float(seconds)
        self._timed_out = False
        return True

    def set_chunk_size(self, chunk_size: int) -> None:
        self.chunk_size = chunk_size

    @property
    def raw_socket(self) -> Optional[socket.socket]:
        return self._socket

    # ==== WRITING ====

    def send(self, payload: bytes) -> None:
        """
        Write `payload` plus CRLF, retrying partial writes until all is flushed.
        """
        if self._socket is None:
            raise WriteError("Error sending data: not connected")

        msg = terminate_line(payload)
        view = memoryview(msg)
        offset = 0
        self._timed_out = False
        while offset < len(msg):
            try:
                written = self._socket.send(view[offset:])
            except BlockingIOError:
                self._wait_writable()
                continue
            except OSError as e:
                raise WriteError(f"Error sending data: {e}") from e

            if written == 0:
                raise ConnectionClosedError("Broken pipe or closed connection")
            offset += written

        self.logger.debug(f">>>> {msg[:100]!r}")

    def _wait_writable(self) -> None:
        # Only reached when the socket is non-blocking and its send buffer is full
        try:
            _, writable, _ = select.select([], [self._socket], [], self._timeout)
        except (OSError, ValueError) as e:
            raise WriteError(f"Error waiting to send data: {e}") from e
        if not writable:
            raise WriteError(f"Timed out after {self._timeout}s waiting to send data")

    # ==== READING ====

    @abstractmethod
    def receive(self, length: int = 0, timeout: float = 0) -> bytes:
        """
        Read exactly `length` bytes, or one line when `length` is 0.

        May return fewer bytes (or a line without its terminator) when the
        read runs out of time or the stream ends.
        """

    def _recv(self, size: int, flags: int = 0) -> Optional[bytes]:
        """
        One recv() call. Returns None when no data was available in time,
        b"" at end of stream.
        """
        try:
            chunk = self._socket.recv(size, flags)
        except BlockingIOError:
            return None
        except TimeoutError:
            self._timed_out = True
            return None
        except ConnectionResetError as e:
            self.logger.warning(f"Connection reset by peer: {e}")
            self._eof = True
            return b""
        if not chunk:
            self._eof = True
        return chunk

    def _read_line_fragment(self, limit: int) -> Optional[bytes]:
        """
        Read what is available up to and including the next newline.
        """
        peeked = self._recv(limit, socket.MSG_PEEK)
        if not peeked:
            return peeked
        end = peeked.find(b"\n")
        return self._recv(len(peeked) if end < 0 else end + 1)


class Socket(Transport):
    """
    Blocking transport. Reads wait for as long as the socket timeout allows;
    the per-call `timeout` argument of `receive` is accepted and ignored.
    """

    def receive(self, length: int = 0, timeout: float = 0) -> bytes:
        self._timed_out = False
        buffer = bytearray()
        if length > 0:
            while len(buffer) < length:
                chunk = self._recv(min(self.chunk_size, length - len(buffer)))
                if not chunk:
                    break
                buffer += chunk
        else:
            while not has_line_terminator(buffer):
                chunk = self._read_line_fragment(self.chunk_size)
                if not chunk:
                    break
                buffer += chunk

        self.logger.debug(f"<<<< {bytes(buffer[:100])!r}")
        return bytes(buffer)
