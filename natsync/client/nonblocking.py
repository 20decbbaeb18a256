import numbers
import select
import socket
import time

from ..errors import SelectError
from ..settings import DEFAULT_CHUNK_SIZE, DEFAULT_READ_TIMEOUT
from ..utils.string_handlers import has_line_terminator
from .transport import RECV_BUFSIZE, Transport


class NonBlockingSocket(Transport):
    """
    Transport whose reads never block for longer than an idle timeout.

    The socket is switched to non-blocking mode once connected and every read
    waits on select() first. The timeout counts from the last byte received,
    not from the start of the call: a sender that trickles a line in small
    pieces is not cut off as long as each gap is shorter than the timeout.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, read_timeout: float = DEFAULT_READ_TIMEOUT):
        super().__init__(chunk_size=chunk_size)
        self.read_timeout = read_timeout

    def _prepare(self, sock: socket.socket) -> None:
        sock.setblocking(False)

    def set_read_timeout(self, seconds: float) -> None:
        """Default idle timeout used when `receive` is given none."""
        self.read_timeout = seconds

    def set_timeout(self, seconds) -> bool:
        # Kept for the write path only, the socket itself stays non-blocking
        if not self.is_connected():
            return False
        if isinstance(seconds, bool) or not isinstance(seconds, numbers.Real):
            return False
        self._timeout = float(seconds)
        return True

    def receive(self, length: int = 0, timeout: float = 0) -> bytes:
        """
        Read exactly `length` bytes, or one line when `length` is 0.

        Returns whatever arrived when `timeout` seconds (default: the read
        timeout) pass without any new byte, or when the stream ends. A short
        buffer, or a line without its terminator, is a timeout.
        """
        if timeout is None or timeout <= 0:
            timeout = self.read_timeout

        buffer = bytearray()
        need_bytes = length
        need_more = True
        loops = 0
        start = time.monotonic()
        elapsed = 0.0

        while need_more and elapsed < timeout:
            try:
                readable, _, _ = select.select([self._socket], [], [], timeout - elapsed)
            except (OSError, ValueError, TypeError) as e:
                raise SelectError(f"Stream select failed: {e}") from e

            if readable:
                if length > 0:
                    chunk = self._recv(min(need_bytes, RECV_BUFSIZE))
                else:
                    chunk = self._read_line_fragment(RECV_BUFSIZE)

                if chunk == b"":
                    # Readable with nothing to read: the peer is gone
                    break

                if chunk:
                    buffer += chunk
                    # Data keeps the call alive, the timeout is between bytes
                    start = time.monotonic()
                    if length > 0:
                        need_bytes -= len(chunk)
                        need_more = need_bytes > 0
                    else:
                        need_more = not has_line_terminator(buffer)

            elapsed = time.monotonic() - start
            loops += 1

        if need_more:
            reason = "end of stream" if self._eof else f"timeout after {timeout}s idle"
            self.logger.debug(f"xxxx {reason} reading len({length}): {len(buffer)} bytes in {loops} loops")
        self.logger.debug(f"<<<< {bytes(buffer[:100])!r}")
        return bytes(buffer)
