"""
Exceptions raised by natsync.

Everything derives from `NatsyncError` so callers can catch the whole family.
Receive timeouts are not errors: a receive that runs out of time returns the
bytes it has and the caller inspects the shape.
"""
from typing import Optional


class NatsyncError(Exception):
    """Base class for all natsync errors."""
    pass

class ConnectError(NatsyncError):
    """Raised when the stream to the server cannot be opened."""

    def __init__(self, message: str, errno: Optional[int] = None):
        super().__init__(message)
        self.errno = errno
        self.message = message

    @classmethod
    def for_socket_error(cls, exc: OSError, address=None) -> "ConnectError":
        errno = exc.errno
        text = exc.strerror or str(exc)
        if address is not None:
            text = f"{text} (address={address})"
        return cls(f"A connection could not be established: {text} [errno={errno}]", errno=errno)

class WriteError(NatsyncError):
    """Raised when a write to the stream fails or times out."""
    pass

class ConnectionClosedError(WriteError):
    """Raised when a write reports zero bytes: the peer closed the pipe."""
    pass

class SelectError(NatsyncError):
    """Raised when the readiness wait on the socket fails."""
    pass

class HandshakeError(NatsyncError):
    """Raised when the server rejects the handshake with an -ERR line."""

    def __init__(self, response: str):
        super().__init__(f"Failed to connect: {response}")
        self.response = response

class ProtocolError(NatsyncError):
    """Raised when an inbound frame cannot be parsed."""
    pass

class SubscriptionNotFoundError(NatsyncError):
    """Raised when a MSG frame names a subscription id that is not registered."""

    def __init__(self, sid: str):
        super().__init__(f"Subscription not found: {sid}")
        self.sid = sid
