"""
natsync: a synchronous client for a text based publish/subscribe protocol.
"""
from .protocol.options import VERSION as __version__

from .errors import (
    NatsyncError,
    ConnectError,
    WriteError,
    ConnectionClosedError,
    SelectError,
    HandshakeError,
    ProtocolError,
    SubscriptionNotFoundError,
    )
from .protocol import ConnectionOptions, Message, ServerInfo
from .client import (
    Connection,
    ConnectionStatus,
    NonBlockingSocket,
    Socket,
    Subscription,
    Transport,
    )
