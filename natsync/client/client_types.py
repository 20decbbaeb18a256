"""
Types used by the connection's subscription registry
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..protocol.message import Message

MESSAGE_CALLBACK = Callable[[Message], None]


class ConnectionStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"     # stream open, handshake pending
    READY = "ready"


@dataclass(slots=True)
class Subscription:
    sid: str
    subject: str
    callback: MESSAGE_CALLBACK
    queue: Optional[str] = None
