from .transport import Transport, Socket
from .nonblocking import NonBlockingSocket
from .client_types import ConnectionStatus, Subscription
from .connection import Connection
