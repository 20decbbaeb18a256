from .commands import (
    VERB,
    MsgHeader,
    is_error_response,
    encode_connect,
    encode_sub,
    encode_unsub,
    encode_pub,
    parse_msg_header,
    )
from .message import Message
from .options import ConnectionOptions
from .server_info import ServerInfo
