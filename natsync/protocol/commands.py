"""
Verbs and frame layouts of the wire protocol.

Encoders return the control line without its CRLF terminator: the transport
appends it on send. `PUB` is the only frame that carries a payload, which
follows its header after an inner CRLF.
"""
from typing import NamedTuple, Optional, Union

from ..errors import ProtocolError
from ..utils.string_handlers import CRLF, remove_last_newline

class VERB:
    CONNECT = "CONNECT"
    PING = "PING"
    PONG = "PONG"
    SUB = "SUB"
    UNSUB = "UNSUB"
    PUB = "PUB"
    MSG = "MSG"
    INFO = "INFO"
    OK = "+OK"
    ERR = "-ERR"

ERROR_PREFIX = VERB.ERR.encode()


class MsgHeader(NamedTuple):
    subject: str
    sid: str
    reply_to: Optional[str]
    length: int


def is_error_response(response: Union[bytes, str, None]) -> bool:
    # The error prefix is fixed at 4 characters
    if not response:
        return False
    if isinstance(response, str):
        response = response.encode()
    return response[:4] == ERROR_PREFIX

def encode_connect(options_json: str) -> bytes:
    return f"{VERB.CONNECT} {options_json}".encode()

def encode_sub(subject: str, sid: str, queue: Optional[str] = None) -> bytes:
    if queue is None:
        return f"{VERB.SUB} {subject} {sid}".encode()
    return f"{VERB.SUB} {subject} {queue} {sid}".encode()

def encode_unsub(sid: str, quantity: Optional[int] = None) -> bytes:
    if quantity is None:
        return f"{VERB.UNSUB} {sid}".encode()
    return f"{VERB.UNSUB} {sid} {quantity}".encode()

def encode_pub(subject: str, payload: bytes, inbox: Optional[str] = None) -> bytes:
    head = VERB.PUB + " " + subject
    if inbox is not None:
        head += " " + inbox
    head += f" {len(payload)}{CRLF}"
    return head.encode() + payload

def parse_msg_header(line: bytes) -> MsgHeader:
    """
    Parse `MSG <subject> <sid> [<reply-to>] <length>`.

    The header has four fields, or five when a reply subject is present.
    """
    text = remove_last_newline(line.decode("utf-8", errors="replace"))
    parts = text.split(" ")
    if len(parts) == 5:
        _, subject, sid, reply_to, length = parts
    elif len(parts) == 4:
        _, subject, sid, length = parts
        reply_to = None
    else:
        raise ProtocolError(f"Malformed MSG header: {text!r}")

    try:
        size = int(length.strip())
    except ValueError as e:
        raise ProtocolError(f"Malformed MSG length in header: {text!r}") from e
    if size < 0:
        raise ProtocolError(f"Negative MSG length in header: {text!r}")

    return MsgHeader(subject=subject, sid=sid, reply_to=reply_to, length=size)