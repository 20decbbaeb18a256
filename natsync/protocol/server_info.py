import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..errors import ProtocolError
from ..utils.string_handlers import remove_last_newline
from .commands import VERB


@dataclass(slots=True)
class ServerInfo:
    """
    Decoded `INFO {...}` greeting sent by the server right after accept.
    Unknown keys are kept in `extra`.
    """
    server_id: str
    version: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    auth_required: bool = False
    tls_required: bool = False
    max_payload: int = 1048576
    connect_urls: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("server_id", "version", "host", "port", "auth_required",
              "tls_required", "max_payload", "connect_urls")

    @classmethod
    def from_line(cls, line: Union[bytes, str]) -> "ServerInfo":
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        text = remove_last_newline(line)
        verb, _, body = text.partition(" ")
        if verb != VERB.INFO:
            raise ProtocolError(f"Expected INFO greeting, got {text[:40]!r}")
        try:
            info = json.loads(body)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"INFO payload is not valid JSON: {e}") from e
        if not isinstance(info, dict) or "server_id" not in info:
            raise ProtocolError("INFO payload has no server_id")

        try:
            return cls(
                server_id=str(info["server_id"]),
                version=info.get("version"),
                host=info.get("host"),
                port=info.get("port"),
                auth_required=bool(info.get("auth_required", False)),
                tls_required=bool(info.get("tls_required", False)),
                max_payload=int(info.get("max_payload", 1048576)),
                connect_urls=list(info.get("connect_urls") or []),
                extra={k: v for k, v in info.items() if k not in cls._KNOWN},
            )
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"INFO payload has a malformed field: {e}") from e
