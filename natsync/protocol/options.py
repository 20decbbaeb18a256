"""
Connection options: where to connect and what to say in CONNECT.
"""
#pylint:disable=line-too-long
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..utils.addr_handlers import DEFAULT_PORT, parse_addr

LANG = "python"
VERSION = "0.1.0"

# (level, option, value) triples handed to socket.setsockopt before connecting
SocketOption = Tuple[int, int, Any]


@dataclass(slots=True)
class ConnectionOptions:
    host: str = "localhost"
    port: int = DEFAULT_PORT
    user: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    lang: str = LANG
    version: str = VERSION
    verbose: bool = False
    pedantic: bool = False
    socket_options: List[SocketOption] = field(default_factory=list)

    def __post_init__(self):
        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ValueError(f"The provided port must be an integer in 1..65535. It was {self.port!r}")

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "ConnectionOptions":
        """
        Build options from "nats://host:port" (or "host:port") plus keyword overrides.
        """
        host, port = parse_addr(url)
        return cls(host=host, port=port, **kwargs)

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    @property
    def context(self) -> List[SocketOption]:
        return list(self.socket_options)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "lang": self.lang,
            "version": self.version,
            "verbose": self.verbose,
            "pedantic": self.pedantic,
        }
        if self.user is not None:
            payload["user"] = self.user
            payload["pass"] = self.password
        elif self.token is not None:
            payload["auth_token"] = self.token
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def __str__(self) -> str:
        return self.to_json()

    def merge_in(self, **kwargs) -> List[str]:
        """
        Apply the "options" section of a json configuration.
        Problems are collected and returned, invalid keys keep their old value.
        """
        all_problems = []
        if "url" in kwargs:
            try:
                self.host, self.port = parse_addr(str(kwargs["url"]))
            except ValueError as e:
                all_problems.append(f"The provided url could not be parsed: {e}")
        if "host" in kwargs:
            if not isinstance((z := kwargs["host"]), str) or not z:
                all_problems.append(f"The provided host was not a non-empty string. It was {z!r}")
            else:
                self.host = z
        if "port" in kwargs:
            if isinstance((z := kwargs["port"]), bool) or not isinstance(z, int):
                all_problems.append(f"The provided port was not an integer. It was {type(z)}")
            elif not 0 < z < 65536:
                all_problems.append(f"The provided port is out of range. It was {z}")
            else:
                self.port = z
        for key in ("user", "password", "token"):
            if key in kwargs:
                if isinstance((z := kwargs[key]), str | None):
                    setattr(self, key, z)
                else:
                    all_problems.append(f"The provided {key} was not an optional string. It was {type(z)}")
        for key in ("verbose", "pedantic"):
            if key in kwargs:
                if isinstance((z := kwargs[key]), bool):
                    setattr(self, key, z)
                else:
                    all_problems.append(f"The provided {key} was not a bool. It was {type(z)}")
        return all_problems
