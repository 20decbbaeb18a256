from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Message:
    """
    A message delivered to a subscription callback.

    `connection` is the Connection that dispatched it, so a callback can
    answer a request with `message.reply(...)`.
    """
    subject: str
    payload: bytes
    sid: str
    connection: Any = field(repr=False, compare=False)
    reply_to: Optional[str] = None

    def reply(self, payload: Union[bytes, str, None] = None) -> None:
        if self.reply_to is None:
            raise ValueError(f"Message on {self.subject!r} has no reply subject")
        self.connection.publish(self.reply_to, payload)

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8")
