"""Message envelopes shared between the assistant and the transports."""

from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol, Union


@dataclass
class MediaEnvelope:
    kind: str
    mime_type: str
    fetch: Callable[[], Awaitable[bytes]]
    size: Optional[int] = None
    quoted: bool = False


@dataclass
class IncomingMessage:
    platform: str
    sender_id: str
    chat_id: str
    text: str = ""
    is_from_self: bool = False
    media: Optional[MediaEnvelope] = None

    @property
    def history_key(self) -> str:
        return f"{self.platform}_{self.sender_id}"


@dataclass
class TextReply:
    text: str


@dataclass
class ImageReply:
    data: Optional[bytes] = None
    url: Optional[str] = None
    caption: Optional[str] = None
    mime_type: str = "image/png"


@dataclass
class VideoReply:
    url: str
    caption: Optional[str] = None


@dataclass
class DocumentReply:
    path: Path
    filename: str
    mime_type: str = "application/zip"


Reply = Union[TextReply, ImageReply, VideoReply, DocumentReply]


class ReplyChannel(Protocol):
    """Outbound side of a transport, bound to one incoming message."""

    async def send(self, content: Reply) -> None: ...

    async def react(self, emoji: str) -> None: ...
