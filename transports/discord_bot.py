import asyncio
import io
import logging
from typing import Callable, List, Optional

import discord
from discord.ext import commands

from core.assistant import Assistant
from core.models import (
    DocumentReply,
    ImageReply,
    IncomingMessage,
    MediaEnvelope,
    Reply,
    TextReply,
    VideoReply,
)
from transports.lifecycle import ConnectionState, supervise

log = logging.getLogger(__name__)

MAX_DISCORD_MESSAGE_LEN = 2000

STICKER_MIME_TYPES = {
    discord.StickerFormatType.png: "image/png",
    discord.StickerFormatType.apng: "image/png",
    discord.StickerFormatType.gif: "image/gif",
    discord.StickerFormatType.lottie: "application/json",
}


def _chunks(text: str, size: int = MAX_DISCORD_MESSAGE_LEN) -> List[str]:
    if not text:
        return [""]
    return [text[i : i + size] for i in range(0, len(text), size)]


def kind_for_content_type(content_type: Optional[str]) -> str:
    major = (content_type or "").split("/")[0].lower()
    if major in {"image", "video", "audio"}:
        return major
    return "document"


def media_from_message(message: Optional[discord.Message], *, quoted: bool = False) -> Optional[MediaEnvelope]:
    if message is None:
        return None
    if message.attachments:
        attachment = message.attachments[0]
        content_type = attachment.content_type or "application/octet-stream"
        return MediaEnvelope(
            kind=kind_for_content_type(content_type),
            mime_type=content_type.split(";")[0],
            fetch=attachment.read,
            size=attachment.size,
            quoted=quoted,
        )
    if message.stickers:
        sticker = message.stickers[0]
        mime = STICKER_MIME_TYPES.get(sticker.format, "image/png")
        return MediaEnvelope(kind="sticker", mime_type=mime, fetch=sticker.read, quoted=quoted)
    return None


def incoming_from_message(message: discord.Message, bot_user: Optional[discord.ClientUser]) -> IncomingMessage:
    media = media_from_message(message)
    if media is None and message.reference is not None:
        resolved = message.reference.resolved
        if isinstance(resolved, discord.Message):
            media = media_from_message(resolved, quoted=True)
    is_self = bot_user is not None and message.author.id == bot_user.id
    return IncomingMessage(
        platform="discord",
        sender_id=str(message.author.id),
        chat_id=str(message.channel.id),
        text=message.content or "",
        is_from_self=is_self or message.author.bot,
        media=media,
    )


class DiscordReplyChannel:
    def __init__(self, message: discord.Message):
        self.message = message

    async def send(self, content: Reply) -> None:
        if isinstance(content, TextReply):
            for chunk in _chunks(content.text):
                if chunk:
                    await self.message.reply(chunk)
        elif isinstance(content, ImageReply):
            if content.data is not None:
                extension = (content.mime_type or "image/png").split("/")[-1]
                file = discord.File(io.BytesIO(content.data), filename=f"image.{extension}")
                await self.message.reply(content.caption or None, file=file)
            else:
                await self.message.reply(self._with_caption(content.url, content.caption))
        elif isinstance(content, VideoReply):
            await self.message.reply(self._with_caption(content.url, content.caption))
        elif isinstance(content, DocumentReply):
            await self.message.reply(file=discord.File(str(content.path), filename=content.filename))
        else:
            raise TypeError(f"unsupported reply: {type(content).__name__}")

    @staticmethod
    def _with_caption(url: Optional[str], caption: Optional[str]) -> str:
        text = f"{caption}\n{url}" if caption else str(url)
        return text[:MAX_DISCORD_MESSAGE_LEN]

    async def react(self, emoji: str) -> None:
        await self.message.add_reaction(emoji)


class DiscordTransport(commands.Bot):
    def __init__(self, assistant: Assistant, *, on_open: Optional[Callable[[], None]] = None):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(command_prefix=commands.when_mentioned, intents=intents)
        self.assistant = assistant
        self._on_open = on_open

    async def on_ready(self):
        log.info("Discord bot ready as %s", self.user)
        if self._on_open is not None:
            self._on_open()

    async def on_message(self, message: discord.Message):
        incoming = incoming_from_message(message, self.user)
        if incoming.is_from_self:
            return
        try:
            await self.assistant.handle_message(incoming, DiscordReplyChannel(message))
        except Exception as exc:
            log.exception("Assistant error: %s", exc)


async def run_discord_bot(
    assistant: Assistant,
    token: str,
    stop_event: asyncio.Event,
    *,
    retry_delay: float = 5.0,
) -> ConnectionState:
    async def run_once(mark_open) -> None:
        bot = DiscordTransport(assistant, on_open=mark_open)
        closer = asyncio.create_task(_close_on(stop_event, bot))
        try:
            await bot.start(token)
        finally:
            closer.cancel()
            if not bot.is_closed():
                await bot.close()

    return await supervise(
        "discord",
        run_once,
        is_permanent=lambda exc: isinstance(exc, discord.LoginFailure),
        stop_event=stop_event,
        retry_delay=retry_delay,
    )


async def _close_on(stop_event: asyncio.Event, bot: commands.Bot) -> None:
    await stop_event.wait()
    await bot.close()
