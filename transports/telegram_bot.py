import asyncio
import logging
from typing import Optional

from telegram import Message, Update
from telegram.error import InvalidToken
from telegram.ext import Application, ContextTypes, MessageHandler, filters

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


def _downloader(attachment):
    async def fetch() -> bytes:
        tg_file = await attachment.get_file()
        data = await tg_file.download_as_bytearray()
        return bytes(data)

    return fetch


def media_from_message(message: Optional[Message], *, quoted: bool = False) -> Optional[MediaEnvelope]:
    if message is None:
        return None
    if message.photo:
        photo = message.photo[-1]
        return MediaEnvelope("image", "image/jpeg", _downloader(photo), photo.file_size, quoted)
    if message.video:
        video = message.video
        if video.thumbnail:
            # poster frame in place of the clip
            thumb = video.thumbnail
            return MediaEnvelope("video", "image/jpeg", _downloader(thumb), thumb.file_size, quoted)
        return MediaEnvelope("video", video.mime_type or "video/mp4", _downloader(video), video.file_size, quoted)
    if message.document:
        doc = message.document
        return MediaEnvelope(
            "document", doc.mime_type or "application/octet-stream", _downloader(doc), doc.file_size, quoted
        )
    audio = message.audio or message.voice
    if audio:
        return MediaEnvelope("audio", audio.mime_type or "audio/ogg", _downloader(audio), audio.file_size, quoted)
    if message.sticker:
        sticker = message.sticker
        if not sticker.is_animated and not sticker.is_video:
            return MediaEnvelope("sticker", "image/webp", _downloader(sticker), sticker.file_size, quoted)
        if sticker.thumbnail:
            thumb = sticker.thumbnail
            return MediaEnvelope("sticker", "image/webp", _downloader(thumb), thumb.file_size, quoted)
        mime = "application/x-tgsticker" if sticker.is_animated else "video/webm"
        return MediaEnvelope("sticker", mime, _downloader(sticker), sticker.file_size, quoted)
    return None


def incoming_from_update(update: Update, bot_id: Optional[int] = None) -> Optional[IncomingMessage]:
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    if not message or not user or not chat:
        return None
    media = media_from_message(message)
    if media is None:
        media = media_from_message(message.reply_to_message, quoted=True)
    return IncomingMessage(
        platform="telegram",
        sender_id=str(user.id),
        chat_id=str(chat.id),
        text=message.text or message.caption or "",
        is_from_self=user.is_bot or (bot_id is not None and user.id == bot_id),
        media=media,
    )


class TelegramReplyChannel:
    def __init__(self, message: Message):
        self.message = message

    async def send(self, content: Reply) -> None:
        if isinstance(content, TextReply):
            await self.message.reply_text(content.text, do_quote=True)
        elif isinstance(content, ImageReply):
            photo = content.data if content.data is not None else content.url
            await self.message.reply_photo(photo=photo, caption=content.caption, do_quote=True)
        elif isinstance(content, VideoReply):
            await self.message.reply_video(video=content.url, caption=content.caption, do_quote=True)
        elif isinstance(content, DocumentReply):
            with open(content.path, "rb") as handle:
                await self.message.reply_document(
                    document=handle, filename=content.filename, do_quote=True
                )
        else:
            raise TypeError(f"unsupported reply: {type(content).__name__}")

    async def react(self, emoji: str) -> None:
        await self.message.set_reaction(reaction=emoji)


class TelegramTransport:
    def __init__(self, assistant: Assistant, token: str, *, retry_delay: float = 5.0):
        self.assistant = assistant
        self.token = token
        self.retry_delay = retry_delay
        self.state = ConnectionState.CONNECTING
        self._stop_event = asyncio.Event()

    def _build_application(self) -> Application:
        application = Application.builder().token(self.token).concurrent_updates(True).build()
        application.add_handler(
            MessageHandler(filters.ALL & (~filters.COMMAND), self.handle_message)
        )
        return application

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        incoming = incoming_from_update(update, context.bot.id if context.bot else None)
        if incoming is None or incoming.is_from_self:
            return
        channel = TelegramReplyChannel(update.effective_message)
        try:
            await self.assistant.handle_message(incoming, channel)
        except Exception as exc:
            log.exception("Assistant error: %s", exc)

    async def _run_once(self, mark_open) -> None:
        application = self._build_application()
        await application.initialize()
        try:
            await application.start()
            await application.updater.start_polling()
            mark_open()
            await self._stop_event.wait()
        finally:
            if application.updater.running:
                await application.updater.stop()
            if application.running:
                await application.stop()
            await application.shutdown()

    def _set_state(self, state: ConnectionState) -> None:
        self.state = state

    async def start(self) -> ConnectionState:
        return await supervise(
            "telegram",
            self._run_once,
            is_permanent=lambda exc: isinstance(exc, InvalidToken),
            stop_event=self._stop_event,
            retry_delay=self.retry_delay,
            on_state=self._set_state,
        )

    async def stop(self):
        self._stop_event.set()
