import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

import aiohttp
from openai import AsyncOpenAI

from .backup import create_backup
from .commands import (
    Command,
    ImageCommand,
    TiktokCommand,
    UnrecognizedCommand,
    extract_json,
    parse_command,
    strip_citations,
)
from .guard import SingleFlight
from .history import ConversationStore
from .models import (
    DocumentReply,
    ImageReply,
    IncomingMessage,
    MediaEnvelope,
    ReplyChannel,
    TextReply,
    VideoReply,
)
from .prompt import SystemPrompt
from .services import (
    MAX_AUDIO_BYTES,
    AudioTooLarge,
    ImageGenerator,
    TiktokDownloader,
    Transcriber,
)
from .settings import Settings, SettingsStore

log = logging.getLogger(__name__)

MODEL_ACK = "Okay, understood. I'm Relay and I will follow these instructions."
BUSY_TEXT = "🤖 The AI is busy, please wait a moment before sending a new request."
AUDIO_PROCESSING_TEXT = "🎙️ Processing audio..."
AUDIO_TOO_LARGE_TEXT = "Sorry, audio must be 5MB or smaller."
TRANSCRIBE_FAILED_TEXT = "Failed to transcribe the audio."
IMAGE_WORKING_TEXT = "Generating image..."
TIKTOK_LOADING_TEXT = "Downloading TikTok content... 🎥"
TIKTOK_FAILED_TEXT = "Failed to download that TikTok content. 😥"
UNRECOGNIZED_TEXT = "Command not recognized."
STICKER_DEFAULT_TEXT = "Describe this sticker."
MEDIA_DEFAULT_TEXT = "Analyze this media."
UNSUPPORTED_MEDIA_TEXT = "Sorry, I can't read that kind of media yet."

OPERATOR_COMMANDS = {".backup", ".aion", ".aioff", ".reset"}

IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
FILE_MIME_TYPES = frozenset({"application/pdf"})


@dataclass
class UserTurn:
    text: str
    media_part: Optional[Dict[str, Any]] = None


def _base_mime(mime_type: Optional[str]) -> str:
    return (mime_type or "").split(";")[0].strip().lower()


def supports_media(mime_type: Optional[str]) -> bool:
    mime = _base_mime(mime_type)
    return mime in IMAGE_MIME_TYPES or mime in FILE_MIME_TYPES


def build_media_part(envelope: MediaEnvelope, data: bytes) -> Dict[str, Any]:
    """Inline content part: raster images as ``image_url``, PDFs as ``file``."""
    encoded = base64.b64encode(data).decode("ascii")
    mime = _base_mime(envelope.mime_type)
    if mime in IMAGE_MIME_TYPES:
        return {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{encoded}"}}
    if mime in FILE_MIME_TYPES:
        return {
            "type": "file",
            "file": {
                "filename": f"{envelope.kind}.{mime.split('/')[-1]}",
                "file_data": f"data:{mime};base64,{encoded}",
            },
        }
    raise ValueError(f"unsupported media type: {envelope.mime_type}")


class Assistant:
    def __init__(
        self,
        *,
        openai_api_key: Optional[str] = None,
        model: str,
        data_dir: str = "data",
        owner_ids: FrozenSet[str] = frozenset(),
        prompt_path: Optional[Path] = None,
        history_limit: int = 0,
        auto_ai: bool = True,
        react_emoji: str = "",
        image_api_url: str = "",
        tiktok_api_url: str = "",
        transcribe_api_url: str = "",
        transcribe_secret: str = "",
        user_agent: str = "",
        backup_root: Path = Path("."),
        client: Any = None,
        image_generator: Optional[ImageGenerator] = None,
        tiktok: Optional[TiktokDownloader] = None,
        transcriber: Optional[Transcriber] = None,
    ):
        self.client = client if client is not None else AsyncOpenAI(api_key=openai_api_key)
        self.model = model
        data_path = Path(data_dir)
        self.data_dir = data_path
        self.history = ConversationStore(data_path / "history", limit=history_limit)
        self.settings = SettingsStore(data_path / "settings.yaml", Settings(auto_ai=auto_ai))
        self.system_prompt = SystemPrompt(prompt_path)
        self.guard = SingleFlight()
        self.owner_ids = frozenset(str(x) for x in owner_ids)
        self.react_emoji = react_emoji
        self.backup_root = Path(backup_root)
        self._image_api_url = image_api_url
        self._tiktok_api_url = tiktok_api_url
        self._transcribe_api_url = transcribe_api_url
        self._transcribe_secret = transcribe_secret
        self._user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None
        self._image_generator = image_generator
        self._tiktok = tiktok
        self._transcriber = transcriber

    @classmethod
    def from_config(cls, config) -> "Assistant":
        return cls(
            openai_api_key=config.openai_api_key,
            model=config.model,
            data_dir=str(config.data_dir),
            owner_ids=config.owner_ids,
            prompt_path=config.prompt_path,
            history_limit=config.history_limit,
            auto_ai=config.auto_ai,
            react_emoji=config.react_emoji,
            image_api_url=config.image_api_url,
            tiktok_api_url=config.tiktok_api_url,
            transcribe_api_url=config.transcribe_api_url,
            transcribe_secret=config.transcribe_secret,
            user_agent=config.user_agent,
            backup_root=config.backup_root,
        )

    @property
    def ai_enabled(self) -> bool:
        return self.settings.get().auto_ai

    def is_owner(self, sender_id: str) -> bool:
        return str(sender_id) in self.owner_ids

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self._user_agent} if self._user_agent else None
            self._session = aiohttp.ClientSession(headers=headers)
        return self._session

    @property
    def image_generator(self) -> ImageGenerator:
        if self._image_generator is None:
            self._image_generator = ImageGenerator(self._http(), self._image_api_url)
        return self._image_generator

    @property
    def tiktok(self) -> TiktokDownloader:
        if self._tiktok is None:
            self._tiktok = TiktokDownloader(self._http(), self._tiktok_api_url)
        return self._tiktok

    @property
    def transcriber(self) -> Transcriber:
        if self._transcriber is None:
            self._transcriber = Transcriber(
                self._http(), self._transcribe_api_url, self._transcribe_secret
            )
        return self._transcriber

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    async def handle_message(self, message: IncomingMessage, channel: ReplyChannel) -> None:
        if message.is_from_self:
            return
        text = (message.text or "").strip()
        log.info(
            "[INCOMING] from %s:%s | type: %s",
            message.platform,
            message.sender_id,
            "text" if text else (message.media.kind if message.media else "empty"),
        )

        command = text.lower()
        if command in OPERATOR_COMMANDS and self.is_owner(message.sender_id):
            await self._handle_operator_command(command, message, channel)
            return

        if not self.ai_enabled:
            return

        if self.react_emoji:
            try:
                await channel.react(self.react_emoji)
            except Exception as exc:
                log.warning("failed to react to %s: %s", message.sender_id, exc)

        async with self.guard.try_acquire() as acquired:
            if not acquired:
                await channel.send(TextReply(BUSY_TEXT))
                return
            try:
                await self._round_trip(message, channel)
            except Exception as exc:
                log.exception("round-trip failed for %s: %s", message.sender_id, exc)
                await channel.send(TextReply(f"Internal bot error: {exc}"))

    async def _handle_operator_command(
        self, command: str, message: IncomingMessage, channel: ReplyChannel
    ) -> None:
        if command == ".backup":
            await self._run_backup(channel)
        elif command in {".aion", ".aioff"}:
            await self._set_ai_enabled(command == ".aion", channel)
        elif command == ".reset":
            self.history.clear(message.history_key)
            await channel.send(TextReply("🧹 Conversation history cleared."))

    async def _run_backup(self, channel: ReplyChannel) -> None:
        try:
            await channel.send(TextReply("Starting backup..."))
            name = f"backup-{int(time.time() * 1000)}.zip"
            archive = await asyncio.to_thread(
                create_backup, self.backup_root, self.data_dir / "backups" / name
            )
            try:
                await channel.send(DocumentReply(path=archive, filename=name))
            finally:
                archive.unlink(missing_ok=True)
        except Exception as exc:
            log.exception("backup failed: %s", exc)
            await channel.send(TextReply(f"Backup failed: {exc}"))

    async def _set_ai_enabled(self, enabled: bool, channel: ReplyChannel) -> None:
        try:
            self.settings.update(auto_ai=enabled)
        except Exception as exc:
            log.exception("failed to persist AI toggle: %s", exc)
            await channel.send(TextReply("Failed to save the AI status."))
            return
        state = "enabled" if enabled else "disabled"
        log.info("auto AI %s", state)
        await channel.send(TextReply(f"✅ Auto AI {state}."))

    async def _build_user_turn(
        self, message: IncomingMessage, channel: ReplyChannel
    ) -> Optional[UserTurn]:
        text = (message.text or "").strip()
        media = message.media
        if media is None:
            return UserTurn(text=text) if text else None
        if media.kind == "audio":
            await channel.send(TextReply(AUDIO_PROCESSING_TEXT))
            if media.size is not None and media.size > MAX_AUDIO_BYTES:
                await channel.send(TextReply(AUDIO_TOO_LARGE_TEXT))
                return None
            audio = await media.fetch()
            try:
                transcript = await self.transcriber.transcribe(audio)
            except AudioTooLarge:
                await channel.send(TextReply(AUDIO_TOO_LARGE_TEXT))
                return None
            if not transcript:
                await channel.send(TextReply(TRANSCRIBE_FAILED_TEXT))
                return None
            log.info("[TRANSCRIPT] %s: %s", message.sender_id, transcript)
            return UserTurn(text=transcript)
        if not supports_media(media.mime_type):
            log.info("[MEDIA] %s: unsupported %s %s", message.sender_id, media.kind, media.mime_type)
            await channel.send(TextReply(UNSUPPORTED_MEDIA_TEXT))
            return None
        data = await media.fetch()
        default = STICKER_DEFAULT_TEXT if media.kind == "sticker" else MEDIA_DEFAULT_TEXT
        return UserTurn(text=text or default, media_part=build_media_part(media, data))

    def build_messages(self, history: List[Dict[str, str]], turn: UserTurn) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [
            {"role": "user", "content": self.system_prompt.get()},
            {"role": "assistant", "content": MODEL_ACK},
        ]
        for item in history:
            messages.append({"role": item["role"], "content": item["content"]})
        if turn.media_part is not None:
            content: Any = [{"type": "text", "text": turn.text}, turn.media_part]
        else:
            content = turn.text
        messages.append({"role": "user", "content": content})
        return messages

    async def _round_trip(self, message: IncomingMessage, channel: ReplyChannel) -> None:
        turn = await self._build_user_turn(message, channel)
        if turn is None:
            return
        history = self.history.load(message.history_key)
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(history, turn),
        )
        reply = response.choices[0].message.content or ""
        command = parse_command(extract_json(reply))
        if command is None:
            cleaned = strip_citations(reply)
            if cleaned.strip():
                await channel.send(TextReply(cleaned))
            history_text = reply
        else:
            history_text = await self.dispatch(command, channel)
        history.append({"role": "user", "content": turn.text})
        history.append({"role": "assistant", "content": history_text})
        self.history.save(message.history_key, history)

    async def dispatch(self, command: Command, channel: ReplyChannel) -> str:
        """Run the side effect for ``command`` and return the text kept in history."""
        if isinstance(command, ImageCommand):
            return await self._generate_image(command, channel)
        if isinstance(command, TiktokCommand):
            return await self._relay_tiktok(command, channel)
        if isinstance(command, UnrecognizedCommand):
            reply = command.msg or UNRECOGNIZED_TEXT
            await channel.send(TextReply(reply))
            return reply
        raise TypeError(f"unknown command type: {type(command).__name__}")

    async def _generate_image(self, command: ImageCommand, channel: ReplyChannel) -> str:
        log.info("[IMAGE GEN] prompt: %s", command.prompt)
        await channel.send(TextReply(command.msg or IMAGE_WORKING_TEXT))
        result = await self.image_generator.generate(command.prompt)
        if result.success and result.data:
            await channel.send(
                ImageReply(data=result.data, mime_type=result.mime_type or "image/png")
            )
            return f"(Image sent: {command.prompt})"
        error_text = f"Failed to generate image: {result.message}"
        await channel.send(TextReply(error_text))
        return error_text

    async def _relay_tiktok(self, command: TiktokCommand, channel: ReplyChannel) -> str:
        log.info("[TIKTOK DL] url: %s", command.url)
        await channel.send(TextReply(command.msg or TIKTOK_LOADING_TEXT))
        try:
            media = await self.tiktok.resolve(command.url)
            if media.kind == "video":
                await channel.send(VideoReply(url=media.urls[0], caption=media.caption))
            else:
                for index, url in enumerate(media.urls):
                    caption = media.caption if index == 0 else None
                    await channel.send(ImageReply(url=url, caption=caption))
        except Exception as exc:
            log.warning("TikTok download failed for %s: %s", command.url, exc)
            await channel.send(TextReply(TIKTOK_FAILED_TEXT))
            return TIKTOK_FAILED_TEXT
        return f"TikTok content sent: {media.caption}"
