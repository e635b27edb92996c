"""Clients for the third-party HTTP services behind bot commands."""

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

import aiohttp

log = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 5 * 1024 * 1024
TIKTOK_FALLBACK_CAPTION = "Here is the TikTok content you asked for!"
TRANSCRIBE_ORIGIN = "https://talknotes.io"


class AudioTooLarge(ValueError):
    pass


class TiktokError(RuntimeError):
    pass


@dataclass
class ImageResult:
    success: bool
    data: Optional[bytes] = None
    mime_type: Optional[str] = None
    message: str = ""


@dataclass
class TiktokMedia:
    kind: str
    urls: List[str] = field(default_factory=list)
    caption: str = TIKTOK_FALLBACK_CAPTION


def interpret_image_response(content_type: Optional[str], body: bytes) -> ImageResult:
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime.startswith("image/"):
        return ImageResult(success=True, data=body, mime_type=mime)
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return ImageResult(success=False, message="API returned an unknown non-image response")
    message = payload.get("message") if isinstance(payload, dict) else None
    return ImageResult(success=False, message=str(message or "API returned a non-image response"))


class ImageGenerator:
    def __init__(self, session: aiohttp.ClientSession, endpoint: str) -> None:
        self.session = session
        self.endpoint = endpoint

    async def generate(self, prompt: str) -> ImageResult:
        try:
            async with self.session.get(self.endpoint, params={"prompt": prompt}) as resp:
                body = await resp.read()
                return interpret_image_response(resp.headers.get("Content-Type"), body)
        except Exception as exc:
            log.warning("image generation failed: %s", exc)
            return ImageResult(success=False, message=f"Error while generating image: {exc}")


def _pick_second(urls: Any) -> Optional[str]:
    if isinstance(urls, list) and len(urls) > 1 and urls[1]:
        return str(urls[1])
    return None


def select_tiktok_media(body: Any) -> TiktokMedia:
    """Pick the relayable URLs out of a download-service response.

    The service lists several renditions per item; the one at index 1 is the
    relayable file.
    """
    if not isinstance(body, dict) or not body.get("status") or not isinstance(body.get("data"), dict):
        raise TiktokError("invalid TikTok API response or no data")
    data = body["data"]
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    caption = metadata.get("title") or metadata.get("description") or TIKTOK_FALLBACK_CAPTION
    kind = data.get("type")
    urls = data.get("urls")
    if kind in {"video", "photo"}:
        picked = _pick_second(urls)
        if picked:
            return TiktokMedia(kind=kind, urls=[picked], caption=str(caption))
    elif kind == "slideshow" and isinstance(urls, list) and urls:
        slides = [url for url in (_pick_second(slide) for slide in urls) if url]
        if slides:
            return TiktokMedia(kind=kind, urls=slides, caption=str(caption))
    raise TiktokError("unsupported TikTok content type or missing urls[1]")


class TiktokDownloader:
    def __init__(self, session: aiohttp.ClientSession, endpoint: str) -> None:
        self.session = session
        self.endpoint = endpoint

    async def fetch(self, url: str) -> Any:
        async with self.session.get(self.endpoint, params={"url": url}) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def resolve(self, url: str) -> TiktokMedia:
        return select_tiktok_media(await self.fetch(url))


def sign_request(secret: str, timestamp: str) -> dict:
    token = hmac.new(secret.encode("utf-8"), timestamp.encode("utf-8"), hashlib.sha256).hexdigest()
    return {"x-timestamp": timestamp, "x-token": token}


class Transcriber:
    def __init__(self, session: aiohttp.ClientSession, endpoint: str, secret: str) -> None:
        self.session = session
        self.endpoint = endpoint
        self.secret = secret

    async def transcribe(self, audio: bytes) -> Optional[str]:
        if len(audio) > MAX_AUDIO_BYTES:
            raise AudioTooLarge(f"audio payload is {len(audio)} bytes")
        form = aiohttp.FormData()
        form.add_field("file", audio, filename="audio.mp3", content_type="audio/mpeg")
        headers = sign_request(self.secret, str(int(time.time() * 1000)))
        headers.update({"origin": TRANSCRIBE_ORIGIN, "referer": f"{TRANSCRIBE_ORIGIN}/"})
        try:
            async with self.session.post(self.endpoint, data=form, headers=headers) as resp:
                resp.raise_for_status()
                payload = await resp.json(content_type=None)
        except Exception as exc:
            log.warning("transcription failed: %s", exc)
            return None
        if not isinstance(payload, dict):
            return None
        text = str(payload.get("text") or "").strip()
        return text or None
