"""Structured commands embedded in model replies."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

log = logging.getLogger(__name__)

JSON_SPAN_PATTERN = re.compile(r"\{[\s\S]*\}")
JSON_FENCE_PATTERN = re.compile(r"```json([\s\S]*?)```", re.IGNORECASE)
CITATION_PATTERN = re.compile(r"\[\d+\]")


@dataclass(frozen=True)
class ImageCommand:
    prompt: str
    msg: Optional[str] = None


@dataclass(frozen=True)
class TiktokCommand:
    url: str
    msg: Optional[str] = None


@dataclass(frozen=True)
class UnrecognizedCommand:
    name: str
    msg: Optional[str] = None


Command = Union[ImageCommand, TiktokCommand, UnrecognizedCommand]


def _parse_span(text: str) -> Optional[dict]:
    match = JSON_SPAN_PATTERN.search(text)
    if not match:
        return None
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        log.warning("failed to parse extracted json: %s", exc)
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def extract_json(text: Optional[str]) -> Optional[dict]:
    """Locate a JSON object in free text.

    The greedy ``{...}`` span is tried first, then the same search inside a
    ```json fenced block. Never raises; anything unparseable yields None.
    """
    if not text:
        return None
    payload = _parse_span(text)
    if payload is not None:
        return payload
    fenced = JSON_FENCE_PATTERN.search(text)
    if fenced:
        return _parse_span(fenced.group(1))
    return None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_command(payload: Optional[dict]) -> Optional[Command]:
    if not payload:
        return None
    name = _clean_str(payload.get("cmd"))
    if not name:
        return None
    cfg = payload.get("cfg")
    if not isinstance(cfg, dict):
        cfg = {}
    msg = _clean_str(payload.get("msg"))
    if name == "bingimg":
        prompt = _clean_str(cfg.get("prompt"))
        if prompt:
            return ImageCommand(prompt=prompt, msg=msg)
    elif name == "tiktok":
        url = _clean_str(cfg.get("url"))
        if url:
            return TiktokCommand(url=url, msg=msg)
    return UnrecognizedCommand(name=name, msg=msg)


def strip_citations(text: str) -> str:
    return CITATION_PATTERN.sub("", text or "")
