"""System prompt loading with hot-reload support."""

import logging
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

DEFAULT_PROMPT_PATH = Path(__file__).with_name("data").joinpath("system_prompt.txt")
FALLBACK_PROMPT = "You are a helpful chat assistant."


class SystemPrompt:
    """Reads the prompt file and re-reads it whenever its mtime changes."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else DEFAULT_PROMPT_PATH
        self._cached = ""
        self._mtime: Optional[float] = None

    def _read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            log.warning("failed to read system prompt %s: %s", self.path, exc)
            return ""

    def get(self) -> str:
        try:
            mtime = self.path.stat().st_mtime if self.path.exists() else None
        except OSError:
            mtime = None
        if mtime != self._mtime or not self._cached:
            self._mtime = mtime
            text = self._read()
            if text and text != self._cached:
                if self._cached:
                    log.info("system prompt reloaded from %s", self.path)
                self._cached = text
        return self._cached or FALLBACK_PROMPT
