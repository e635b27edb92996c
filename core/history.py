"""Per-sender conversation history persisted as JSON files."""

import json
import logging
import re
from pathlib import Path
from typing import Dict, List

log = logging.getLogger(__name__)

ROLES = {"user", "assistant"}
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class ConversationStore:
    """Whole-file read/rewrite store; one JSON list of turns per sender.

    ``limit`` caps how many of the newest turns survive a save. Zero keeps
    everything.
    """

    def __init__(self, root: Path, *, limit: int = 0) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.limit = max(int(limit), 0)

    def _path(self, sender: str) -> Path:
        slug = _UNSAFE_CHARS.sub("_", str(sender).split("@")[0]) or "unknown"
        return self.root / f"{slug}.json"

    def load(self, sender: str) -> List[Dict[str, str]]:
        path = self._path(sender)
        if not path.exists():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("discarding unreadable history for %s: %s", sender, exc)
            return []
        if not isinstance(payload, list):
            return []
        turns: List[Dict[str, str]] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            role = item.get("role")
            if role not in ROLES:
                continue
            turns.append({"role": role, "content": str(item.get("content") or "")})
        return turns

    def save(self, sender: str, turns: List[Dict[str, str]]) -> None:
        if self.limit:
            turns = turns[-self.limit:]
        path = self._path(sender)
        path.write_text(json.dumps(turns, ensure_ascii=False, indent=2), encoding="utf-8")

    def clear(self, sender: str) -> bool:
        try:
            self._path(sender).unlink()
        except FileNotFoundError:
            return False
        return True
