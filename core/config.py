"""Runtime configuration loaded from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from dotenv import load_dotenv

DEFAULT_IMAGE_API_URL = "https://api.siputzx.my.id/api/ai/flux"
DEFAULT_TIKTOK_API_URL = "https://api.siputzx.my.id/api/d/tiktok"
DEFAULT_TRANSCRIBE_API_URL = "https://api.talknotes.io/tools/converter"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if raw.lstrip("-").isdigit():
        return int(raw)
    return default


@dataclass(frozen=True)
class Config:
    openai_api_key: str
    model: str = "gpt-4.1-mini"
    telegram_token: Optional[str] = None
    discord_token: Optional[str] = None
    owner_ids: FrozenSet[str] = field(default_factory=frozenset)
    data_dir: Path = Path("data")
    prompt_path: Optional[Path] = None
    history_limit: int = 40
    auto_ai: bool = True
    react_emoji: str = ""
    image_api_url: str = DEFAULT_IMAGE_API_URL
    tiktok_api_url: str = DEFAULT_TIKTOK_API_URL
    transcribe_api_url: str = DEFAULT_TRANSCRIBE_API_URL
    transcribe_secret: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    backup_root: Path = Path(".")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        load_dotenv()
        openai_key = os.getenv("OPENAI_API_KEY")
        telegram_token = os.getenv("TELEGRAM_TOKEN") or None
        discord_token = os.getenv("DISCORD_TOKEN") or None
        if not openai_key:
            raise SystemExit("Missing OPENAI_API_KEY.")
        if not telegram_token and not discord_token:
            raise SystemExit("Set TELEGRAM_TOKEN and/or DISCORD_TOKEN.")
        owners = frozenset(
            x.strip() for x in os.getenv("OWNER_IDS", "").split(",") if x.strip()
        )
        prompt_raw = os.getenv("PROMPT_PATH", "").strip()
        return cls(
            openai_api_key=openai_key,
            model=os.getenv("MODEL", "gpt-4.1-mini"),
            telegram_token=telegram_token,
            discord_token=discord_token,
            owner_ids=owners,
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            prompt_path=Path(prompt_raw) if prompt_raw else None,
            history_limit=max(_env_int("HISTORY_LIMIT", 40), 0),
            auto_ai=_env_bool("AUTO_AI", True),
            react_emoji=os.getenv("REACT_EMOJI", "").strip(),
            image_api_url=os.getenv("IMAGE_API_URL", DEFAULT_IMAGE_API_URL),
            tiktok_api_url=os.getenv("TIKTOK_API_URL", DEFAULT_TIKTOK_API_URL),
            transcribe_api_url=os.getenv("TRANSCRIBE_API_URL", DEFAULT_TRANSCRIBE_API_URL),
            transcribe_secret=os.getenv("TRANSCRIBE_SECRET", ""),
            user_agent=os.getenv("HTTP_USER_AGENT", DEFAULT_USER_AGENT),
            backup_root=Path(os.getenv("BACKUP_ROOT", ".")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
