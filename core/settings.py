"""Small typed settings record persisted as YAML."""

import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path

import yaml

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    auto_ai: bool = True


class SettingsStore:
    def __init__(self, path: Path, defaults: Settings = Settings()) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.defaults = defaults
        self._current = self._load()

    def _load(self) -> Settings:
        if not self.path.exists():
            return self.defaults
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            log.warning("failed to read settings %s: %s", self.path, exc)
            return self.defaults
        if not isinstance(raw, dict):
            return self.defaults
        values = {}
        for spec in fields(Settings):
            if spec.name not in raw:
                continue
            value = raw[spec.name]
            if spec.type in (bool, "bool") and not isinstance(value, bool):
                log.warning("ignoring non-boolean setting %s=%r", spec.name, value)
                continue
            values[spec.name] = value
        return replace(self.defaults, **values)

    def get(self) -> Settings:
        return self._current

    def update(self, **changes) -> Settings:
        """Apply ``changes`` on top of the stored record and write it back."""
        current = self._load()
        updated = replace(current, **changes)
        self.path.write_text(
            yaml.safe_dump(asdict(updated), sort_keys=True),
            encoding="utf-8",
        )
        self._current = updated
        return updated
