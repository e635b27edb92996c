"""Zip export of the bot's working tree."""

import logging
import zipfile
from pathlib import Path
from typing import Iterator

log = logging.getLogger(__name__)

EXCLUDED_DIRS = {"node_modules", "sessions", ".git", "__pycache__", ".venv", "venv"}


def _iter_files(root: Path, dest: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        rel = path.relative_to(root)
        if any(part in EXCLUDED_DIRS for part in rel.parts[:-1]):
            continue
        if path.suffix.lower() == ".zip":
            continue
        if path.resolve() == dest.resolve():
            continue
        yield path


def create_backup(root: Path, dest: Path) -> Path:
    root = Path(root).resolve()
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for path in _iter_files(root, dest):
            archive.write(path, path.relative_to(root).as_posix())
            count += 1
    size_mb = dest.stat().st_size / 1024 / 1024
    log.info("[BACKUP] %s written (%d files, %.2f MB)", dest.name, count, size_mb)
    return dest
