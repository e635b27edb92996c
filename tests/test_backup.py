import zipfile

from core.backup import create_backup


def test_backup_skips_sessions_dependencies_and_zips(tmp_path):
    root = tmp_path / "bot"
    for rel in [
        "main.py",
        "core/assistant.py",
        "data/history/telegram_1.json",
        "sessions/creds.json",
        "node_modules/pkg/index.js",
        "core/__pycache__/assistant.cpython-312.pyc",
        "old-backup.zip",
    ]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel)

    dest = create_backup(root, tmp_path / "out" / "backup.zip")

    with zipfile.ZipFile(dest) as archive:
        names = sorted(archive.namelist())
        assert archive.read("main.py") == b"main.py"
    assert names == ["core/assistant.py", "data/history/telegram_1.json", "main.py"]


def test_destination_inside_root_is_not_archived(tmp_path):
    (tmp_path / "a.txt").write_text("a")
    dest = create_backup(tmp_path, tmp_path / "backups" / "b.zip")
    with zipfile.ZipFile(dest) as archive:
        assert archive.namelist() == ["a.txt"]
