import yaml

from core.settings import Settings, SettingsStore


def test_defaults_without_file(tmp_path):
    store = SettingsStore(tmp_path / "settings.yaml", Settings(auto_ai=False))
    assert store.get().auto_ai is False


def test_update_persists(tmp_path):
    path = tmp_path / "settings.yaml"
    store = SettingsStore(path)
    store.update(auto_ai=False)
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == {"auto_ai": False}
    assert SettingsStore(path).get().auto_ai is False


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("auto_ai: [unclosed", encoding="utf-8")
    assert SettingsStore(path, Settings(auto_ai=True)).get().auto_ai is True


def test_wrong_type_is_ignored(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("auto_ai: maybe\n", encoding="utf-8")
    assert SettingsStore(path).get() == Settings()
