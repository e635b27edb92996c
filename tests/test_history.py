from core.history import ConversationStore


def test_round_trip(tmp_path):
    store = ConversationStore(tmp_path)
    turns = [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
        {"role": "user", "content": "ünïcode ✓"},
    ]
    store.save("telegram_7", turns)
    assert store.load("telegram_7") == turns


def test_missing_sender_is_empty(tmp_path):
    assert ConversationStore(tmp_path).load("nobody") == []


def test_corrupt_file_is_empty(tmp_path):
    store = ConversationStore(tmp_path)
    store.save("x", [{"role": "user", "content": "a"}])
    (tmp_path / "x.json").write_text("{broken", encoding="utf-8")
    assert store.load("x") == []


def test_malformed_entries_skipped(tmp_path):
    (tmp_path / "x.json").write_text(
        '[{"role": "user", "content": "ok"}, "junk", {"role": "system", "content": "no"}]',
        encoding="utf-8",
    )
    assert ConversationStore(tmp_path).load("x") == [{"role": "user", "content": "ok"}]


def test_save_overwrites(tmp_path):
    store = ConversationStore(tmp_path)
    store.save("x", [{"role": "user", "content": "one"}])
    store.save("x", [{"role": "user", "content": "two"}])
    assert store.load("x") == [{"role": "user", "content": "two"}]


def test_window_keeps_newest_turns(tmp_path):
    store = ConversationStore(tmp_path, limit=2)
    turns = [{"role": "user", "content": str(i)} for i in range(5)]
    store.save("x", turns)
    assert [t["content"] for t in store.load("x")] == ["3", "4"]


def test_sender_key_is_sanitized(tmp_path):
    store = ConversationStore(tmp_path)
    store.save("../../etc/passwd", [{"role": "user", "content": "a"}])
    assert all(p.parent == tmp_path for p in tmp_path.iterdir())
    assert store.load("../../etc/passwd") == [{"role": "user", "content": "a"}]


def test_clear(tmp_path):
    store = ConversationStore(tmp_path)
    store.save("x", [{"role": "user", "content": "a"}])
    assert store.clear("x") is True
    assert store.load("x") == []
    assert store.clear("x") is False
