from core.commands import (
    ImageCommand,
    TiktokCommand,
    UnrecognizedCommand,
    extract_json,
    parse_command,
    strip_citations,
)


def test_extract_bare_object():
    text = 'Sure! {"cmd": "bingimg", "cfg": {"prompt": "a cat"}, "msg": "drawing"} enjoy'
    assert extract_json(text) == {"cmd": "bingimg", "cfg": {"prompt": "a cat"}, "msg": "drawing"}


def test_extract_fenced_object():
    text = 'Here you go:\n```json\n{"cmd": "tiktok", "cfg": {"url": "https://vt.tiktok.com/x"}}\n```'
    assert extract_json(text) == {"cmd": "tiktok", "cfg": {"url": "https://vt.tiktok.com/x"}}


def test_fenced_block_used_when_outer_span_is_broken():
    text = 'intro {not json ```json\n{"cmd": "x"}\n``` trailing }'
    assert extract_json(text) == {"cmd": "x"}


def test_no_braces_returns_none():
    assert extract_json("just a friendly answer [1]") is None
    assert extract_json("") is None
    assert extract_json(None) is None


def test_unparseable_span_returns_none():
    assert extract_json("set {a, b} and {c}") is None


def test_empty_object_is_not_a_command():
    assert extract_json("{}") == {}
    assert parse_command({}) is None


def test_parse_known_commands():
    assert parse_command({"cmd": "bingimg", "cfg": {"prompt": "sunset"}, "msg": "wait"}) == ImageCommand(
        prompt="sunset", msg="wait"
    )
    assert parse_command({"cmd": "tiktok", "cfg": {"url": "u"}}) == TiktokCommand(url="u")


def test_missing_config_falls_back_to_unrecognized():
    assert parse_command({"cmd": "bingimg", "cfg": {}}) == UnrecognizedCommand(name="bingimg")
    assert parse_command({"cmd": "tiktok", "msg": "hm"}) == UnrecognizedCommand(name="tiktok", msg="hm")
    assert parse_command({"cmd": "weather", "msg": "no idea"}) == UnrecognizedCommand(
        name="weather", msg="no idea"
    )


def test_payload_without_cmd_is_not_a_command():
    assert parse_command({"answer": 42}) is None
    assert parse_command(None) is None


def test_strip_citations():
    assert strip_citations("Paris is the capital[1][23] of France [4].") == "Paris is the capital of France ."
    assert strip_citations("keep [a] and [1b]") == "keep [a] and [1b]"
