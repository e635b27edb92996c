import pytest

from core.assistant import Assistant
from tests.fakes import FakeClient, RecordingChannel, UnusedService


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def make_assistant(tmp_path):
    def _make(*replies, **kwargs):
        kwargs.setdefault("owner_ids", frozenset({"42"}))
        kwargs.setdefault("image_generator", UnusedService())
        kwargs.setdefault("tiktok", UnusedService())
        kwargs.setdefault("transcriber", UnusedService())
        kwargs.setdefault("backup_root", tmp_path / "workdir")
        return Assistant(
            model="test-model",
            data_dir=str(tmp_path / "data"),
            client=FakeClient(*replies),
            **kwargs,
        )

    return _make
