from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace

import msgpack
import pytest

from promptargs.services.logger_service import LoggerService
from promptargs.services.prompt_tracker_service import PromptTrackerService
from promptargs.storage import MessagePackStore


def _make_store(tmp_path: Path) -> MessagePackStore:
    store = MessagePackStore(tmp_path / "nested" / "state.msgpack")
    asyncio.run(store.load())
    return store


def _msg(channel_id: int, author_id: int) -> SimpleNamespace:
    return SimpleNamespace(channel=SimpleNamespace(id=channel_id), author=SimpleNamespace(id=author_id))


def test_store_creates_defaults_and_persists_stats(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    assert store.path.exists()
    assert store.data["prompt_stats"] == {}

    assert store.bump_outcome("poll", "timeout") == 1
    assert store.bump_outcome("poll", "timeout") == 2
    asyncio.run(store.save())

    reloaded = _make_store(tmp_path)
    assert reloaded.data["prompt_stats"]["poll"]["timeout"] == 2
    with pytest.raises(ValueError):
        reloaded.bump_outcome("poll", "exploded")


def test_store_backfills_missing_sections(tmp_path: Path) -> None:
    path = tmp_path / "old.msgpack"
    path.write_bytes(msgpack.packb({"meta": {"version": 1}}, use_bin_type=True))
    store = MessagePackStore(path)
    asyncio.run(store.load())

    assert store.data["logs"] == []
    assert store.data["prompt_stats"] == {}
    assert store.dirty is True


def test_logger_caps_rows_and_notifies_listeners(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    logger = LoggerService(store, limit=3, echo=False)
    seen = []
    logger.subscribe(seen.append)
    logger.subscribe(lambda row: 1 / 0)

    for i in range(5):
        logger.log("prompt.reply", turn=i)
    logger.log("command.resolved", command="poll")

    assert [row["data"] for row in store.data["logs"]] == [{"turn": 3}, {"turn": 4}, {"command": "poll"}]
    assert len(seen) == 6
    assert [row["data"]["turn"] for row in logger.recent("prompt.")] == [3, 4]


def test_tracker_keys_by_channel_and_author(tmp_path: Path) -> None:
    logger = LoggerService(_make_store(tmp_path), echo=False)
    tracker = PromptTrackerService(logger)
    first = _msg(1, 10)

    tracker.register(first)
    tracker.register(_msg(1, 10))

    assert tracker.active_count() == 1
    assert tracker.has_prompt(_msg(1, 10)) is True
    assert tracker.has_prompt(_msg(2, 10)) is False
    assert tracker.has_prompt(_msg(1, 11)) is False
    assert len(logger.recent("prompt.start")) == 1

    assert tracker.deregister(first) is True
    assert tracker.deregister(first) is False
    assert tracker.has_prompt(first) is False
