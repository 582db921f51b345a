from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace

import pytest

from promptargs.bot import assign_words
from promptargs.command import ArgumentHandler, Command
from promptargs.outcome import CancelReason, Cancelled, is_cancelled
from promptargs.services.logger_service import LoggerService
from promptargs.storage import MessagePackStore


AUTHOR = SimpleNamespace(id=41, bot=False)
CHANNEL = SimpleNamespace(id=700)


def _msg(content: str, msg_id: int = 1) -> SimpleNamespace:
    return SimpleNamespace(id=msg_id, content=content, author=AUTHOR, channel=CHANNEL, guild=None)


class QueueTransport:
    def __init__(self, replies: list[str]) -> None:
        self.replies = list(replies)
        self.sent: list[str] = []

    async def send(self, message, text: str):
        self.sent.append(text)
        return SimpleNamespace(id=5000 + len(self.sent))

    async def wait_for_reply(self, message, check, timeout: float):
        if not self.replies:
            raise asyncio.TimeoutError
        return _msg(self.replies.pop(0), msg_id=100 + len(self.sent))


def _make_handler(tmp_path: Path, replies: list[str] | None = None):
    store = MessagePackStore(tmp_path / "state.msgpack")
    asyncio.run(store.load())
    logger = LoggerService(store, echo=False)
    transport = QueueTransport(replies or [])
    return ArgumentHandler(transport, store, logger), transport


def test_arguments_resolve_in_order_with_prior_values(tmp_path: Path) -> None:
    handler, _ = _make_handler(tmp_path)
    command = handler.register(
        Command(
            "weigh",
            arguments=[
                {"id": "amount", "type": "integer"},
                {"id": "label", "type": lambda word, message, args: f"{args['amount']} {word}"},
            ],
        )
    )

    result = asyncio.run(command.resolve(_msg("!weigh 5 kg"), {"amount": "5", "label": "kg"}))

    assert result == {"amount": 5, "label": "5 kg"}


def test_separate_words_cast_one_by_one_and_flags_are_booleans(tmp_path: Path) -> None:
    handler, _ = _make_handler(tmp_path)
    command = handler.register(
        Command(
            "sum",
            arguments=[
                {"id": "nums", "match": "separate", "type": "integer"},
                {"id": "loud", "match": "flag", "prefix": "--loud"},
                {"id": "quiet", "match": "flag", "prefix": "--noisy", "default": True},
            ],
        )
    )
    message = _msg("!sum 1 2 3 --loud")

    words = assign_words(command, message, ["1", "2", "3", "--loud"])
    result = asyncio.run(command.resolve(message, words))

    assert result == {"nums": [1, 2, 3], "loud": True, "quiet": True}
    assert asyncio.run(command.resolve(message, {"nums": "4 5", "quiet": True})) == {
        "nums": [4, 5],
        "loud": False,
        "quiet": False,
    }


def test_separate_word_that_fails_prompts_for_that_word(tmp_path: Path) -> None:
    handler, transport = _make_handler(tmp_path, ["2"])
    command = handler.register(
        Command("sum", arguments=[{"id": "nums", "match": "separate", "type": "integer", "prompt": {"retry": "Number?"}}])
    )

    result = asyncio.run(command.resolve(_msg("!sum 1 x 3"), {"nums": ["1", "x", "3"]}))

    assert result == {"nums": [1, 2, 3]}
    assert transport.sent == ["Number?"]


def test_allow_gate_skips_argument(tmp_path: Path) -> None:
    handler, _ = _make_handler(tmp_path)

    async def only_admins(message, args):
        return args.get("mode") == "admin"

    command = handler.register(
        Command(
            "mode",
            arguments=[
                {"id": "mode", "type": ["user", "admin"], "default": "user"},
                {"id": "secret", "allow": only_admins, "default": "hidden"},
            ],
        )
    )

    assert asyncio.run(command.resolve(_msg("!mode"), {"mode": "nope"})) == {"mode": "user"}
    assert asyncio.run(command.resolve(_msg("!mode"), {"mode": "ADMIN"})) == {"mode": "admin", "secret": "hidden"}


def test_cancellation_aborts_remaining_arguments(tmp_path: Path) -> None:
    handler, transport = _make_handler(tmp_path, ["cancel"])
    later_calls = []
    command = handler.register(
        Command(
            "ban",
            default_prompt={"cancel": "Ban cancelled."},
            arguments=[
                {"id": "target", "type": "integer", "prompt": {"start": "Who?"}},
                {"id": "reason", "type": lambda word, message, args: later_calls.append(word) or word},
            ],
        )
    )

    result = asyncio.run(handler.run(command, _msg("!ban"), {}))

    assert result == Cancelled(reason=CancelReason.CANCEL, argument_id="target")
    assert later_calls == []
    assert transport.sent == ["Who?", "Ban cancelled."]
    assert handler.stats("ban")["cancel"] == 1
    assert handler.logger.recent("command.cancelled")[-1]["data"]["reason"] == "cancel"


def test_run_records_resolved_outcomes(tmp_path: Path) -> None:
    handler, _ = _make_handler(tmp_path, ["3"])
    command = handler.register(Command("roll", arguments=[{"id": "sides", "type": "integer", "prompt": {}}]))

    result = asyncio.run(handler.run(command, _msg("!roll"), {}))

    assert result == {"sides": 3}
    assert handler.stats("roll") == {"resolved": 1, "cancel": 0, "timeout": 0, "ended": 0}
    assert handler.store.dirty is True


def test_run_is_suppressed_while_author_has_a_prompt(tmp_path: Path) -> None:
    handler, _ = _make_handler(tmp_path)
    command = handler.register(Command("roll", arguments=[{"id": "sides", "type": "integer"}]))
    message = _msg("!roll 6")
    handler.tracker.register(message)

    assert asyncio.run(handler.run(command, message, {"sides": "6"})) is None
    assert handler.logger.recent("command.suppressed")

    handler.tracker.deregister(message)
    assert asyncio.run(handler.run(command, message, {"sides": "6"})) == {"sides": 6}


def test_run_logs_and_reraises_unexpected_errors(tmp_path: Path) -> None:
    handler, _ = _make_handler(tmp_path)

    def explode(word, message, args):
        raise LookupError("database offline")

    command = handler.register(Command("lookup", arguments=[{"id": "key", "type": explode}]))

    with pytest.raises(LookupError):
        asyncio.run(handler.run(command, _msg("!lookup k"), {"key": "k"}))
    assert handler.logger.recent("command.error")[-1]["data"]["error"] == "database offline"


def test_command_named_type_and_aliases(tmp_path: Path) -> None:
    handler, _ = _make_handler(tmp_path)
    roll = handler.register(Command("roll", aliases=["dice"]))
    help_command = handler.register(Command("help", arguments=[{"id": "topic", "type": "command"}]))

    result = asyncio.run(help_command.resolve(_msg("!help DICE"), {"topic": "DICE"}))

    assert result["topic"] is roll
    assert is_cancelled(result) is False
    with pytest.raises(ValueError):
        handler.register(Command("dice"))


def test_duplicate_argument_ids_rejected() -> None:
    with pytest.raises(ValueError):
        Command("dup", arguments=[{"id": "a"}, {"id": "a"}])


def test_unregistered_command_cannot_resolve() -> None:
    command = Command("loose", arguments=[{"id": "a"}])
    with pytest.raises(RuntimeError):
        asyncio.run(command.resolve(_msg("!loose"), {}))


def test_description_lines_are_joined() -> None:
    command = Command("doc", arguments=[{"id": "a", "description": ["first", "second"]}])
    assert command.arguments[0].description == "first\nsecond"
