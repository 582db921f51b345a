from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class CancelReason(str, Enum):
    CANCEL = "cancel"
    TIMEOUT = "timeout"
    ENDED = "ended"


@dataclass(frozen=True)
class Cancelled:
    """
    Outcome of a prompt that aborts the whole command invocation.

    Returned (never raised) by PromptEngine.collect, Argument.process and
    Command.resolve. Every layer hands it straight back to its caller; only the
    dispatcher decides what to do with it.
    """

    reason: CancelReason
    argument_id: str = ""


def is_cancelled(value: Any) -> bool:
    return isinstance(value, Cancelled)
