"""
Playlist decisions.

A strategy answers every resolve request with exactly one of these. The
engine's apply_decision() is the only place they turn into state changes.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

from src.playlist.models import PlaylistEntry


class DecisionAction(str, Enum):
    """Discriminator for playlist decisions."""

    ADVANCE = "advance"
    SKIP = "skip"
    INJECT = "inject"
    RETRY = "retry"
    HOLD = "hold"
    COMPLETE = "complete"


@dataclass(frozen=True)
class AdvanceDecision:
    action: ClassVar[DecisionAction] = DecisionAction.ADVANCE


@dataclass(frozen=True)
class SkipDecision:
    """Skip the current entry. The reason is shown to the learner."""

    action: ClassVar[DecisionAction] = DecisionAction.SKIP

    reason: str = ""


@dataclass(frozen=True)
class InjectDecision:
    """Insert entries right after the current position and move onto the first."""

    action: ClassVar[DecisionAction] = DecisionAction.INJECT

    entries: tuple[PlaylistEntry, ...] = ()


@dataclass(frozen=True)
class RetryDecision:
    """Re-attempt the gate with this unit id."""

    action: ClassVar[DecisionAction] = DecisionAction.RETRY

    lu_id: str


@dataclass(frozen=True)
class HoldDecision:
    """Forward navigation is blocked. The message explains why."""

    action: ClassVar[DecisionAction] = DecisionAction.HOLD

    message: str = ""


@dataclass(frozen=True)
class CompleteDecision:
    action: ClassVar[DecisionAction] = DecisionAction.COMPLETE


PlaylistDecision = Union[
    AdvanceDecision,
    SkipDecision,
    InjectDecision,
    RetryDecision,
    HoldDecision,
    CompleteDecision,
]
