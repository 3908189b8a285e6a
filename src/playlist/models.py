"""
Adaptive Playlist Models.

Domain vocabulary for the playlist engine:
- StaticLearningUnit: one unit of a module's canonical order, with optional adaptive metadata
- PlaylistEntry: static / injected-practice / injected-review / retry entries
- LearnerModuleSession: the persistable state of one learner in one module
- PlaylistContext: read-only snapshot handed to strategies

All types are frozen. The engine replaces the session wholesale on every
mutation, so a session object a caller holds never changes underneath it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Mapping, Optional, Union


class AdaptiveMode(str, Enum):
    """Course-level adaptive mode. Selects the playlist strategy."""

    OFF = "off"  # Static order, no adaptivity
    GUIDED = "guided"  # Gates and mastery-based skipping
    FULL = "full"  # Guided plus proactive preparation before gates


class GateFailStrategy(str, Enum):
    """What happens once a learner has failed a gate and used up its retries."""

    ALLOW_CONTINUE = "allow-continue"
    HOLD = "hold"
    INJECT_PRACTICE = "inject-practice"
    PRESCRIBE_REVIEW = "prescribe-review"


class EntryKind(str, Enum):
    """Discriminator for playlist entries."""

    STATIC = "static"
    INJECTED_PRACTICE = "injected-practice"
    INJECTED_REVIEW = "injected-review"
    RETRY = "retry"


class GateDisplayStatus(str, Enum):
    """Gate status for the sidebar playlist view."""

    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


# =============================================================================
# Adaptive Metadata
# =============================================================================


@dataclass(frozen=True)
class GateConfig:
    """
    Configuration for a gate checkpoint.

    Attributes:
        mastery_threshold: Score (0-1) required to pass the gate
        min_questions: Minimum number of questions in the gate challenge
        max_retries: Retry attempts allowed after a failure (-1 = unlimited)
        fail_strategy: Behavior once retries are used up
    """

    mastery_threshold: float = 0.8
    min_questions: int = 3
    max_retries: int = 2
    fail_strategy: GateFailStrategy = GateFailStrategy.HOLD

    @property
    def unlimited_retries(self) -> bool:
        return self.max_retries == -1

    def allows_retry(self, attempts: int) -> bool:
        """
        Whether another retry may follow `attempts` recorded attempts.

        The first attempt is not a retry, so max_retries=2 allows attempts
        two and three; a third failure exhausts the gate. max_retries=1
        therefore still grants one retry before the fail strategy applies.
        """
        return self.unlimited_retries or attempts <= self.max_retries


@dataclass(frozen=True)
class LearningUnitAdaptive:
    """Adaptive metadata attached to a learning unit."""

    teaches_nodes: tuple[str, ...] = ()
    assesses_nodes: tuple[str, ...] = ()
    is_gate: bool = False
    is_skippable: bool = False
    gate_config: Optional[GateConfig] = None  # Only meaningful when is_gate


@dataclass(frozen=True)
class StaticLearningUnit:
    """A learning unit in the module's canonical order, as supplied by the catalog."""

    id: str
    title: str
    type: str = "media"
    content_id: Optional[str] = None
    category: Optional[str] = None
    is_required: bool = True
    sequence: int = 0
    estimated_duration: Optional[int] = None  # minutes
    adaptive: Optional[LearningUnitAdaptive] = None

    @property
    def is_gate(self) -> bool:
        return bool(self.adaptive and self.adaptive.is_gate)

    @property
    def is_skippable(self) -> bool:
        return bool(self.adaptive and self.adaptive.is_skippable)

    @property
    def teaches_nodes(self) -> tuple[str, ...]:
        return self.adaptive.teaches_nodes if self.adaptive else ()

    @property
    def assesses_nodes(self) -> tuple[str, ...]:
        return self.adaptive.assesses_nodes if self.adaptive else ()


# =============================================================================
# Playlist Entries
# =============================================================================


@dataclass(frozen=True)
class StaticEntry:
    """An entry mapped 1:1 from the static unit sequence."""

    kind: ClassVar[EntryKind] = EntryKind.STATIC

    entry_id: str
    title: str
    lu: StaticLearningUnit


@dataclass(frozen=True)
class InjectedPracticeEntry:
    """Synthetic practice on weak knowledge nodes. Has no backing catalog unit."""

    kind: ClassVar[EntryKind] = EntryKind.INJECTED_PRACTICE

    entry_id: str
    title: str
    target_node_ids: tuple[str, ...]
    question_count: int


@dataclass(frozen=True)
class InjectedReviewEntry:
    """Synthetic review pointing back at another unit's content."""

    kind: ClassVar[EntryKind] = EntryKind.INJECTED_REVIEW

    entry_id: str
    title: str
    reference_lu_id: str
    target_node_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class RetryEntry:
    """A re-attempt of a gate unit. attempt_number is 1-based."""

    kind: ClassVar[EntryKind] = EntryKind.RETRY

    entry_id: str
    title: str
    lu: StaticLearningUnit
    attempt_number: int


PlaylistEntry = Union[StaticEntry, InjectedPracticeEntry, InjectedReviewEntry, RetryEntry]


def gate_unit_of(entry: PlaylistEntry) -> Optional[StaticLearningUnit]:
    """Return the gate unit behind an entry (static gate or retry), else None."""
    if isinstance(entry, RetryEntry):
        return entry.lu
    if isinstance(entry, StaticEntry) and entry.lu.is_gate:
        return entry.lu
    return None


# =============================================================================
# Session State
# =============================================================================


@dataclass(frozen=True)
class NodeProgress:
    """Mastery state of one knowledge node, as reported by the assessment side."""

    mastery: float
    attempts: int = 0


@dataclass(frozen=True)
class GateResult:
    """Outcome of one gate challenge attempt."""

    lu_id: str
    passed: bool
    score: float
    attempt_number: int
    failed_nodes: tuple[str, ...] = ()


@dataclass(frozen=True)
class LearnerModuleSession:
    """
    Persistable state of one learner's progress through one module.

    gate_attempts is append-only per unit; node_progress is last-write-wins.
    """

    enrollment_id: str
    module_id: str
    playlist: tuple[PlaylistEntry, ...] = ()
    current_index: int = 0
    node_progress: Mapping[str, NodeProgress] = field(default_factory=dict)
    gate_attempts: Mapping[str, tuple[GateResult, ...]] = field(default_factory=dict)
    is_complete: bool = False
    skipped_entries: tuple[str, ...] = ()

    @property
    def entry_ids(self) -> set[str]:
        return {entry.entry_id for entry in self.playlist}


# =============================================================================
# Course Configuration
# =============================================================================


@dataclass(frozen=True)
class CourseAdaptiveSettings:
    """Course-level adaptive settings."""

    mode: AdaptiveMode = AdaptiveMode.OFF
    allow_learner_choice: bool = False
    pre_assessment_enabled: bool = False


DEFAULT_ADAPTIVE_SETTINGS = CourseAdaptiveSettings()


# =============================================================================
# Strategy Context
# =============================================================================


@dataclass(frozen=True)
class PlaylistContext:
    """Read-only snapshot of a session handed to a strategy."""

    static_sequence: tuple[StaticLearningUnit, ...]
    playlist: tuple[PlaylistEntry, ...]
    current_index: int
    node_progress: Mapping[str, NodeProgress]
    gate_results: Mapping[str, tuple[GateResult, ...]]
    adaptive_config: CourseAdaptiveSettings = DEFAULT_ADAPTIVE_SETTINGS

    @property
    def current_entry(self) -> Optional[PlaylistEntry]:
        if 0 <= self.current_index < len(self.playlist):
            return self.playlist[self.current_index]
        return None

    @property
    def next_entry(self) -> Optional[PlaylistEntry]:
        nxt = self.current_index + 1
        if 0 <= nxt < len(self.playlist):
            return self.playlist[nxt]
        return None

    def results_for(self, lu_id: str) -> tuple[GateResult, ...]:
        return tuple(self.gate_results.get(lu_id, ()))

    def mastery_of(self, node_id: str) -> Optional[float]:
        """Recorded mastery for a node, or None when nothing was reported."""
        progress = self.node_progress.get(node_id)
        return progress.mastery if progress is not None else None


# =============================================================================
# Display
# =============================================================================


@dataclass(frozen=True)
class PlaylistDisplayEntry:
    """Display-ready row for the sidebar playlist view."""

    id: str
    title: str
    kind: EntryKind
    is_skipped: bool
    is_current: bool
    is_completed: bool
    is_gate: bool
    gate_status: Optional[GateDisplayStatus] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "kind": self.kind.value,
            "is_skipped": self.is_skipped,
            "is_current": self.is_current,
            "is_completed": self.is_completed,
            "is_gate": self.is_gate,
            "gate_status": self.gate_status.value if self.gate_status else None,
        }
