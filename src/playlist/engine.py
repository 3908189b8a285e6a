"""
Playlist Engine.

Runtime engine that manages the adaptive playlist of one learner in one module.
No I/O: the hosting application loads and saves the session.

Usage:
    engine = PlaylistEngine(settings, units, enrollment_id, module_id)
    session = engine.initialize_playlist()
    # ... learner progresses ...
    decision = engine.resolve_next()
    session = engine.apply_decision(decision)

Every mutating method returns the new session. Sessions are frozen values,
so an earlier session object is never changed by later calls.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import replace
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from loguru import logger

from src.playlist.decisions import (
    AdvanceDecision,
    CompleteDecision,
    HoldDecision,
    InjectDecision,
    PlaylistDecision,
    RetryDecision,
    SkipDecision,
)
from src.playlist.errors import SessionRestoreError
from src.playlist.models import (
    DEFAULT_ADAPTIVE_SETTINGS,
    CourseAdaptiveSettings,
    GateDisplayStatus,
    GateResult,
    LearnerModuleSession,
    NodeProgress,
    PlaylistContext,
    PlaylistDisplayEntry,
    PlaylistEntry,
    RetryEntry,
    StaticEntry,
    StaticLearningUnit,
    gate_unit_of,
)
from src.playlist.strategies import StrategyTuning, get_strategy
from src.playlist.strategies.base import PlaylistStrategy


def validate_session(
    session: LearnerModuleSession,
    enrollment_id: Optional[str] = None,
    module_id: Optional[str] = None,
) -> list[str]:
    """
    Check a session for structural problems.

    Args:
        session: Session to check
        enrollment_id: Expected enrollment, if known
        module_id: Expected module, if known

    Returns:
        List of problem descriptions (empty when the session is consistent)
    """
    problems = []

    if enrollment_id is not None and session.enrollment_id != enrollment_id:
        problems.append(
            f"enrollment_id {session.enrollment_id!r} does not match {enrollment_id!r}"
        )
    if module_id is not None and session.module_id != module_id:
        problems.append(f"module_id {session.module_id!r} does not match {module_id!r}")

    if not 0 <= session.current_index <= len(session.playlist):
        problems.append(
            f"current_index {session.current_index} outside 0..{len(session.playlist)}"
        )

    counts = Counter(entry.entry_id for entry in session.playlist)
    duplicates = sorted(entry_id for entry_id, n in counts.items() if n > 1)
    if duplicates:
        problems.append(f"duplicate entry ids: {', '.join(duplicates)}")

    return problems


class PlaylistEngine:
    """
    Owns one LearnerModuleSession and is its only mutation surface.

    The active strategy is chosen from the course's adaptive mode unless one
    is passed in explicitly.
    """

    def __init__(
        self,
        config: Optional[CourseAdaptiveSettings],
        static_sequence: Iterable[StaticLearningUnit],
        enrollment_id: str,
        module_id: str,
        initial_node_progress: Optional[Mapping[str, NodeProgress]] = None,
        *,
        strategy: Optional[PlaylistStrategy] = None,
        tuning: Optional[StrategyTuning] = None,
    ):
        self.config = config or DEFAULT_ADAPTIVE_SETTINGS
        self.static_sequence = tuple(static_sequence)
        self.strategy = strategy or get_strategy(self.config.mode, tuning)

        # Empty session until initialize_playlist() or restore_session()
        self._session = LearnerModuleSession(
            enrollment_id=enrollment_id,
            module_id=module_id,
            node_progress=dict(initial_node_progress or {}),
        )

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def initialize_playlist(self) -> LearnerModuleSession:
        """Build the initial playlist from the static sequence. Discards prior progress."""
        playlist = []
        seen: Counter[str] = Counter()
        for lu in self.static_sequence:
            seen[lu.id] += 1
            entry_id = f"static-{lu.id}"
            if seen[lu.id] > 1:
                logger.warning(f"Unit {lu.id} appears {seen[lu.id]} times in module {self._session.module_id}")
                entry_id = f"{entry_id}-{seen[lu.id]}"
            playlist.append(StaticEntry(entry_id=entry_id, title=lu.title, lu=lu))

        self._session = replace(
            self._session,
            playlist=tuple(playlist),
            current_index=0,
            gate_attempts={},
            skipped_entries=(),
            is_complete=len(playlist) == 0,
        )
        logger.info(
            f"Initialized playlist for {self._session.enrollment_id}/{self._session.module_id} "
            f"with {len(playlist)} entries ({self.config.mode.value} mode)"
        )
        return self._session

    def restore_session(self, session: LearnerModuleSession) -> None:
        """
        Restore a previously saved session.

        Raises:
            SessionRestoreError: If the session belongs to another enrollment or
                module, its cursor is out of range, or entry ids collide. The
                engine keeps its current session in that case.
        """
        problems = validate_session(
            session,
            enrollment_id=self._session.enrollment_id,
            module_id=self._session.module_id,
        )
        if problems:
            raise SessionRestoreError(
                f"Cannot restore session: {'; '.join(problems)}", problems
            )
        self._session = session
        logger.info(
            f"Restored session {session.enrollment_id}/{session.module_id} "
            f"at {session.current_index}/{len(session.playlist)}"
        )

    def get_session(self) -> LearnerModuleSession:
        return self._session

    def is_complete(self) -> bool:
        return self._session.is_complete

    def get_current_entry(self) -> Optional[PlaylistEntry]:
        """Current entry, or None once the playlist is complete."""
        if self._session.is_complete:
            return None
        if self._has_current(self._session):
            return self._session.playlist[self._session.current_index]
        return None

    # =========================================================================
    # Decisions
    # =========================================================================

    def resolve_next(self) -> PlaylistDecision:
        """Ask the strategy what happens next. Does not change the session."""
        decision = self.strategy.resolve_next(self._build_context())
        logger.debug(
            f"Resolved {decision.action.value} at {self._session.current_index}/{len(self._session.playlist)}"
        )
        return decision

    def apply_decision(self, decision: PlaylistDecision) -> LearnerModuleSession:
        """
        Apply a decision to the session.

        Navigation decisions on a finished or exhausted playlist, and retries
        for units not in the playlist, are ignored.

        Raises:
            TypeError: If the argument is not a playlist decision
        """
        session = self._session

        if isinstance(decision, (AdvanceDecision, SkipDecision, InjectDecision, RetryDecision)):
            if session.is_complete or not self._has_current(session):
                logger.debug(f"Ignoring {decision.action.value}: no current entry")
                return session

        if isinstance(decision, AdvanceDecision):
            updated = self._advanced(session)
        elif isinstance(decision, SkipDecision):
            entry_id = session.playlist[session.current_index].entry_id
            skipped = session.skipped_entries
            if entry_id not in skipped:
                skipped = skipped + (entry_id,)
            updated = self._advanced(replace(session, skipped_entries=skipped))
        elif isinstance(decision, InjectDecision):
            updated = self._inject(session, decision.entries)
        elif isinstance(decision, RetryDecision):
            updated = self._retry(session, decision.lu_id)
        elif isinstance(decision, HoldDecision):
            updated = session
        elif isinstance(decision, CompleteDecision):
            updated = replace(session, is_complete=True)
        else:
            raise TypeError(f"Unknown playlist decision: {decision!r}")

        self._session = updated
        logger.debug(
            f"Applied {decision.action.value}: index {session.current_index} -> {updated.current_index}, "
            f"complete={updated.is_complete}"
        )
        return updated

    # =========================================================================
    # Recording
    # =========================================================================

    def record_gate_result(self, result: GateResult) -> LearnerModuleSession:
        """Append a gate attempt. Earlier attempts are never replaced."""
        attempts = dict(self._session.gate_attempts)
        attempts[result.lu_id] = tuple(attempts.get(result.lu_id, ())) + (result,)
        self._session = replace(self._session, gate_attempts=attempts)
        logger.debug(
            f"Gate {result.lu_id} attempt {result.attempt_number}: "
            f"{'passed' if result.passed else 'failed'} ({result.score:.2f})"
        )
        return self._session

    def update_node_progress(self, node_id: str, progress: NodeProgress) -> LearnerModuleSession:
        """Replace the progress of one knowledge node."""
        node_progress = dict(self._session.node_progress)
        node_progress[node_id] = progress
        self._session = replace(self._session, node_progress=node_progress)
        return self._session

    # =========================================================================
    # Navigation
    # =========================================================================

    def go_to_index(self, index: int) -> LearnerModuleSession:
        """Jump to an entry (sidebar click). Out-of-range indexes are ignored."""
        if 0 <= index < len(self._session.playlist):
            self._session = replace(self._session, current_index=index, is_complete=False)
        else:
            logger.debug(f"Ignoring jump to {index}: playlist has {len(self._session.playlist)} entries")
        return self._session

    def get_display_entries(self) -> list[PlaylistDisplayEntry]:
        """Build display rows for the sidebar."""
        session = self._session
        skipped = set(session.skipped_entries)
        rows = []

        for index, entry in enumerate(session.playlist):
            gate = gate_unit_of(entry)
            gate_status = None
            if gate is not None:
                results = session.gate_attempts.get(gate.id, ())
                if not results:
                    gate_status = GateDisplayStatus.PENDING
                elif results[-1].passed:
                    gate_status = GateDisplayStatus.PASSED
                else:
                    gate_status = GateDisplayStatus.FAILED

            is_skipped = entry.entry_id in skipped
            rows.append(PlaylistDisplayEntry(
                id=entry.entry_id,
                title=entry.title,
                kind=entry.kind,
                is_skipped=is_skipped,
                is_current=index == session.current_index,
                is_completed=index < session.current_index and not is_skipped,
                is_gate=gate is not None,
                gate_status=gate_status,
            ))

        return rows

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _has_current(session: LearnerModuleSession) -> bool:
        return 0 <= session.current_index < len(session.playlist)

    @staticmethod
    def _advanced(session: LearnerModuleSession) -> LearnerModuleSession:
        index = session.current_index + 1
        return replace(session, current_index=index, is_complete=index >= len(session.playlist))

    @staticmethod
    def _splice_after_current(
        session: LearnerModuleSession,
        entries: tuple[PlaylistEntry, ...],
    ) -> LearnerModuleSession:
        cut = session.current_index + 1
        playlist = session.playlist[:cut] + entries + session.playlist[cut:]
        return replace(session, playlist=playlist, current_index=cut)

    def _inject(
        self,
        session: LearnerModuleSession,
        entries: tuple[PlaylistEntry, ...],
    ) -> LearnerModuleSession:
        existing = session.entry_ids
        accepted = []
        for entry in entries:
            if entry.entry_id in existing:
                logger.warning(f"Dropping injected entry {entry.entry_id}: id already in playlist")
                continue
            existing.add(entry.entry_id)
            accepted.append(entry)

        if not accepted:
            return session
        return self._splice_after_current(session, tuple(accepted))

    def _retry(self, session: LearnerModuleSession, lu_id: str) -> LearnerModuleSession:
        gate_entry = next(
            (e for e in session.playlist if isinstance(e, StaticEntry) and e.lu.id == lu_id),
            None,
        )
        if gate_entry is None:
            logger.warning(f"Ignoring retry for {lu_id}: unit not in playlist")
            return session

        attempt = 1 + sum(
            1 for e in session.playlist if isinstance(e, RetryEntry) and e.lu.id == lu_id
        )
        retry = RetryEntry(
            entry_id=f"retry-{lu_id}-{attempt}",
            title=f"Retry: {gate_entry.lu.title} (#{attempt})",
            lu=gate_entry.lu,
            attempt_number=attempt,
        )
        return self._splice_after_current(session, (retry,))

    def _build_context(self) -> PlaylistContext:
        session = self._session
        return PlaylistContext(
            static_sequence=self.static_sequence,
            playlist=session.playlist,
            current_index=session.current_index,
            node_progress=MappingProxyType(dict(session.node_progress)),
            gate_results=MappingProxyType(dict(session.gate_attempts)),
            adaptive_config=self.config,
        )
