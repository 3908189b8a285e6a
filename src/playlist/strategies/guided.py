"""
Guided strategy.

Gate handling (only the last entry for a gate in the playlist is live;
earlier ones, reached by jumping back, advance towards it):
1. No result for the current attempt yet -> hold
2. Latest result passed -> advance
3. Latest result failed, retries left -> retry
4. Retries used up -> the gate's fail strategy:
   - allow-continue: advance
   - hold: hold (the gate stays blocked)
   - inject-practice: practice on the weak nodes
   - prescribe-review: review of the units teaching the weak nodes,
     practice when no such unit exists
   Remediation already in the playlist is not injected twice; the gate
   advances into it instead.

Outside gates, a skippable unit whose taught nodes are all mastered is skipped.
"""
from __future__ import annotations

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
from src.playlist.models import (
    AdaptiveMode,
    GateConfig,
    GateFailStrategy,
    GateResult,
    InjectedPracticeEntry,
    InjectedReviewEntry,
    PlaylistContext,
    PlaylistEntry,
    StaticEntry,
    StaticLearningUnit,
    gate_unit_of,
)

from . import register
from .base import (
    StrategyTuning,
    gate_config_for,
    teaching_units_for,
    weak_assessed_nodes,
    weakest_first,
)


@register(AdaptiveMode.GUIDED)
class GuidedStrategy:
    """Mastery gates with retries and fail strategies, plus mastery-based skipping."""

    def __init__(self, tuning: StrategyTuning | None = None):
        self.tuning = tuning or StrategyTuning()

    def resolve_next(self, context: PlaylistContext) -> PlaylistDecision:
        entry = context.current_entry
        if entry is None:
            return CompleteDecision()

        gate = gate_unit_of(entry)
        if gate is not None:
            return self.resolve_gate(context, gate)

        if isinstance(entry, StaticEntry) and self.can_skip(context, entry.lu):
            threshold = self.tuning.skip_mastery_threshold
            return SkipDecision(
                reason=f"All concepts taught here are already at {threshold:.0%} mastery or above",
            )

        return AdvanceDecision()

    # -------------------------------------------------------------------------
    # Skipping
    # -------------------------------------------------------------------------

    def can_skip(self, context: PlaylistContext, lu: StaticLearningUnit) -> bool:
        """Skippable non-gate unit whose taught nodes all have recorded mastery >= threshold."""
        if lu.is_gate or not lu.is_skippable or not lu.teaches_nodes:
            return False
        threshold = self.tuning.skip_mastery_threshold
        return all(
            (m := context.mastery_of(node_id)) is not None and m >= threshold
            for node_id in lu.teaches_nodes
        )

    # -------------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------------

    def resolve_gate(
        self,
        context: PlaylistContext,
        gate: StaticLearningUnit,
    ) -> PlaylistDecision:
        config = gate_config_for(gate, self.tuning)
        results = context.results_for(gate.id)

        positions = self.gate_positions(context, gate)
        # Only the last entry for a gate is live; earlier ones lead to it
        if positions and positions[-1] > context.current_index:
            return AdvanceDecision()

        # The n-th entry for a gate waits for the n-th result
        awaited = sum(1 for pos in positions if pos <= context.current_index)
        if len(results) < awaited:
            return HoldDecision(message=f"Complete the gate challenge for '{gate.title}' to continue")

        latest = results[-1]
        if latest.passed:
            return AdvanceDecision()

        if config.allows_retry(len(results)):
            return RetryDecision(lu_id=gate.id)

        return self.resolve_exhausted(context, gate, config, latest, len(results))

    @staticmethod
    def gate_positions(context: PlaylistContext, gate: StaticLearningUnit) -> list[int]:
        """Playlist positions of the gate's static entry and its retries."""
        return [
            pos for pos, entry in enumerate(context.playlist)
            if (unit := gate_unit_of(entry)) is not None and unit.id == gate.id
        ]

    def resolve_exhausted(
        self,
        context: PlaylistContext,
        gate: StaticLearningUnit,
        config: GateConfig,
        latest: GateResult,
        attempts: int,
    ) -> PlaylistDecision:
        """Apply the gate's fail strategy once no retries are left."""
        logger.debug(
            f"Gate {gate.id} exhausted after {attempts} attempts, applying {config.fail_strategy.value}"
        )

        if config.fail_strategy is GateFailStrategy.ALLOW_CONTINUE:
            return AdvanceDecision()

        if config.fail_strategy is GateFailStrategy.HOLD:
            return HoldDecision(
                message=f"'{gate.title}' was not passed after {attempts} attempts",
            )

        weak = self.weak_nodes(context, gate, config, latest)
        if not weak:
            return AdvanceDecision()

        entries: list[PlaylistEntry] = []
        if config.fail_strategy is GateFailStrategy.PRESCRIBE_REVIEW:
            entries.extend(self.review_entries(context, gate, weak, attempts))
        if not entries:
            entries.append(self.practice_entry(gate, config, weak, attempts))

        # Remediation for this attempt count was already given
        existing = {entry.entry_id for entry in context.playlist}
        fresh = tuple(entry for entry in entries if entry.entry_id not in existing)
        if not fresh:
            return AdvanceDecision()
        return InjectDecision(entries=fresh)

    def weak_nodes(
        self,
        context: PlaylistContext,
        gate: StaticLearningUnit,
        config: GateConfig,
        latest: GateResult,
    ) -> list[str]:
        """Failed nodes of the latest attempt, else assessed nodes reported below threshold."""
        if latest.failed_nodes:
            return weakest_first(context, latest.failed_nodes)
        return weak_assessed_nodes(context, gate, config.mastery_threshold)

    def practice_entry(
        self,
        gate: StaticLearningUnit,
        config: GateConfig,
        node_ids: list[str],
        attempts: int,
    ) -> InjectedPracticeEntry:
        return InjectedPracticeEntry(
            entry_id=f"practice-{gate.id}-{attempts}",
            title=f"Practice: {gate.title}",
            target_node_ids=tuple(node_ids),
            question_count=max(config.min_questions, self.tuning.practice_question_count),
        )

    def review_entries(
        self,
        context: PlaylistContext,
        gate: StaticLearningUnit,
        node_ids: list[str],
        attempts: int,
    ) -> list[InjectedReviewEntry]:
        return [
            InjectedReviewEntry(
                entry_id=f"review-{gate.id}-{unit.id}-{attempts}",
                title=f"Review: {unit.title}",
                reference_lu_id=unit.id,
                target_node_ids=tuple(covered),
            )
            for unit, covered in teaching_units_for(context, gate, node_ids)
        ]
