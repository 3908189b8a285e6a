"""
Full strategy.

Everything the guided strategy does, plus proactive preparation: when the
learner is about to reach an unattempted gate whose assessed nodes are
reported below the gate threshold, practice (and, for very weak nodes, a
review of the teaching unit) is injected ahead of the gate.
"""
from __future__ import annotations

from src.playlist.decisions import AdvanceDecision, InjectDecision, PlaylistDecision
from src.playlist.models import (
    AdaptiveMode,
    InjectedPracticeEntry,
    InjectedReviewEntry,
    PlaylistContext,
    PlaylistEntry,
    StaticEntry,
)

from . import register
from .base import StrategyTuning, gate_config_for, teaching_units_for, weak_assessed_nodes
from .guided import GuidedStrategy


@register(AdaptiveMode.FULL)
class FullStrategy:
    """Guided behavior with preparation injected before weak gates."""

    def __init__(self, tuning: StrategyTuning | None = None):
        self.tuning = tuning or StrategyTuning()
        self._guided = GuidedStrategy(self.tuning)

    def resolve_next(self, context: PlaylistContext) -> PlaylistDecision:
        decision = self._guided.resolve_next(context)
        if not isinstance(decision, AdvanceDecision) or not self.tuning.proactive_injection_enabled:
            return decision

        preparation = self.preparation_for_next_gate(context)
        if preparation:
            return InjectDecision(entries=preparation)
        return decision

    def preparation_for_next_gate(self, context: PlaylistContext) -> tuple[PlaylistEntry, ...]:
        upcoming = context.next_entry
        if not isinstance(upcoming, StaticEntry) or not upcoming.lu.is_gate:
            return ()

        gate = upcoming.lu
        if context.results_for(gate.id):
            return ()

        practice_id = f"prep-{gate.id}"
        if any(entry.entry_id == practice_id for entry in context.playlist):
            return ()  # Already prepared once

        config = gate_config_for(gate, self.tuning)
        weak = weak_assessed_nodes(context, gate, config.mastery_threshold)
        if not weak:
            return ()

        entries: list[PlaylistEntry] = []
        weakest = weak[0]
        if (context.mastery_of(weakest) or 0.0) < self.tuning.review_mastery_floor:
            for unit, covered in teaching_units_for(context, gate, [weakest])[:1]:
                entries.append(InjectedReviewEntry(
                    entry_id=f"prep-review-{gate.id}-{unit.id}",
                    title=f"Review: {unit.title}",
                    reference_lu_id=unit.id,
                    target_node_ids=tuple(covered),
                ))

        entries.append(InjectedPracticeEntry(
            entry_id=practice_id,
            title=f"Prepare: {gate.title}",
            target_node_ids=tuple(weak),
            question_count=max(config.min_questions, self.tuning.practice_question_count),
        ))
        return tuple(entries)
