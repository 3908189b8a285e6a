"""
Base protocol and shared helpers for playlist strategies.

Strategies are pure: the same PlaylistContext always yields the same
decision, and the context is never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Protocol

from src.playlist.decisions import PlaylistDecision
from src.playlist.models import (
    GateConfig,
    GateFailStrategy,
    PlaylistContext,
    StaticLearningUnit,
)

if TYPE_CHECKING:
    from config import Settings


class PlaylistStrategy(Protocol):
    """Protocol for playlist strategies."""

    def resolve_next(self, context: PlaylistContext) -> PlaylistDecision:
        """Given the current context, decide what happens next."""
        ...


@dataclass(frozen=True)
class StrategyTuning:
    """Thresholds shared by the adaptive strategies."""

    skip_mastery_threshold: float = 0.70
    practice_question_count: int = 5
    review_mastery_floor: float = 0.40
    proactive_injection_enabled: bool = True
    default_gate_config: GateConfig = field(default_factory=GateConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> StrategyTuning:
        defaults = settings.get_gate_defaults()
        return cls(
            skip_mastery_threshold=settings.skip_mastery_threshold,
            practice_question_count=settings.practice_question_count,
            review_mastery_floor=settings.review_mastery_floor,
            proactive_injection_enabled=settings.proactive_injection_enabled,
            default_gate_config=GateConfig(
                mastery_threshold=float(defaults["mastery_threshold"]),
                min_questions=int(defaults["min_questions"]),
                max_retries=int(defaults["max_retries"]),
                fail_strategy=GateFailStrategy(defaults["fail_strategy"]),
            ),
        )


def gate_config_for(lu: StaticLearningUnit, tuning: StrategyTuning) -> GateConfig:
    """Gate configuration of a unit, falling back to the configured default."""
    if lu.adaptive is not None and lu.adaptive.gate_config is not None:
        return lu.adaptive.gate_config
    return tuning.default_gate_config


def weakest_first(context: PlaylistContext, node_ids: Iterable[str]) -> list[str]:
    """Order nodes by recorded mastery, lowest first. Unreported nodes count as 0."""
    unique = list(dict.fromkeys(node_ids))
    return sorted(unique, key=lambda n: context.mastery_of(n) or 0.0)


def weak_assessed_nodes(
    context: PlaylistContext,
    lu: StaticLearningUnit,
    threshold: float,
) -> list[str]:
    """Assessed nodes with recorded mastery below threshold, weakest first."""
    weak = [
        node_id for node_id in lu.assesses_nodes
        if (m := context.mastery_of(node_id)) is not None and m < threshold
    ]
    return weakest_first(context, weak)


def teaching_units_for(
    context: PlaylistContext,
    gate: StaticLearningUnit,
    node_ids: list[str],
) -> list[tuple[StaticLearningUnit, list[str]]]:
    """
    Find units before the gate that teach any of the given nodes.

    Args:
        context: Strategy context
        gate: The gate unit being remediated
        node_ids: Target nodes, weakest first

    Returns:
        (unit, covered nodes) pairs ordered by the weakest node each unit
        covers, then non-skippable before skippable, then catalog order
    """
    sequence = list(context.static_sequence)
    gate_pos = next((i for i, lu in enumerate(sequence) if lu.id == gate.id), len(sequence))
    rank = {node_id: i for i, node_id in enumerate(node_ids)}

    found = []
    for pos, unit in enumerate(sequence[:gate_pos]):
        covered = [n for n in node_ids if n in unit.teaches_nodes]
        if covered:
            found.append((min(rank[n] for n in covered), unit.is_skippable, pos, unit, covered))

    found.sort(key=lambda item: item[:3])
    return [(unit, covered) for _, _, _, unit, covered in found]
