"""
Gate challenge scoring.

Turns the per-question outcomes of a gate challenge into the GateResult the
engine records. Per-node accuracy decides which nodes failed, so the
strategies know what to remediate.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from src.playlist.models import GateConfig, GateResult, LearnerModuleSession


@dataclass(frozen=True)
class QuestionOutcome:
    """One answered gate question."""

    question_id: str
    node_id: str
    is_correct: bool


def score_gate_challenge(
    lu_id: str,
    outcomes: Sequence[QuestionOutcome],
    gate_config: GateConfig,
    attempt_number: int,
    assesses_nodes: Iterable[str] = (),
) -> GateResult:
    """
    Score a finished gate challenge.

    Args:
        lu_id: Gate unit id
        outcomes: Answered questions, in the order they were asked
        gate_config: Gate configuration (threshold)
        attempt_number: 1-based attempt number
        assesses_nodes: Nodes the gate assesses, reported as failed when
            there are no outcomes (e.g. no questions could be selected)

    Returns:
        GateResult with score = correct / total and the nodes whose own
        accuracy fell below the threshold, in first-seen order
    """
    if not outcomes:
        return GateResult(
            lu_id=lu_id,
            passed=False,
            score=0.0,
            attempt_number=attempt_number,
            failed_nodes=tuple(dict.fromkeys(assesses_nodes)),
        )

    correct = sum(1 for o in outcomes if o.is_correct)
    score = correct / len(outcomes)

    # node_id -> [correct, total]
    per_node: dict[str, list[int]] = {}
    for outcome in outcomes:
        tally = per_node.setdefault(outcome.node_id, [0, 0])
        tally[1] += 1
        if outcome.is_correct:
            tally[0] += 1

    threshold = gate_config.mastery_threshold
    failed = tuple(
        node_id for node_id, (ok, total) in per_node.items()
        if ok / total < threshold
    )

    return GateResult(
        lu_id=lu_id,
        passed=score >= threshold,
        score=score,
        attempt_number=attempt_number,
        failed_nodes=failed,
    )


def next_attempt_number(session: LearnerModuleSession, lu_id: str) -> int:
    """1-based number of the next gate attempt for a unit."""
    return len(session.gate_attempts.get(lu_id, ())) + 1
