"""
Session serialization.

Converts sessions, entries and decisions to JSON-compatible structures and
back. Union types always carry their discriminator ("kind" for entries,
"action" for decisions) so a stored session round-trips without loss.

The hosting application stores the blob keyed by (enrollment_id, module_id);
nothing here touches disk or network.
"""
from __future__ import annotations

import json
from typing import Any, Callable

from src.playlist.decisions import (
    AdvanceDecision,
    CompleteDecision,
    DecisionAction,
    HoldDecision,
    InjectDecision,
    PlaylistDecision,
    RetryDecision,
    SkipDecision,
)
from src.playlist.errors import SessionFormatError
from src.playlist.models import (
    EntryKind,
    GateConfig,
    GateFailStrategy,
    GateResult,
    InjectedPracticeEntry,
    InjectedReviewEntry,
    LearnerModuleSession,
    LearningUnitAdaptive,
    NodeProgress,
    PlaylistEntry,
    RetryEntry,
    StaticEntry,
    StaticLearningUnit,
)


# =============================================================================
# Learning Units
# =============================================================================


def unit_to_dict(lu: StaticLearningUnit) -> dict[str, Any]:
    adaptive = None
    if lu.adaptive is not None:
        gate = lu.adaptive.gate_config
        adaptive = {
            "teaches_nodes": list(lu.adaptive.teaches_nodes),
            "assesses_nodes": list(lu.adaptive.assesses_nodes),
            "is_gate": lu.adaptive.is_gate,
            "is_skippable": lu.adaptive.is_skippable,
            "gate_config": None if gate is None else {
                "mastery_threshold": gate.mastery_threshold,
                "min_questions": gate.min_questions,
                "max_retries": gate.max_retries,
                "fail_strategy": gate.fail_strategy.value,
            },
        }
    return {
        "id": lu.id,
        "title": lu.title,
        "type": lu.type,
        "content_id": lu.content_id,
        "category": lu.category,
        "is_required": lu.is_required,
        "sequence": lu.sequence,
        "estimated_duration": lu.estimated_duration,
        "adaptive": adaptive,
    }


def unit_from_dict(data: dict[str, Any]) -> StaticLearningUnit:
    adaptive = None
    raw = data.get("adaptive")
    if raw is not None:
        gate = raw.get("gate_config")
        adaptive = LearningUnitAdaptive(
            teaches_nodes=tuple(raw.get("teaches_nodes", ())),
            assesses_nodes=tuple(raw.get("assesses_nodes", ())),
            is_gate=bool(raw.get("is_gate", False)),
            is_skippable=bool(raw.get("is_skippable", False)),
            gate_config=None if gate is None else GateConfig(
                mastery_threshold=float(gate["mastery_threshold"]),
                min_questions=int(gate["min_questions"]),
                max_retries=int(gate["max_retries"]),
                fail_strategy=GateFailStrategy(gate["fail_strategy"]),
            ),
        )
    return StaticLearningUnit(
        id=data["id"],
        title=data["title"],
        type=data.get("type", "media"),
        content_id=data.get("content_id"),
        category=data.get("category"),
        is_required=bool(data.get("is_required", True)),
        sequence=int(data.get("sequence", 0)),
        estimated_duration=data.get("estimated_duration"),
        adaptive=adaptive,
    )


# =============================================================================
# Entries
# =============================================================================


def entry_to_dict(entry: PlaylistEntry) -> dict[str, Any]:
    base = {"kind": entry.kind.value, "entry_id": entry.entry_id, "title": entry.title}
    if isinstance(entry, StaticEntry):
        base["lu"] = unit_to_dict(entry.lu)
    elif isinstance(entry, InjectedPracticeEntry):
        base["target_node_ids"] = list(entry.target_node_ids)
        base["question_count"] = entry.question_count
    elif isinstance(entry, InjectedReviewEntry):
        base["reference_lu_id"] = entry.reference_lu_id
        base["target_node_ids"] = list(entry.target_node_ids)
    elif isinstance(entry, RetryEntry):
        base["lu"] = unit_to_dict(entry.lu)
        base["attempt_number"] = entry.attempt_number
    else:
        raise TypeError(f"Not a playlist entry: {entry!r}")
    return base


def _static_from_dict(data: dict[str, Any]) -> StaticEntry:
    return StaticEntry(
        entry_id=data["entry_id"],
        title=data["title"],
        lu=unit_from_dict(data["lu"]),
    )


def _practice_from_dict(data: dict[str, Any]) -> InjectedPracticeEntry:
    return InjectedPracticeEntry(
        entry_id=data["entry_id"],
        title=data["title"],
        target_node_ids=tuple(data["target_node_ids"]),
        question_count=int(data["question_count"]),
    )


def _review_from_dict(data: dict[str, Any]) -> InjectedReviewEntry:
    return InjectedReviewEntry(
        entry_id=data["entry_id"],
        title=data["title"],
        reference_lu_id=data["reference_lu_id"],
        target_node_ids=tuple(data.get("target_node_ids", ())),
    )


def _retry_from_dict(data: dict[str, Any]) -> RetryEntry:
    return RetryEntry(
        entry_id=data["entry_id"],
        title=data["title"],
        lu=unit_from_dict(data["lu"]),
        attempt_number=int(data["attempt_number"]),
    )


_ENTRY_DECODERS: dict[EntryKind, Callable[[dict[str, Any]], PlaylistEntry]] = {
    EntryKind.STATIC: _static_from_dict,
    EntryKind.INJECTED_PRACTICE: _practice_from_dict,
    EntryKind.INJECTED_REVIEW: _review_from_dict,
    EntryKind.RETRY: _retry_from_dict,
}


def entry_from_dict(data: dict[str, Any]) -> PlaylistEntry:
    """Decode an entry, dispatching on its "kind" discriminator."""
    try:
        kind = EntryKind(data["kind"])
        return _ENTRY_DECODERS[kind](data)
    except (KeyError, TypeError, ValueError) as e:
        raise SessionFormatError(f"Invalid playlist entry {data!r}: {e}") from e


# =============================================================================
# Decisions
# =============================================================================


def decision_to_dict(decision: PlaylistDecision) -> dict[str, Any]:
    data: dict[str, Any] = {"action": decision.action.value}
    if isinstance(decision, SkipDecision):
        data["reason"] = decision.reason
    elif isinstance(decision, InjectDecision):
        data["entries"] = [entry_to_dict(e) for e in decision.entries]
    elif isinstance(decision, RetryDecision):
        data["lu_id"] = decision.lu_id
    elif isinstance(decision, HoldDecision):
        data["message"] = decision.message
    return data


def decision_from_dict(data: dict[str, Any]) -> PlaylistDecision:
    """Decode a decision, dispatching on its "action" discriminator."""
    try:
        action = DecisionAction(data["action"])
        if action is DecisionAction.ADVANCE:
            return AdvanceDecision()
        if action is DecisionAction.SKIP:
            return SkipDecision(reason=data.get("reason", ""))
        if action is DecisionAction.INJECT:
            return InjectDecision(entries=tuple(entry_from_dict(e) for e in data["entries"]))
        if action is DecisionAction.RETRY:
            return RetryDecision(lu_id=data["lu_id"])
        if action is DecisionAction.HOLD:
            return HoldDecision(message=data.get("message", ""))
        return CompleteDecision()
    except (KeyError, TypeError, ValueError) as e:
        raise SessionFormatError(f"Invalid decision {data!r}: {e}") from e


# =============================================================================
# Session
# =============================================================================


def gate_result_to_dict(result: GateResult) -> dict[str, Any]:
    return {
        "lu_id": result.lu_id,
        "passed": result.passed,
        "score": result.score,
        "attempt_number": result.attempt_number,
        "failed_nodes": list(result.failed_nodes),
    }


def gate_result_from_dict(data: dict[str, Any]) -> GateResult:
    return GateResult(
        lu_id=data["lu_id"],
        passed=bool(data["passed"]),
        score=float(data["score"]),
        attempt_number=int(data["attempt_number"]),
        failed_nodes=tuple(data.get("failed_nodes", ())),
    )


def session_to_dict(session: LearnerModuleSession) -> dict[str, Any]:
    """Convert a session to a JSON-compatible dictionary."""
    return {
        "enrollment_id": session.enrollment_id,
        "module_id": session.module_id,
        "playlist": [entry_to_dict(e) for e in session.playlist],
        "current_index": session.current_index,
        "node_progress": {
            node_id: {"mastery": p.mastery, "attempts": p.attempts}
            for node_id, p in session.node_progress.items()
        },
        "gate_attempts": {
            lu_id: [gate_result_to_dict(r) for r in results]
            for lu_id, results in session.gate_attempts.items()
        },
        "is_complete": session.is_complete,
        "skipped_entries": list(session.skipped_entries),
    }


def session_from_dict(data: dict[str, Any]) -> LearnerModuleSession:
    """
    Create a session from a dictionary.

    Raises:
        SessionFormatError: If keys are missing or a discriminator is unknown
    """
    try:
        return LearnerModuleSession(
            enrollment_id=data["enrollment_id"],
            module_id=data["module_id"],
            playlist=tuple(entry_from_dict(e) for e in data["playlist"]),
            current_index=int(data["current_index"]),
            node_progress={
                node_id: NodeProgress(mastery=float(p["mastery"]), attempts=int(p.get("attempts", 0)))
                for node_id, p in data.get("node_progress", {}).items()
            },
            gate_attempts={
                lu_id: tuple(gate_result_from_dict(r) for r in results)
                for lu_id, results in data.get("gate_attempts", {}).items()
            },
            is_complete=bool(data["is_complete"]),
            skipped_entries=tuple(data.get("skipped_entries", ())),
        )
    except SessionFormatError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SessionFormatError(f"Invalid session data: {e}") from e


def session_to_json(session: LearnerModuleSession, indent: int | None = 2) -> str:
    return json.dumps(session_to_dict(session), indent=indent)


def session_from_json(raw: str) -> LearnerModuleSession:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SessionFormatError(f"Session is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SessionFormatError("Session JSON must be an object")
    return session_from_dict(data)
