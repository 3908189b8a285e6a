"""
Unit tests for the playlist strategies (static, guided, full) and the
strategy registry.

Strategies are pure functions of a PlaylistContext, so every test builds a
context by hand and checks the single decision that comes back.
"""

import pytest

from src.playlist import (
    AdaptiveMode,
    AdvanceDecision,
    CompleteDecision,
    FullStrategy,
    GateFailStrategy,
    GateResult,
    GuidedStrategy,
    HoldDecision,
    InjectDecision,
    InjectedPracticeEntry,
    InjectedReviewEntry,
    NodeProgress,
    RetryDecision,
    RetryEntry,
    SkipDecision,
    StaticStrategy,
    StrategyTuning,
    get_strategy,
)
from src.playlist.strategies import STRATEGIES
from src.playlist.strategies.base import teaching_units_for, weakest_first


def progress(**mastery):
    return {node: NodeProgress(value) for node, value in mastery.items()}


def failed(lu_id, attempt, *nodes):
    return GateResult(lu_id=lu_id, passed=False, score=0.3, attempt_number=attempt, failed_nodes=nodes)


class TestStaticStrategy:
    def test_advances_inside_playlist(self, make_unit, make_context):
        units = [make_unit("a"), make_unit("b")]
        strategy = StaticStrategy()

        assert isinstance(strategy.resolve_next(make_context(units, index=0)), AdvanceDecision)
        assert isinstance(strategy.resolve_next(make_context(units, index=1)), AdvanceDecision)

    def test_completes_past_the_end(self, make_unit, make_context):
        units = [make_unit("a"), make_unit("b")]

        decision = StaticStrategy().resolve_next(make_context(units, index=2))

        assert isinstance(decision, CompleteDecision)

    def test_ignores_gates_and_mastery(self, make_unit, make_context, make_gate_config):
        units = [
            make_unit("a", teaches=["n1"], skippable=True),
            make_unit("g", assesses=["n1"], gate_config=make_gate_config()),
        ]
        strategy = StaticStrategy()

        assert isinstance(
            strategy.resolve_next(make_context(units, index=0, progress=progress(n1=1.0))),
            AdvanceDecision,
        )
        assert isinstance(strategy.resolve_next(make_context(units, index=1)), AdvanceDecision)


class TestGuidedSkipping:
    @pytest.fixture
    def units(self, make_unit):
        return [make_unit("a", teaches=["n1", "n2"], skippable=True), make_unit("b")]

    def test_skips_when_all_taught_nodes_mastered(self, units, make_context):
        context = make_context(units, progress=progress(n1=0.7, n2=0.95))

        decision = GuidedStrategy().resolve_next(context)

        assert isinstance(decision, SkipDecision)
        assert "70%" in decision.reason

    def test_one_weak_node_prevents_skip(self, units, make_context):
        context = make_context(units, progress=progress(n1=0.9, n2=0.69))

        assert isinstance(GuidedStrategy().resolve_next(context), AdvanceDecision)

    def test_unreported_node_prevents_skip(self, units, make_context):
        context = make_context(units, progress=progress(n1=0.9))

        assert isinstance(GuidedStrategy().resolve_next(context), AdvanceDecision)

    def test_non_skippable_unit_is_never_skipped(self, make_unit, make_context):
        units = [make_unit("a", teaches=["n1"])]
        context = make_context(units, progress=progress(n1=1.0))

        assert isinstance(GuidedStrategy().resolve_next(context), AdvanceDecision)

    def test_unit_without_taught_nodes_is_not_skipped(self, make_unit, make_context):
        units = [make_unit("a", skippable=True)]

        assert isinstance(GuidedStrategy().resolve_next(make_context(units)), AdvanceDecision)

    def test_threshold_comes_from_tuning(self, units, make_context):
        context = make_context(units, progress=progress(n1=0.8, n2=0.8))
        strategy = GuidedStrategy(StrategyTuning(skip_mastery_threshold=0.9))

        assert isinstance(strategy.resolve_next(context), AdvanceDecision)

    def test_complete_when_no_current_entry(self, units, make_context):
        assert isinstance(GuidedStrategy().resolve_next(make_context(units, index=2)), CompleteDecision)


class TestGuidedGates:
    @pytest.fixture
    def units(self, make_unit, make_gate_config):
        def _make(fail_strategy=GateFailStrategy.HOLD, max_retries=2):
            return [
                make_unit("a", teaches=["n1"]),
                make_unit("c", teaches=["n2"], skippable=True),
                make_unit(
                    "g",
                    assesses=["n1", "n2"],
                    gate_config=make_gate_config(max_retries=max_retries, fail_strategy=fail_strategy),
                ),
                make_unit("z", teaches=["n1"]),
            ]
        return _make

    def test_hold_until_result(self, units, make_context):
        decision = GuidedStrategy().resolve_next(make_context(units(), index=2))

        assert isinstance(decision, HoldDecision)
        assert decision.message == "Complete the gate challenge for 'Unit g' to continue"

    def test_retry_while_retries_remain(self, units, make_context):
        context = make_context(units(), index=2, results={"g": (failed("g", 1),)})

        assert GuidedStrategy().resolve_next(context) == RetryDecision(lu_id="g")

    def test_retry_entry_waits_for_its_attempt(self, units, make_context):
        gate_units = units()
        base = make_context(gate_units)
        retry = RetryEntry(entry_id="retry-g-1", title="Retry", lu=gate_units[2], attempt_number=1)
        playlist = base.playlist[:3] + (retry,) + base.playlist[3:]

        waiting = make_context(gate_units, playlist=playlist, index=3, results={"g": (failed("g", 1),)})
        assert isinstance(GuidedStrategy().resolve_next(waiting), HoldDecision)

        answered = make_context(
            gate_units,
            playlist=playlist,
            index=3,
            results={"g": (failed("g", 1), GateResult("g", True, 0.9, 2))},
        )
        assert isinstance(GuidedStrategy().resolve_next(answered), AdvanceDecision)

    def test_earlier_gate_entry_advances_to_live_retry(self, units, make_context):
        gate_units = units()
        base = make_context(gate_units)
        retry = RetryEntry(entry_id="retry-g-1", title="Retry", lu=gate_units[2], attempt_number=1)
        playlist = base.playlist[:3] + (retry,) + base.playlist[3:]
        context = make_context(gate_units, playlist=playlist, index=2, results={"g": (failed("g", 1),)})

        assert isinstance(GuidedStrategy().resolve_next(context), AdvanceDecision)

    def test_unlimited_retries_never_exhaust(self, units, make_context):
        results = {"g": tuple(failed("g", n) for n in range(1, 11))}
        context = make_context(units(max_retries=-1), index=2, results=results)

        assert isinstance(GuidedStrategy().resolve_next(context), RetryDecision)

    def test_zero_retries_exhaust_on_first_failure(self, units, make_context):
        context = make_context(
            units(GateFailStrategy.ALLOW_CONTINUE, max_retries=0),
            index=2,
            results={"g": (failed("g", 1),)},
        )

        assert isinstance(GuidedStrategy().resolve_next(context), AdvanceDecision)

    def test_exhausted_hold(self, units, make_context):
        context = make_context(
            units(GateFailStrategy.HOLD, max_retries=0),
            index=2,
            results={"g": (failed("g", 1, "n1"),)},
        )

        decision = GuidedStrategy().resolve_next(context)

        assert decision == HoldDecision(message="'Unit g' was not passed after 1 attempts")

    def test_exhausted_inject_practice_uses_failed_nodes(self, units, make_context):
        context = make_context(
            units(GateFailStrategy.INJECT_PRACTICE, max_retries=0),
            index=2,
            results={"g": (failed("g", 1, "n1", "n2"),)},
            progress=progress(n1=0.6, n2=0.1),
        )

        decision = GuidedStrategy().resolve_next(context)

        assert isinstance(decision, InjectDecision)
        (entry,) = decision.entries
        assert isinstance(entry, InjectedPracticeEntry)
        assert entry.entry_id == "practice-g-1"
        assert entry.title == "Practice: Unit g"
        assert entry.target_node_ids == ("n2", "n1")
        assert entry.question_count == 5

    def test_practice_question_count_respects_min_questions(self, make_unit, make_context, make_gate_config):
        gate = make_unit(
            "g",
            assesses=["n1"],
            gate_config=make_gate_config(
                min_questions=8, max_retries=0, fail_strategy=GateFailStrategy.INJECT_PRACTICE
            ),
        )
        context = make_context([gate], results={"g": (failed("g", 1, "n1"),)})

        decision = GuidedStrategy().resolve_next(context)

        assert decision.entries[0].question_count == 8

    def test_falls_back_to_weak_assessed_nodes(self, units, make_context):
        context = make_context(
            units(GateFailStrategy.INJECT_PRACTICE, max_retries=0),
            index=2,
            results={"g": (failed("g", 1),)},
            progress=progress(n1=0.9, n2=0.5),
        )

        decision = GuidedStrategy().resolve_next(context)

        assert decision.entries[0].target_node_ids == ("n2",)

    def test_no_weak_nodes_advances(self, units, make_context):
        context = make_context(
            units(GateFailStrategy.INJECT_PRACTICE, max_retries=0),
            index=2,
            results={"g": (failed("g", 1),)},
        )

        assert isinstance(GuidedStrategy().resolve_next(context), AdvanceDecision)

    def test_prescribe_review_targets_earlier_teaching_units(self, units, make_context):
        context = make_context(
            units(GateFailStrategy.PRESCRIBE_REVIEW, max_retries=0),
            index=2,
            results={"g": (failed("g", 1, "n1", "n2"),)},
            progress=progress(n1=0.5, n2=0.2),
        )

        decision = GuidedStrategy().resolve_next(context)

        assert all(isinstance(e, InjectedReviewEntry) for e in decision.entries)
        assert [e.entry_id for e in decision.entries] == ["review-g-c-1", "review-g-a-1"]
        assert [e.reference_lu_id for e in decision.entries] == ["c", "a"]
        assert decision.entries[0].target_node_ids == ("n2",)
        assert decision.entries[0].title == "Review: Unit c"

    def test_given_remediation_is_not_injected_again(self, units, make_context):
        gate_units = units(GateFailStrategy.PRESCRIBE_REVIEW, max_retries=0)
        base = make_context(gate_units)
        review = InjectedReviewEntry(entry_id="review-g-a-1", title="Review: Unit a", reference_lu_id="a")
        playlist = base.playlist[:3] + (review,) + base.playlist[3:]
        context = make_context(
            gate_units, playlist=playlist, index=2, results={"g": (failed("g", 1, "n1"),)}
        )

        assert isinstance(GuidedStrategy().resolve_next(context), AdvanceDecision)

    def test_only_missing_remediation_is_injected(self, units, make_context):
        gate_units = units(GateFailStrategy.PRESCRIBE_REVIEW, max_retries=0)
        base = make_context(gate_units)
        review = InjectedReviewEntry(entry_id="review-g-a-1", title="Review: Unit a", reference_lu_id="a")
        playlist = base.playlist[:3] + (review,) + base.playlist[3:]
        context = make_context(
            gate_units,
            playlist=playlist,
            index=2,
            results={"g": (failed("g", 1, "n1", "n2"),)},
            progress=progress(n1=0.5, n2=0.2),
        )

        decision = GuidedStrategy().resolve_next(context)

        assert [e.entry_id for e in decision.entries] == ["review-g-c-1"]

    def test_prescribe_review_without_teaching_unit_falls_back_to_practice(
        self, make_unit, make_context, make_gate_config
    ):
        gate = make_unit(
            "g",
            assesses=["n9"],
            gate_config=make_gate_config(max_retries=0, fail_strategy=GateFailStrategy.PRESCRIBE_REVIEW),
        )
        context = make_context([make_unit("a", teaches=["n1"]), gate], index=1, results={"g": (failed("g", 1, "n9"),)})

        decision = GuidedStrategy().resolve_next(context)

        assert isinstance(decision.entries[0], InjectedPracticeEntry)
        assert decision.entries[0].target_node_ids == ("n9",)

    def test_gate_without_config_uses_tuning_default(self, make_unit, make_context, make_gate_config):
        gate = make_unit("g", assesses=["n1"], is_gate=True)
        tuning = StrategyTuning(
            default_gate_config=make_gate_config(max_retries=0, fail_strategy=GateFailStrategy.ALLOW_CONTINUE)
        )
        context = make_context([gate], results={"g": (failed("g", 1),)})

        assert isinstance(GuidedStrategy(tuning).resolve_next(context), AdvanceDecision)


class TestFullStrategy:
    @pytest.fixture
    def units(self, make_unit, make_gate_config):
        return [
            make_unit("a", teaches=["n1"]),
            make_unit("b", teaches=["n2"]),
            make_unit("g", assesses=["n1", "n2"], gate_config=make_gate_config()),
        ]

    def test_prepares_weak_learner_before_gate(self, units, make_context):
        context = make_context(units, index=1, progress=progress(n1=0.3, n2=0.6))

        decision = FullStrategy().resolve_next(context)

        assert isinstance(decision, InjectDecision)
        review, practice = decision.entries
        assert review.entry_id == "prep-review-g-a"
        assert review.reference_lu_id == "a"
        assert practice.entry_id == "prep-g"
        assert practice.title == "Prepare: Unit g"
        assert practice.target_node_ids == ("n1", "n2")

    def test_review_only_below_floor(self, units, make_context):
        context = make_context(units, index=1, progress=progress(n1=0.5, n2=0.6))

        decision = FullStrategy().resolve_next(context)

        assert [e.entry_id for e in decision.entries] == ["prep-g"]

    def test_prepares_only_once(self, units, make_context):
        base = make_context(units)
        prep = InjectedPracticeEntry(entry_id="prep-g", title="Prepare", target_node_ids=("n1",), question_count=5)
        playlist = base.playlist[:2] + (prep,) + base.playlist[2:]
        context = make_context(units, playlist=playlist, index=2, progress=progress(n1=0.3))

        assert isinstance(FullStrategy().resolve_next(context), AdvanceDecision)

    def test_strong_learner_goes_straight_to_gate(self, units, make_context):
        context = make_context(units, index=1, progress=progress(n1=0.9, n2=0.85))

        assert isinstance(FullStrategy().resolve_next(context), AdvanceDecision)

    def test_unreported_mastery_is_not_weak(self, units, make_context):
        assert isinstance(FullStrategy().resolve_next(make_context(units, index=1)), AdvanceDecision)

    def test_attempted_gate_is_not_prepared(self, units, make_context):
        context = make_context(
            units, index=1, progress=progress(n1=0.3), results={"g": (failed("g", 1),)}
        )

        assert isinstance(FullStrategy().resolve_next(context), AdvanceDecision)

    def test_disabled_proactive_injection(self, units, make_context):
        context = make_context(units, index=1, progress=progress(n1=0.3))
        strategy = FullStrategy(StrategyTuning(proactive_injection_enabled=False))

        assert isinstance(strategy.resolve_next(context), AdvanceDecision)

    def test_gate_behavior_matches_guided(self, units, make_context):
        context = make_context(units, index=2, progress=progress(n1=0.3))

        assert isinstance(FullStrategy().resolve_next(context), HoldDecision)


class TestStrategyHelpers:
    def test_weakest_first_treats_unreported_as_zero(self, make_unit, make_context):
        context = make_context([make_unit("a")], progress=progress(n1=0.5, n2=0.1))

        assert weakest_first(context, ["n1", "n3", "n2", "n1"]) == ["n3", "n2", "n1"]

    def test_teaching_units_only_before_gate(self, make_unit, make_context, make_gate_config):
        units = [
            make_unit("a", teaches=["n1"], skippable=True),
            make_unit("b", teaches=["n1"]),
            make_unit("g", assesses=["n1"], gate_config=make_gate_config()),
            make_unit("z", teaches=["n1"]),
        ]
        context = make_context(units)

        found = teaching_units_for(context, units[2], ["n1"])

        # Non-skippable first at equal weakness
        assert [unit.id for unit, _ in found] == ["b", "a"]


class TestStrategyRegistry:
    def test_every_mode_is_registered(self):
        assert set(STRATEGIES) == set(AdaptiveMode)

    @pytest.mark.parametrize(
        "mode, expected",
        [
            (AdaptiveMode.OFF, StaticStrategy),
            (AdaptiveMode.GUIDED, GuidedStrategy),
            (AdaptiveMode.FULL, FullStrategy),
            ("guided", GuidedStrategy),
            ("FULL", FullStrategy),
            ("bogus", StaticStrategy),
        ],
    )
    def test_get_strategy(self, mode, expected, tuning):
        assert isinstance(get_strategy(mode, tuning), expected)

    def test_tuning_defaults_to_settings(self, monkeypatch):
        monkeypatch.setenv("PLAYLIST_SKIP_MASTERY_THRESHOLD", "0.9")
        monkeypatch.setenv("PLAYLIST_DEFAULT_FAIL_STRATEGY", "inject-practice")

        strategy = get_strategy(AdaptiveMode.GUIDED)

        assert strategy.tuning.skip_mastery_threshold == 0.9
        assert strategy.tuning.default_gate_config.fail_strategy is GateFailStrategy.INJECT_PRACTICE
