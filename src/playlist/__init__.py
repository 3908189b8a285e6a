"""
Adaptive Playlist Engine.

Decides what a learner studies next inside a course module, based on
mastery signals and gate (checkpoint) outcomes.

Components:
- PlaylistEngine: Owns the session and applies decisions
- Strategies: Static / Guided / Full, selected by the course's adaptive mode
- Serialization: Lossless session <-> JSON-compatible data
- Gate scoring: Per-question outcomes -> GateResult
- Catalog: Validation of the content service's unit payload
"""
from src.playlist.models import (
    AdaptiveMode,
    CourseAdaptiveSettings,
    DEFAULT_ADAPTIVE_SETTINGS,
    EntryKind,
    GateConfig,
    GateDisplayStatus,
    GateFailStrategy,
    GateResult,
    InjectedPracticeEntry,
    InjectedReviewEntry,
    LearnerModuleSession,
    LearningUnitAdaptive,
    NodeProgress,
    PlaylistContext,
    PlaylistDisplayEntry,
    PlaylistEntry,
    RetryEntry,
    StaticEntry,
    StaticLearningUnit,
)
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
from src.playlist.errors import PlaylistError, SessionFormatError, SessionRestoreError
from src.playlist.strategies import (
    FullStrategy,
    GuidedStrategy,
    StaticStrategy,
    StrategyTuning,
    get_strategy,
)
from src.playlist.engine import PlaylistEngine, validate_session
from src.playlist.gate_scoring import QuestionOutcome, next_attempt_number, score_gate_challenge
from src.playlist.serialization import (
    decision_from_dict,
    decision_to_dict,
    session_from_dict,
    session_from_json,
    session_to_dict,
    session_to_json,
)

__all__ = [
    # Main engine
    "PlaylistEngine",
    "validate_session",
    # Strategies
    "FullStrategy",
    "GuidedStrategy",
    "StaticStrategy",
    "StrategyTuning",
    "get_strategy",
    # Data models
    "CourseAdaptiveSettings",
    "DEFAULT_ADAPTIVE_SETTINGS",
    "GateConfig",
    "GateResult",
    "LearnerModuleSession",
    "LearningUnitAdaptive",
    "NodeProgress",
    "PlaylistContext",
    "PlaylistDisplayEntry",
    "PlaylistEntry",
    "StaticLearningUnit",
    "StaticEntry",
    "InjectedPracticeEntry",
    "InjectedReviewEntry",
    "RetryEntry",
    # Decisions
    "PlaylistDecision",
    "AdvanceDecision",
    "SkipDecision",
    "InjectDecision",
    "RetryDecision",
    "HoldDecision",
    "CompleteDecision",
    # Enums
    "AdaptiveMode",
    "DecisionAction",
    "EntryKind",
    "GateDisplayStatus",
    "GateFailStrategy",
    # Errors
    "PlaylistError",
    "SessionFormatError",
    "SessionRestoreError",
    # Gate scoring
    "QuestionOutcome",
    "next_attempt_number",
    "score_gate_challenge",
    # Serialization
    "decision_from_dict",
    "decision_to_dict",
    "session_from_dict",
    "session_from_json",
    "session_to_dict",
    "session_to_json",
]
