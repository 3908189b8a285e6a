"""
Playlist strategies.

Each adaptive mode has its own module with a strategy exposing
resolve_next(context) -> PlaylistDecision:
- off: StaticStrategy (canonical order, no adaptivity)
- guided: GuidedStrategy (gates, retries, mastery skipping)
- full: FullStrategy (guided plus proactive preparation before gates)
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from src.playlist.models import AdaptiveMode
from src.playlist.strategies.base import StrategyTuning

if TYPE_CHECKING:
    from .base import PlaylistStrategy


# Strategy registry - populated by @register decorator
STRATEGIES: dict[AdaptiveMode, type] = {}


def register(mode: AdaptiveMode):
    """Decorator to register a strategy class for an adaptive mode."""
    def decorator(cls):
        STRATEGIES[mode] = cls
        return cls
    return decorator


def get_strategy(
    mode: str | AdaptiveMode,
    tuning: StrategyTuning | None = None,
) -> "PlaylistStrategy":
    """
    Create the strategy for an adaptive mode.

    Unknown modes fall back to the static strategy. Without explicit tuning
    the thresholds come from application settings.
    """
    if isinstance(mode, str) and not isinstance(mode, AdaptiveMode):
        try:
            mode = AdaptiveMode(mode.lower())
        except ValueError:
            logger.warning(f"Unknown adaptive mode {mode!r}, using static playlist")
            mode = AdaptiveMode.OFF

    if tuning is None:
        from config import get_settings

        tuning = StrategyTuning.from_settings(get_settings())

    cls = STRATEGIES.get(mode, STRATEGIES[AdaptiveMode.OFF])
    return cls(tuning)


# Import strategies to trigger registration
from . import static
from . import guided
from . import full

from .full import FullStrategy
from .guided import GuidedStrategy
from .static import StaticStrategy

__all__ = [
    "FullStrategy",
    "GuidedStrategy",
    "STRATEGIES",
    "StaticStrategy",
    "StrategyTuning",
    "get_strategy",
    "register",
]
