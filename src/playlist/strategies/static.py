"""
Static strategy (adaptive mode "off").

Walks the playlist in order and ignores all adaptive metadata.
"""
from __future__ import annotations

from src.playlist.decisions import AdvanceDecision, CompleteDecision, PlaylistDecision
from src.playlist.models import AdaptiveMode, PlaylistContext

from . import register
from .base import StrategyTuning


@register(AdaptiveMode.OFF)
class StaticStrategy:
    """Always advance; complete once the cursor has run off the end."""

    def __init__(self, tuning: StrategyTuning | None = None):
        # Registry signature; no threshold applies to the static order
        del tuning

    def resolve_next(self, context: PlaylistContext) -> PlaylistDecision:
        if context.current_index >= len(context.playlist):
            return CompleteDecision()
        return AdvanceDecision()
