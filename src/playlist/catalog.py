"""
Catalog payload models.

Validates the module catalog as the content service delivers it (camelCase
JSON, e.g. "isGate", "gateConfig") and converts it to the engine's domain
types. snake_case field names are accepted too.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.playlist.models import (
    AdaptiveMode,
    CourseAdaptiveSettings,
    GateConfig,
    GateFailStrategy,
    LearningUnitAdaptive,
    StaticLearningUnit,
)


class CatalogModel(BaseModel):
    """Base for catalog payloads: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class GateConfigPayload(CatalogModel):
    mastery_threshold: float = Field(0.8, ge=0.0, le=1.0)
    min_questions: int = Field(3, ge=1)
    max_retries: int = Field(2, ge=-1, description="-1 = unlimited")
    fail_strategy: GateFailStrategy = GateFailStrategy.HOLD

    def to_domain(self) -> GateConfig:
        return GateConfig(
            mastery_threshold=self.mastery_threshold,
            min_questions=self.min_questions,
            max_retries=self.max_retries,
            fail_strategy=self.fail_strategy,
        )


class AdaptivePayload(CatalogModel):
    teaches_nodes: list[str] = Field(default_factory=list)
    assesses_nodes: list[str] = Field(default_factory=list)
    is_gate: bool = False
    is_skippable: bool = False
    gate_config: Optional[GateConfigPayload] = None

    def to_domain(self) -> LearningUnitAdaptive:
        return LearningUnitAdaptive(
            teaches_nodes=tuple(self.teaches_nodes),
            assesses_nodes=tuple(self.assesses_nodes),
            is_gate=self.is_gate,
            is_skippable=self.is_skippable,
            gate_config=self.gate_config.to_domain() if self.gate_config else None,
        )


class LearningUnitPayload(CatalogModel):
    id: str
    title: str
    type: str = "media"
    content_id: Optional[str] = None
    category: Optional[str] = None
    is_required: bool = True
    sequence: int = 0
    estimated_duration: Optional[int] = Field(None, ge=0)
    adaptive: Optional[AdaptivePayload] = None

    def to_domain(self) -> StaticLearningUnit:
        return StaticLearningUnit(
            id=self.id,
            title=self.title,
            type=self.type,
            content_id=self.content_id,
            category=self.category,
            is_required=self.is_required,
            sequence=self.sequence,
            estimated_duration=self.estimated_duration,
            adaptive=self.adaptive.to_domain() if self.adaptive else None,
        )


class CourseAdaptiveSettingsPayload(CatalogModel):
    mode: AdaptiveMode = AdaptiveMode.OFF
    allow_learner_choice: bool = False
    pre_assessment_enabled: bool = False

    def to_domain(self) -> CourseAdaptiveSettings:
        return CourseAdaptiveSettings(
            mode=self.mode,
            allow_learner_choice=self.allow_learner_choice,
            pre_assessment_enabled=self.pre_assessment_enabled,
        )


class ModuleCatalog(CatalogModel):
    """A module's learning units plus the course's adaptive settings."""

    module_id: Optional[str] = None
    units: list[LearningUnitPayload] = Field(default_factory=list)
    adaptive_settings: Optional[CourseAdaptiveSettingsPayload] = None

    def to_units(self) -> list[StaticLearningUnit]:
        """Domain units in catalog order (by sequence, stable for ties)."""
        ordered = sorted(self.units, key=lambda u: u.sequence)
        return [unit.to_domain() for unit in ordered]

    def to_settings(self) -> Optional[CourseAdaptiveSettings]:
        return self.adaptive_settings.to_domain() if self.adaptive_settings else None


def load_catalog(data: dict[str, Any]) -> ModuleCatalog:
    """
    Validate a raw catalog payload.

    Raises:
        pydantic.ValidationError: If the payload does not match the schema
    """
    return ModuleCatalog.model_validate(data)
