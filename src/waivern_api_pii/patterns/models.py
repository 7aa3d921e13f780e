"""Pydantic models for the detection pattern document.

The document keeps the camelCase keys of the pattern configuration format
(``fieldNames``, ``valuePattern``, ``regexPattern``, ``riskLevel``); the models
accept both the aliases and the snake_case field names.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class PatternDefinition(BaseModel):
    """One named detection pattern as written in the configuration document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str | None = Field(default=None, description="Optional display name")
    description: str | None = Field(default=None)
    field_names: tuple[str, ...] = Field(
        default=(),
        alias="fieldNames",
        description="Field name fragments this pattern applies to (field-based mode)",
    )
    value_pattern: str | None = Field(
        default=None,
        alias="valuePattern",
        description="Regex tested against field values (field-based mode)",
    )
    regex_pattern: str | None = Field(
        default=None,
        alias="regexPattern",
        description="Regex for value-only text or keyword-based field names",
    )
    risk_level: str = Field(alias="riskLevel", min_length=1)
    category: str = Field(min_length=1)
    tags: tuple[str, ...] = Field(default=())
    apply_to: str | None = Field(default=None, alias="applyTo")

    @field_validator("field_names")
    @classmethod
    def validate_field_names_not_empty(cls, names: tuple[str, ...]) -> tuple[str, ...]:
        """Validate that field name fragments contain no empty strings."""
        if any(not name.strip() for name in names):
            raise ValueError("All fieldNames must be non-empty strings")
        return names


class DetectionModePatterns(BaseModel):
    """Patterns configured for one detection mode."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(default="")
    patterns: dict[str, PatternDefinition] = Field(default_factory=dict)


class DetectionModeSet(BaseModel):
    """The three detection modes of the pattern document."""

    model_config = ConfigDict(frozen=True)

    field_based: DetectionModePatterns = Field(default_factory=DetectionModePatterns)
    value_only: DetectionModePatterns = Field(default_factory=DetectionModePatterns)
    keyword_based: DetectionModePatterns = Field(
        default_factory=DetectionModePatterns
    )


class PatternConfigData(BaseModel):
    """Top-level pattern configuration document."""

    model_config = ConfigDict(frozen=True)

    detection_modes: DetectionModeSet
    risk_levels: dict[str, int] = Field(
        min_length=1, description="Risk level label to integer weight"
    )
    categories: tuple[str, ...] = Field(
        default=(), description="Known PII categories (descriptive only)"
    )

    @field_validator("risk_levels")
    @classmethod
    def validate_weights_not_negative(cls, levels: dict[str, int]) -> dict[str, int]:
        """Validate that every risk weight is a non-negative integer."""
        negative = [name for name, weight in levels.items() if weight < 0]
        if negative:
            raise ValueError(f"Risk level weights must not be negative: {negative}")
        return levels

    @model_validator(mode="after")
    def warn_on_unknown_references(self) -> "PatternConfigData":
        """Log patterns that reference unknown risk levels or categories.

        Neither is enforced at detection time: an unknown risk level weighs
        zero and categories are descriptive labels.
        """
        known_categories = set(self.categories)
        modes = self.detection_modes
        for mode_name, mode in (
            ("field_based", modes.field_based),
            ("value_only", modes.value_only),
            ("keyword_based", modes.keyword_based),
        ):
            for pattern_name, pattern in mode.patterns.items():
                if pattern.risk_level not in self.risk_levels:
                    logger.warning(
                        "Pattern %s/%s uses unknown risk level '%s'",
                        mode_name,
                        pattern_name,
                        pattern.risk_level,
                    )
                if known_categories and pattern.category not in known_categories:
                    logger.warning(
                        "Pattern %s/%s uses unknown category '%s'",
                        mode_name,
                        pattern_name,
                        pattern.category,
                    )
        return self
