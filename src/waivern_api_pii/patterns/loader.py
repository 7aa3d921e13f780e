"""Pattern store: loads, validates and compiles the detection pattern document."""

import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from waivern_api_pii.errors import PatternConfigError
from waivern_api_pii.patterns.compiled import CompiledPatterns, compile_patterns
from waivern_api_pii.patterns.models import PatternConfigData

logger = logging.getLogger(__name__)

# Version and name of the bundled pattern document (private)
_PATTERNS_DATA_VERSION: Final[str] = "1.0.0"
_PATTERNS_NAME: Final[str] = "api_pii_patterns"


def default_patterns_path() -> Path:
    """Return the path of the bundled pattern document."""
    return (
        Path(__file__).parent
        / "data"
        / _PATTERNS_DATA_VERSION
        / f"{_PATTERNS_NAME}.yaml"
    )


class PatternStoreStats(BaseModel):
    """Summary of the loaded pattern configuration."""

    model_config = ConfigDict(frozen=True)

    total_patterns_loaded: int = Field(description="Patterns that compiled")
    field_based_patterns: int = Field(description="Configured field-based patterns")
    value_only_patterns: int = Field(description="Configured value-only patterns")
    keyword_patterns: int = Field(description="Configured keyword-based patterns")
    supported_categories: list[str]
    risk_levels: dict[str, int]


class PatternStore:
    """Immutable holder of the pattern configuration and its compiled regexes.

    Built once at start-up and passed by reference to every detection
    component; nothing mutates it afterwards, so it can be shared freely
    between threads.
    """

    def __init__(self, config: PatternConfigData) -> None:
        """Compile the validated pattern configuration.

        Args:
            config: Validated pattern document

        """
        self._config = config
        self._compiled = compile_patterns(config.detection_modes)
        self._weights: Mapping[str, int] = MappingProxyType(dict(config.risk_levels))

    @classmethod
    def load(cls, source: Path | str | None = None) -> "PatternStore":
        """Load the pattern document from a YAML or JSON file.

        Args:
            source: Path of the document, or None for the bundled default

        Returns:
            Ready-to-use pattern store

        Raises:
            PatternConfigError: If the document cannot be read, parsed or validated

        """
        path = Path(source) if source is not None else default_patterns_path()
        try:
            with path.open("r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f)
        except OSError as e:
            raise PatternConfigError(
                f"Failed to read PII pattern config {path}: {e}"
            ) from e
        except yaml.YAMLError as e:
            raise PatternConfigError(
                f"Failed to parse PII pattern config {path}: {e}"
            ) from e

        store = cls.from_dict(raw_data, origin=str(path))
        modes = store.config.detection_modes
        logger.info(
            "Loaded PII config with %d field-based, %d value-only, and %d keyword-based patterns",
            len(modes.field_based.patterns),
            len(modes.value_only.patterns),
            len(modes.keyword_based.patterns),
        )
        return store

    @classmethod
    def from_dict(cls, data: Any, origin: str = "<dict>") -> "PatternStore":  # noqa: ANN401
        """Build a pattern store from an already parsed document.

        Raises:
            PatternConfigError: If the document does not match the expected shape

        """
        if not isinstance(data, dict):
            raise PatternConfigError(
                f"Invalid PII pattern config format in {origin}: expected a mapping"
            )
        try:
            config = PatternConfigData.model_validate(data)
        except ValidationError as e:
            raise PatternConfigError(
                f"Invalid PII pattern config in {origin}: {e}"
            ) from e
        return cls(config)

    @property
    def config(self) -> PatternConfigData:
        """The validated pattern document."""
        return self._config

    @property
    def compiled(self) -> CompiledPatterns:
        """Compiled patterns in configuration order."""
        return self._compiled

    @property
    def risk_levels(self) -> Mapping[str, int]:
        """Read-only mapping of risk level label to weight."""
        return self._weights

    def weight(self, risk_level: str) -> int:
        """Return the weight of a risk level, 0 when the level is unknown."""
        return self._weights.get(risk_level, 0)

    def describe(self) -> PatternStoreStats:
        """Summarise the loaded configuration."""
        modes = self._config.detection_modes
        return PatternStoreStats(
            total_patterns_loaded=len(self._compiled),
            field_based_patterns=len(modes.field_based.patterns),
            value_only_patterns=len(modes.value_only.patterns),
            keyword_patterns=len(modes.keyword_based.patterns),
            supported_categories=list(self._config.categories),
            risk_levels=dict(self._weights),
        )
