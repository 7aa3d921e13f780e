"""Compiled detection patterns.

Each detection mode compiles to its own pattern variant. All variants expose
``test(field_name, value)`` so callers can treat them uniformly, while the
matchers use the mode-specific helpers (``applies_to``, ``finditer``).
"""

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from waivern_api_pii.patterns.models import DetectionModeSet, PatternDefinition
from waivern_api_pii.types import DetectionMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _CompiledBase:
    name: str
    risk_level: str
    category: str
    tags: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class FieldPattern(_CompiledBase):
    """Field-based pattern: field name fragment AND value regex must match."""

    field_names: tuple[str, ...]
    value_regex: re.Pattern[str]

    mode = DetectionMode.FIELD_BASED

    def applies_to(self, field_name_lower: str) -> bool:
        """Whether any configured fragment occurs in the lower-cased field name."""
        return any(fragment in field_name_lower for fragment in self.field_names)

    def test(self, field_name: str, value: str) -> bool:
        """Match the field name fragments and the value regex."""
        return (
            self.applies_to(field_name.lower())
            and self.value_regex.search(value) is not None
        )


@dataclass(frozen=True, slots=True)
class ValuePattern(_CompiledBase):
    """Value-only pattern applied to raw text regardless of field name."""

    regex: re.Pattern[str]

    mode = DetectionMode.VALUE_ONLY

    def finditer(self, text: str) -> Iterator[str]:
        """Yield every non-overlapping match in the text."""
        for match in self.regex.finditer(text):
            yield match.group(0)

    def test(self, field_name: str, value: str) -> bool:
        """Match the regex against the value; the field name is ignored."""
        return self.regex.search(value) is not None


@dataclass(frozen=True, slots=True)
class KeywordPattern(_CompiledBase):
    """Keyword-based pattern applied to the field name itself."""

    regex: re.Pattern[str]

    mode = DetectionMode.KEYWORD_BASED

    def test(self, field_name: str, value: str) -> bool:
        """Match the regex against the field name; the value is ignored."""
        return self.regex.search(field_name) is not None


type CompiledPattern = FieldPattern | ValuePattern | KeywordPattern


@dataclass(frozen=True, slots=True)
class CompiledPatterns:
    """Immutable table of compiled patterns in configuration order."""

    field_based: tuple[FieldPattern, ...]
    value_only: tuple[ValuePattern, ...]
    keyword_based: tuple[KeywordPattern, ...]

    @property
    def by_key(self) -> Mapping[tuple[DetectionMode, str], CompiledPattern]:
        """Compiled patterns keyed by (mode, pattern name)."""
        table: dict[tuple[DetectionMode, str], CompiledPattern] = {}
        for pattern in (*self.field_based, *self.value_only, *self.keyword_based):
            table[(pattern.mode, pattern.name)] = pattern
        return MappingProxyType(table)

    def __len__(self) -> int:
        """Return the total number of compiled patterns."""
        return len(self.field_based) + len(self.value_only) + len(self.keyword_based)


def _compile(mode: DetectionMode, name: str, source: str) -> re.Pattern[str] | None:
    # \d, \w, \s and \b match ASCII only
    try:
        return re.compile(source, re.ASCII)
    except re.error as e:
        logger.warning("Failed to compile %s regex for %s: %s", mode.value, name, e)
        return None


def _compile_field_pattern(name: str, pattern: PatternDefinition) -> FieldPattern | None:
    if not pattern.field_names or not pattern.value_pattern:
        logger.warning(
            "Skipping field-based pattern %s: fieldNames and valuePattern are required",
            name,
        )
        return None
    regex = _compile(DetectionMode.FIELD_BASED, name, pattern.value_pattern)
    if regex is None:
        return None
    return FieldPattern(
        name=name,
        risk_level=pattern.risk_level,
        category=pattern.category,
        tags=pattern.tags,
        field_names=tuple(fragment.lower() for fragment in pattern.field_names),
        value_regex=regex,
    )


def _compile_regex_source(
    mode: DetectionMode, name: str, pattern: PatternDefinition
) -> re.Pattern[str] | None:
    if not pattern.regex_pattern:
        logger.warning(
            "Skipping %s pattern %s: regexPattern is required", mode.value, name
        )
        return None
    return _compile(mode, name, pattern.regex_pattern)


def compile_patterns(modes: DetectionModeSet) -> CompiledPatterns:
    """Compile every configured regex.

    A pattern whose regex does not compile, or that lacks the fields its mode
    needs, is logged and left out; the remaining patterns are unaffected.

    Args:
        modes: Validated detection modes from the pattern document

    Returns:
        Immutable table of compiled patterns

    """
    field_based: list[FieldPattern] = []
    for name, pattern in modes.field_based.patterns.items():
        compiled = _compile_field_pattern(name, pattern)
        if compiled is not None:
            field_based.append(compiled)

    value_only: list[ValuePattern] = []
    for name, pattern in modes.value_only.patterns.items():
        regex = _compile_regex_source(DetectionMode.VALUE_ONLY, name, pattern)
        if regex is not None:
            value_only.append(
                ValuePattern(
                    name=name,
                    risk_level=pattern.risk_level,
                    category=pattern.category,
                    tags=pattern.tags,
                    regex=regex,
                )
            )

    keyword_based: list[KeywordPattern] = []
    for name, pattern in modes.keyword_based.patterns.items():
        regex = _compile_regex_source(DetectionMode.KEYWORD_BASED, name, pattern)
        if regex is not None:
            keyword_based.append(
                KeywordPattern(
                    name=name,
                    risk_level=pattern.risk_level,
                    category=pattern.category,
                    tags=pattern.tags,
                    regex=regex,
                )
            )

    compiled = CompiledPatterns(
        field_based=tuple(field_based),
        value_only=tuple(value_only),
        keyword_based=tuple(keyword_based),
    )
    logger.info("Compiled %d regex patterns successfully", len(compiled))
    return compiled
