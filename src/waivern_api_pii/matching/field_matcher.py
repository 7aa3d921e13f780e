"""Field and value matching against the compiled detection patterns."""

from typing import Final

from waivern_api_pii.matching.masking import mask_value
from waivern_api_pii.patterns import (
    FieldPattern,
    KeywordPattern,
    PatternStore,
    ValuePattern,
)
from waivern_api_pii.types import Finding, Location

# Field name fragments identifying card fields; value-only patterns are not
# applied to such fields outside URL paths
CARD_FIELD_FRAGMENTS: Final[tuple[str, ...]] = (
    "cardnumber",
    "ccnumber",
    "creditcard",
    "card",
    "cc",
    "visa",
    "visacard",
    "mastercard",
    "maestro",
)


def _finding(
    pattern: FieldPattern | ValuePattern | KeywordPattern,
    raw_value: str,
    field_name: str | None,
    location: Location,
    field_path: str | None,
) -> Finding:
    return Finding(
        pii_type=pattern.name,
        masked_value=mask_value(raw_value),
        field_name=field_name,
        field_path=field_path,
        location=location,
        detection_mode=pattern.mode,
        risk_level=pattern.risk_level,
        category=pattern.category,
        tags=list(pattern.tags),
    )


class FieldMatcher:
    """Applies field-based, keyword-based and value-only detection.

    Field-based evidence is precise ("this IS the email field") so the first
    field-based hit settles the field. Keyword patterns are heuristics and may
    all fire for the same field.
    """

    def __init__(self, patterns: PatternStore) -> None:
        """Initialise the matcher with a shared pattern store.

        Args:
            patterns: Immutable pattern store built at start-up

        """
        self._compiled = patterns.compiled

    def match_field(
        self,
        field_name: str,
        value: str,
        location: Location,
        field_path: str | None = None,
    ) -> list[Finding]:
        """Find PII in a named field.

        Args:
            field_name: Header, JSON key, query parameter or inferred URL name
            value: The field's value
            location: Part of the exchange holding the field
            field_path: Optional dotted/indexed JSON path of the field

        Returns:
            Findings in detection order

        """
        field_name_lower = field_name.lower()

        for pattern in self._compiled.field_based:
            if pattern.applies_to(field_name_lower) and pattern.value_regex.search(
                value
            ):
                return [_finding(pattern, value, field_name, location, field_path)]

        findings = [
            _finding(pattern, value, field_name, location, field_path)
            for pattern in self._compiled.keyword_based
            if pattern.test(field_name, value)
        ]

        for finding in self.match_value(field_name_lower, value, location):
            findings.append(
                finding.model_copy(
                    update={"field_name": field_name, "field_path": field_path}
                )
            )
        return findings

    def match_value(
        self, field_name_lower: str, text: str, location: Location
    ) -> list[Finding]:
        """Scan raw text with every value-only pattern.

        Every pattern is skipped for card-like field names unless the text
        comes from a URL path segment, where card numbers have no field name
        to be classified by.

        Args:
            field_name_lower: Lower-cased field name, empty for free text
            text: Text to scan
            location: Part of the exchange holding the text

        Returns:
            One finding per non-overlapping match

        """
        if location != Location.URL_PATH and any(
            fragment in field_name_lower for fragment in CARD_FIELD_FRAGMENTS
        ):
            return []

        return [
            _finding(pattern, match, None, location, None)
            for pattern in self._compiled.value_only
            for match in pattern.finditer(text)
        ]
