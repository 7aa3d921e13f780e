"""URL analysis: path segment field inference and query parameter matching."""

import logging
import re
from collections.abc import Sequence
from typing import Final
from urllib.parse import parse_qsl, unquote_plus, urlsplit

from waivern_api_pii.matching.field_matcher import FieldMatcher
from waivern_api_pii.types import Finding, Location

logger = logging.getLogger(__name__)

GENERIC_SEGMENT_NAME: Final[str] = "url_path_segment"

# Field name inferred for a path segment from the segment preceding it
_PREVIOUS_SEGMENT_NAMES: Final[dict[str, str]] = {
    "apikey": "apikey",
    "api-key": "apikey",
    "api_key": "apikey",
    "token": "token",
    "access-token": "token",
    "access_token": "token",
    "key": "key",
    "id": "id",
    "userid": "id",
    "user-id": "id",
    "user_id": "id",
    "email": "email",
    "phone": "phone",
    "ssn": "ssn",
    "sin": "sin",
}

_AUTH_SEGMENTS: Final[frozenset[str]] = frozenset({"auth", "authorization"})
_AUTH_KEY_SEGMENTS: Final[frozenset[str]] = frozenset({"apikey", "key"})

# Substring fallbacks, checked in order
_SUBSTRING_NAMES: Final[tuple[tuple[str, str], ...]] = (
    ("key", "apikey"),
    ("token", "token"),
    ("id", "id"),
)

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def infer_field_name(segments: Sequence[str], index: int) -> str:
    """Infer a field name for the path segment at ``index``.

    The name comes from the preceding segment, so ``/users/id/42`` names
    ``42`` as ``id``. The first segment always gets the generic name.

    Args:
        segments: Path split on "/" (a leading empty segment included)
        index: Position of the segment being named

    Returns:
        Inferred field name, or ``url_path_segment`` when nothing fits

    """
    if index <= 0 or index >= len(segments):
        return GENERIC_SEGMENT_NAME

    previous = segments[index - 1].lower()
    if previous in _PREVIOUS_SEGMENT_NAMES:
        return _PREVIOUS_SEGMENT_NAMES[previous]

    if previous in _AUTH_SEGMENTS:
        if (
            index + 1 < len(segments)
            and segments[index + 1].lower() in _AUTH_KEY_SEGMENTS
        ):
            return "apikey"
        return "auth_token"

    for fragment, name in _SUBSTRING_NAMES:
        if fragment in previous:
            return name
    return GENERIC_SEGMENT_NAME


class UrlAnalyser:
    """Finds PII in URL path segments and query parameters."""

    def __init__(self, matcher: FieldMatcher) -> None:
        self._matcher = matcher

    def analyse(self, url: str) -> list[Finding]:
        """Analyse a request URL.

        The URL is percent-decoded first (``+`` decodes to a space). Decode or
        parse failures are logged and the raw string is analysed instead.

        Args:
            url: Full URL or request URI

        Returns:
            Path segment findings followed by query parameter findings

        """
        decoded = self._decode(url)
        try:
            parts = urlsplit(decoded)
            path, query = parts.path, parts.query
        except ValueError as e:
            logger.warning("Error parsing URL %r: %s", decoded, e)
            path, query = decoded, ""

        findings = self._analyse_path(path)
        for key, value in parse_qsl(query, keep_blank_values=True):
            findings.extend(
                self._matcher.match_field(key, value, Location.QUERY_PARAMS)
            )
        return findings

    def _decode(self, url: str) -> str:
        if _MALFORMED_ESCAPE.search(url):
            logger.warning("Error decoding URL %r: malformed percent escape", url)
            return url
        return unquote_plus(url)

    def _analyse_path(self, path: str) -> list[Finding]:
        findings: list[Finding] = []
        segments = path.split("/")
        for index, segment in enumerate(segments):
            if not segment:
                continue
            field_name = infer_field_name(segments, index)
            findings.extend(
                self._matcher.match_field(field_name, segment, Location.URL_PATH)
            )
            if field_name == GENERIC_SEGMENT_NAME:
                findings.extend(
                    finding.model_copy(update={"field_name": f"url_segment_{index}"})
                    for finding in self._matcher.match_value(
                        "", segment, Location.URL_PATH
                    )
                )
        return findings
