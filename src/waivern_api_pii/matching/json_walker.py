"""Traversal of JSON bodies."""

import json

from waivern_api_pii.matching.field_matcher import FieldMatcher
from waivern_api_pii.types import Finding, Location

type JsonValue = (
    dict[str, JsonValue] | list[JsonValue] | str | int | float | bool | None
)


def _join_key(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


class JsonWalker:
    """Walks parsed JSON documents and matches every string leaf.

    Object members are matched with their key as field name; string elements
    of arrays use the nearest enclosing key. Numbers, booleans and null are
    never matched.
    """

    def __init__(self, matcher: FieldMatcher) -> None:
        self._matcher = matcher

    def analyse_body(self, body: str, location: Location) -> list[Finding]:
        """Analyse a request or response body.

        Bodies that are not valid JSON, or nest too deeply to be parsed, are
        scanned value-only, as there are no field names to anchor field-based
        or keyword-based detection on.

        Args:
            body: Body text
            location: ``request_body`` or ``response_body``

        Returns:
            Findings in document order

        """
        try:
            document: JsonValue = json.loads(body)
        except (ValueError, RecursionError):
            return self._matcher.match_value("", body, location)
        return self.walk(document, "", location)

    def walk(
        self,
        value: JsonValue,
        path_prefix: str,
        location: Location,
        field_name: str | None = None,
    ) -> list[Finding]:
        """Collect findings from a JSON value.

        The traversal keeps an explicit stack, so nesting depth is bounded
        only by memory.

        Args:
            value: Parsed JSON value
            path_prefix: Dotted/indexed path of ``value``, empty at the root
            location: Part of the exchange the document came from
            field_name: Nearest enclosing object key, if any

        Returns:
            Findings in document order

        """
        findings: list[Finding] = []
        # Children are pushed in reverse so they pop in document order
        stack: list[tuple[JsonValue, str, str | None]] = [
            (value, path_prefix, field_name)
        ]
        while stack:
            current, path, name = stack.pop()
            match current:
                case dict():
                    stack.extend(
                        (member, _join_key(path, key), key)
                        for key, member in reversed(current.items())
                    )
                case list():
                    stack.extend(
                        (current[index], f"{path}[{index}]", name)
                        for index in reversed(range(len(current)))
                    )
                case str() if name is not None:
                    findings.extend(
                        self._matcher.match_field(
                            name, current, location, field_path=path
                        )
                    )
                case str():
                    findings.extend(self._matcher.match_value("", current, location))
                case _:
                    pass
        return findings
