"""Matching strategies: masking, field/value matching, URL and JSON traversal."""

from waivern_api_pii.matching.field_matcher import CARD_FIELD_FRAGMENTS, FieldMatcher
from waivern_api_pii.matching.json_walker import JsonValue, JsonWalker
from waivern_api_pii.matching.masking import MASK_CHAR, mask_value
from waivern_api_pii.matching.url_analyser import (
    GENERIC_SEGMENT_NAME,
    UrlAnalyser,
    infer_field_name,
)

__all__ = [
    "CARD_FIELD_FRAGMENTS",
    "GENERIC_SEGMENT_NAME",
    "MASK_CHAR",
    "FieldMatcher",
    "JsonValue",
    "JsonWalker",
    "UrlAnalyser",
    "infer_field_name",
    "mask_value",
]
