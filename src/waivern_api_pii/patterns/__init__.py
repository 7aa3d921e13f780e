"""Detection pattern configuration and compilation."""

from waivern_api_pii.patterns.compiled import (
    CompiledPattern,
    CompiledPatterns,
    FieldPattern,
    KeywordPattern,
    ValuePattern,
    compile_patterns,
)
from waivern_api_pii.patterns.loader import (
    PatternStore,
    PatternStoreStats,
    default_patterns_path,
)
from waivern_api_pii.patterns.models import (
    DetectionModePatterns,
    DetectionModeSet,
    PatternConfigData,
    PatternDefinition,
)

__all__ = [
    "CompiledPattern",
    "CompiledPatterns",
    "DetectionModePatterns",
    "DetectionModeSet",
    "FieldPattern",
    "KeywordPattern",
    "PatternConfigData",
    "PatternDefinition",
    "PatternStore",
    "PatternStoreStats",
    "ValuePattern",
    "compile_patterns",
    "default_patterns_path",
]
