"""Shared fixtures for the API PII analyser tests."""

import logging
from collections.abc import Iterator
from typing import Any

import pytest

from waivern_api_pii.analyser import PiiDetector
from waivern_api_pii.matching import FieldMatcher
from waivern_api_pii.patterns import PatternStore
from waivern_api_pii.store import InMemoryTrafficStore


def _minimal_pattern_document() -> dict[str, Any]:
    document: dict[str, Any] = {
        "detection_modes": {
            "field_based": {
                "patterns": {
                    "email": {
                        "fieldNames": ["email"],
                        "valuePattern": r"^[^@\s]+@[^@\s]+\.[a-z]{2,}$",
                        "riskLevel": "MEDIUM",
                        "category": "CONTACT",
                        "tags": ["pii"],
                    },
                    "contact": {
                        "fieldNames": ["mail"],
                        "valuePattern": r"@",
                        "riskLevel": "LOW",
                        "category": "CONTACT",
                        "tags": ["pii"],
                    },
                }
            },
            "value_only": {
                "patterns": {
                    "card": {
                        "regexPattern": r"\b4\d{15}\b",
                        "riskLevel": "CRITICAL",
                        "category": "FINANCIAL",
                        "tags": ["pci"],
                    },
                    "email": {
                        "regexPattern": r"[\w.+-]+@[\w-]+\.[a-z]{2,}",
                        "riskLevel": "MEDIUM",
                        "category": "CONTACT",
                        "tags": ["pii"],
                    },
                }
            },
            "keyword_based": {
                "patterns": {
                    "session": {
                        "regexPattern": "(?i)session",
                        "riskLevel": "MEDIUM",
                        "category": "AUTHENTICATION",
                        "tags": ["session"],
                    },
                    "token": {
                        "regexPattern": "(?i)token",
                        "riskLevel": "HIGH",
                        "category": "AUTHENTICATION",
                        "tags": ["secret"],
                    },
                }
            },
        },
        "risk_levels": {"LOW": 1, "MEDIUM": 3, "HIGH": 5, "CRITICAL": 10},
        "categories": ["CONTACT", "FINANCIAL", "AUTHENTICATION"],
    }
    return document


@pytest.fixture(scope="session")
def default_patterns() -> PatternStore:
    """Pattern store loaded from the bundled pattern document."""
    return PatternStore.load()


@pytest.fixture
def pattern_document() -> dict[str, Any]:
    """Small, valid pattern document; each test gets its own copy."""
    return _minimal_pattern_document()


@pytest.fixture
def minimal_patterns(pattern_document: dict[str, Any]) -> PatternStore:
    """Pattern store built from the small focused document."""
    return PatternStore.from_dict(pattern_document)


@pytest.fixture
def detector(default_patterns: PatternStore) -> PiiDetector:
    """Detector over the bundled patterns."""
    return PiiDetector(default_patterns)


@pytest.fixture
def matcher(default_patterns: PatternStore) -> FieldMatcher:
    """Field matcher over the bundled patterns."""
    return FieldMatcher(default_patterns)


@pytest.fixture
def traffic_store() -> InMemoryTrafficStore:
    """Empty in-memory traffic store."""
    return InMemoryTrafficStore()


@pytest.fixture(autouse=True)
def restore_package_logger() -> Iterator[None]:
    """Undo logging configuration applied by commands under test."""
    package_logger = logging.getLogger("waivern_api_pii")
    level, propagate = package_logger.level, package_logger.propagate
    handlers = list(package_logger.handlers)
    yield
    package_logger.setLevel(level)
    package_logger.propagate = propagate
    package_logger.handlers[:] = handlers
