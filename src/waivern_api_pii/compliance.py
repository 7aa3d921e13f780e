"""Compliance reporting over analysed traffic."""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Final, Self

from pydantic import BaseModel, ConfigDict, Field

from waivern_api_pii.types import (
    AnalysisResult,
    Timestamp,
    TrafficDocument,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_RISKY_ENDPOINT_THRESHOLD: Final[int] = 5
DEFAULT_TOP_RISKY_LIMIT: Final[int] = 10

_COMPLIANT_MIN_PERCENTAGE: Final[float] = 95.0
_PARTIALLY_COMPLIANT_MIN_PERCENTAGE: Final[float] = 80.0


class ComplianceStatus(str, Enum):
    """Overall compliance status derived from the share of PII-free records."""

    COMPLIANT = "COMPLIANT"
    PARTIALLY_COMPLIANT = "PARTIALLY_COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"

    @classmethod
    def from_percentage(cls, compliance_percentage: float) -> "ComplianceStatus":
        """Classify a compliance percentage."""
        if compliance_percentage >= _COMPLIANT_MIN_PERCENTAGE:
            return cls.COMPLIANT
        if compliance_percentage >= _PARTIALLY_COMPLIANT_MIN_PERCENTAGE:
            return cls.PARTIALLY_COMPLIANT
        return cls.NON_COMPLIANT


class ComplianceStats(BaseModel):
    """Aggregate counters provided by the traffic store."""

    total_analyzed: int = Field(default=0, ge=0, description="Records in the store")
    with_pii: int = Field(default=0, ge=0, description="Records with PII")
    total_findings: int = Field(default=0, ge=0, description="Findings over all records")
    risk_level_counts: dict[str, int] = Field(
        default_factory=dict, description="Records per highest risk level"
    )

    @classmethod
    def from_documents(cls, documents: Iterable[TrafficDocument]) -> Self:
        """Compute the counters from stored documents."""
        total = 0
        with_pii = 0
        findings = 0
        risk_levels: Counter[str] = Counter()
        for document in documents:
            total += 1
            if document.has_pii:
                with_pii += 1
                findings += document.pii_count
                risk_levels[document.highest_risk] += 1
        return cls(
            total_analyzed=total,
            with_pii=with_pii,
            total_findings=findings,
            risk_level_counts=dict(risk_levels),
        )

    @property
    def compliance_percentage(self) -> float:
        """Share of records without PII, 100 for an empty store."""
        if self.total_analyzed == 0:
            return 100.0
        return (self.total_analyzed - self.with_pii) / self.total_analyzed * 100


class RiskyEndpoint(BaseModel):
    """Endpoint listed in a report as carrying high-risk PII."""

    model_config = ConfigDict(frozen=True)

    api_endpoint: str
    method: str
    risk_score: int
    pii_count: int
    highest_risk: str


class ComplianceReport(BaseModel):
    """Snapshot of the PII compliance of the analysed traffic."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    total_analyzed: int = Field(ge=0)
    with_pii: int = Field(ge=0)
    total_findings: int = Field(ge=0)
    compliance_percentage: float = Field(ge=0, le=100)
    risk_level_breakdown: dict[str, int] = Field(default_factory=dict)
    category_breakdown: dict[str, int] = Field(default_factory=dict)
    detection_mode_breakdown: dict[str, int] = Field(default_factory=dict)
    top_risky_endpoints: list[RiskyEndpoint] = Field(default_factory=list)
    compliance_status: ComplianceStatus
    created_at: Timestamp = Field(default_factory=utc_now)


class ResultsSummary(BaseModel):
    """Statistics over a set of in-process analysis results."""

    total_apis_analyzed: int = 0
    apis_with_pii: int = 0
    total_pii_findings: int = 0
    risk_level_breakdown: dict[str, int] = Field(default_factory=dict)
    category_breakdown: dict[str, int] = Field(default_factory=dict)
    detection_mode_breakdown: dict[str, int] = Field(default_factory=dict)


def select_risky_endpoints(
    records_with_pii: Sequence[TrafficDocument],
    threshold: int = DEFAULT_RISKY_ENDPOINT_THRESHOLD,
    limit: int = DEFAULT_TOP_RISKY_LIMIT,
) -> list[RiskyEndpoint]:
    """Pick the risky endpoints listed in a report.

    A record is represented by its first stored finding whose risk score
    exceeds ``threshold``. Records keep their input order and the list is cut
    at ``limit``; it is not sorted by score.
    """
    # TODO: sort by risk score before truncating once report consumers no
    # longer rely on store order
    endpoints: list[RiskyEndpoint] = []
    for document in records_with_pii:
        for finding in document.pii_findings:
            if finding.risk_score > threshold:
                endpoints.append(
                    RiskyEndpoint(
                        api_endpoint=document.api_endpoint,
                        method=document.method,
                        risk_score=finding.risk_score,
                        pii_count=finding.pii_count,
                        highest_risk=finding.highest_risk,
                    )
                )
                break
    return endpoints[:limit]


def build_report(
    records_with_pii: Sequence[TrafficDocument],
    stats: ComplianceStats,
    threshold: int = DEFAULT_RISKY_ENDPOINT_THRESHOLD,
    limit: int = DEFAULT_TOP_RISKY_LIMIT,
) -> ComplianceReport:
    """Build a compliance report.

    Args:
        records_with_pii: Stored records that carry PII, in store order
        stats: Aggregate counters from the store
        threshold: Risk score a finding must exceed to mark its endpoint risky
        limit: Maximum number of risky endpoints listed

    Returns:
        Immutable report snapshot

    """
    risk_levels: Counter[str] = Counter()
    categories: Counter[str] = Counter()
    modes: Counter[str] = Counter()
    for document in records_with_pii:
        for finding in document.pii_findings:
            risk_levels[finding.risk_level] += 1
            categories[finding.category] += 1
            modes[finding.detection_mode] += 1

    percentage = stats.compliance_percentage
    report = ComplianceReport(
        total_analyzed=stats.total_analyzed,
        with_pii=stats.with_pii,
        total_findings=stats.total_findings,
        compliance_percentage=percentage,
        risk_level_breakdown=dict(risk_levels),
        category_breakdown=dict(categories),
        detection_mode_breakdown=dict(modes),
        top_risky_endpoints=select_risky_endpoints(records_with_pii, threshold, limit),
        compliance_status=ComplianceStatus.from_percentage(percentage),
    )
    logger.info(
        "Compliance report: %d/%d records with PII (%.1f%% compliant, %s)",
        report.with_pii,
        report.total_analyzed,
        report.compliance_percentage,
        report.compliance_status,
    )
    return report


def summarise_results(results: Sequence[AnalysisResult]) -> ResultsSummary:
    """Summarise analysis results that carry PII."""
    risk_levels: Counter[str] = Counter()
    categories: Counter[str] = Counter()
    modes: Counter[str] = Counter()
    total_findings = 0
    for result in results:
        total_findings += result.total_count
        for finding in result.findings:
            risk_levels[finding.risk_level] += 1
            categories[finding.category] += 1
            modes[finding.detection_mode] += 1

    return ResultsSummary(
        total_apis_analyzed=len(results),
        apis_with_pii=sum(1 for result in results if result.has_pii),
        total_pii_findings=total_findings,
        risk_level_breakdown=dict(risk_levels),
        category_breakdown=dict(categories),
        detection_mode_breakdown=dict(modes),
    )
