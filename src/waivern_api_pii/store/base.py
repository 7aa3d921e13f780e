"""Traffic store interface and document enrichment."""

import abc
from typing import Final

from waivern_api_pii.compliance import ComplianceReport, ComplianceStats
from waivern_api_pii.types import (
    AnalysisResult,
    StoredFinding,
    TrafficDocument,
    TrafficRecord,
)

# Fields replaced when a document is re-analysed
ANALYSIS_FIELDS: Final[tuple[str, ...]] = (
    "has_pii",
    "pii_count",
    "risk_score",
    "highest_risk",
    "sensitive_fields",
    "pii_findings",
    "last_pii_analysis",
)


def build_document(record: TrafficRecord, result: AnalysisResult) -> TrafficDocument:
    """Enrich a traffic record with its analysis result.

    Every stored finding carries the record-level totals, and
    ``sensitive_fields`` lists each PII type once in first-seen order.
    """
    has_pii = result.total_count > 0
    findings = [
        StoredFinding(
            **finding.model_dump(),
            pii_count=result.total_count,
            risk_score=result.risk_score,
            highest_risk=result.highest_risk,
            has_pii=has_pii,
            last_pii_analysis=result.timestamp,
        )
        for finding in result.findings
    ]
    return TrafficDocument(
        **record.model_dump(include=set(TrafficRecord.model_fields)),
        has_pii=has_pii,
        pii_count=result.total_count,
        risk_score=result.risk_score,
        highest_risk=result.highest_risk,
        sensitive_fields=list(dict.fromkeys(f.pii_type for f in result.findings)),
        pii_findings=findings,
        last_pii_analysis=result.timestamp,
    )


class TrafficStore(abc.ABC):
    """Persistence of traffic documents and compliance reports.

    Documents are identified by ``(api_endpoint, method)``. Implementations
    raise ``TrafficStoreError`` subclasses on failure.
    """

    @abc.abstractmethod
    def save_record(self, document: TrafficDocument) -> None:
        """Insert or replace a document."""

    @abc.abstractmethod
    def find_all(self) -> list[TrafficDocument]:
        """Return every stored document."""

    @abc.abstractmethod
    def find_with_pii(self) -> list[TrafficDocument]:
        """Return the documents that carry PII, in store order."""

    @abc.abstractmethod
    def update_findings(
        self, api_endpoint: str, method: str, document: TrafficDocument
    ) -> None:
        """Replace the analysis fields of an existing document.

        Raises:
            RecordNotFoundError: If no document matches the key

        """

    @abc.abstractmethod
    def save_report(self, report: ComplianceReport) -> None:
        """Persist a compliance report snapshot."""

    @abc.abstractmethod
    def latest_report(self) -> ComplianceReport:
        """Return the most recently created report.

        Raises:
            ReportNotFoundError: If no report has been saved

        """

    def compliance_stats(self) -> ComplianceStats:
        """Aggregate counters over every stored document."""
        return ComplianceStats.from_documents(self.find_all())
