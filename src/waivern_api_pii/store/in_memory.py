"""In-memory traffic store."""

import threading
from typing import override

from waivern_api_pii.compliance import ComplianceReport
from waivern_api_pii.errors import RecordNotFoundError, ReportNotFoundError
from waivern_api_pii.store.base import ANALYSIS_FIELDS, TrafficStore
from waivern_api_pii.types import TrafficDocument


class InMemoryTrafficStore(TrafficStore):
    """Thread-safe traffic store kept in process memory."""

    def __init__(self) -> None:
        self._documents: dict[tuple[str, str], TrafficDocument] = {}
        self._reports: list[ComplianceReport] = []
        self._lock = threading.Lock()

    @override
    def save_record(self, document: TrafficDocument) -> None:
        with self._lock:
            self._documents[document.key] = document

    @override
    def find_all(self) -> list[TrafficDocument]:
        with self._lock:
            return list(self._documents.values())

    @override
    def find_with_pii(self) -> list[TrafficDocument]:
        with self._lock:
            return [d for d in self._documents.values() if d.has_pii]

    @override
    def update_findings(
        self, api_endpoint: str, method: str, document: TrafficDocument
    ) -> None:
        key = (api_endpoint, method)
        with self._lock:
            existing = self._documents.get(key)
            if existing is None:
                raise RecordNotFoundError(f"No traffic record for {method} {api_endpoint}")
            self._documents[key] = existing.model_copy(
                update={field: getattr(document, field) for field in ANALYSIS_FIELDS}
            )

    @override
    def save_report(self, report: ComplianceReport) -> None:
        with self._lock:
            self._reports.append(report)

    @override
    def latest_report(self) -> ComplianceReport:
        with self._lock:
            if not self._reports:
                raise ReportNotFoundError("No compliance report has been saved")
            return max(self._reports, key=lambda r: r.created_at)
