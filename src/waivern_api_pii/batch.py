"""Batch analysis of traffic records in a bounded worker pool."""

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from waivern_api_pii.analyser import PiiDetector
from waivern_api_pii.compliance import ComplianceReport, build_report
from waivern_api_pii.config import ApiPiiConfig
from waivern_api_pii.store import TrafficStore, build_document
from waivern_api_pii.types import (
    AnalysisResult,
    TrafficDocument,
    TrafficRecord,
    utc_now,
)

logger = logging.getLogger(__name__)


class RecordStatus(Enum):
    """Outcome of processing one record in a batch."""

    PROCESSED = "processed"
    WITH_PII = "with_pii"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BatchOutcome:
    """Counters of a finished batch."""

    total: int = 0
    processed: int = 0
    with_pii: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: int = 0

    @classmethod
    def from_statuses(cls, statuses: Sequence[RecordStatus]) -> "BatchOutcome":
        """Count record statuses."""
        with_pii = statuses.count(RecordStatus.WITH_PII)
        return cls(
            total=len(statuses),
            processed=statuses.count(RecordStatus.PROCESSED) + with_pii,
            with_pii=with_pii,
            skipped=statuses.count(RecordStatus.SKIPPED),
            failed=statuses.count(RecordStatus.FAILED),
            cancelled=statuses.count(RecordStatus.CANCELLED),
        )


def _as_utc(value: datetime) -> datetime:
    # MongoDB returns naive datetimes in UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class PiiBatchProcessor:
    """Runs the detector over sets of records and persists the results.

    Records are analysed concurrently; the order of findings within a record
    is kept while the order across records is not significant. A failing
    record is logged and counted, and the batch carries on. Every operation
    accepts a ``threading.Event`` that stops the batch before the next record.
    """

    def __init__(
        self,
        detector: PiiDetector,
        store: TrafficStore,
        config: ApiPiiConfig | None = None,
    ) -> None:
        """Initialise the processor.

        Args:
            detector: Shared PII detector
            store: Store records and reports are persisted to
            config: Batch settings, defaults when omitted

        """
        self._detector = detector
        self._store = store
        self._config = config or ApiPiiConfig()

    @property
    def detector(self) -> PiiDetector:
        """Detector used for every record."""
        return self._detector

    def ingest(
        self,
        records: Sequence[TrafficRecord],
        cancel: threading.Event | None = None,
    ) -> BatchOutcome:
        """Analyse new records and save them enriched with their findings.

        Args:
            records: Records extracted from a capture
            cancel: Optional cancellation signal

        Returns:
            Counters of the batch

        """

        def ingest_one(record: TrafficRecord) -> RecordStatus:
            result = self._detector.analyse(record)
            self._store.save_record(build_document(record, result))
            if not result.has_pii:
                return RecordStatus.PROCESSED
            logger.warning(
                "PII alert: found %d PII items in %s %s (risk: %s, score: %d)",
                result.total_count,
                record.method,
                record.api_endpoint,
                result.highest_risk,
                result.risk_score,
            )
            return RecordStatus.WITH_PII

        outcome = BatchOutcome.from_statuses(self._run(records, ingest_one, cancel))
        logger.info(
            "Ingest complete: %d saved, %d failed, %d with PII",
            outcome.processed,
            outcome.failed,
            outcome.with_pii,
        )
        return outcome

    def needs_analysis(self, document: TrafficDocument, now: datetime) -> bool:
        """Whether a stored record is due for re-analysis."""
        last_analysis = document.last_pii_analysis
        if last_analysis is None:
            last_analysis = next(
                (
                    f.last_pii_analysis
                    for f in document.pii_findings
                    if f.last_pii_analysis is not None
                ),
                None,
            )
        if last_analysis is None:
            return True
        interval = timedelta(hours=self._config.reanalysis_interval_hours)
        return _as_utc(now) - _as_utc(last_analysis) >= interval

    def rescan_existing(
        self,
        now: datetime | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchOutcome:
        """Re-analyse stored records that are due for analysis.

        Only records with findings are written back.

        Args:
            now: Reference time for the re-analysis interval, current time if None
            cancel: Optional cancellation signal

        Returns:
            Counters of the batch

        """
        reference = now or utc_now()
        documents = self._store.find_all()
        logger.info("Starting PII analysis for %d stored records", len(documents))

        def rescan_one(document: TrafficDocument) -> RecordStatus:
            if not self.needs_analysis(document, reference):
                return RecordStatus.SKIPPED
            result = self._detector.analyse(document)
            if not result.has_pii:
                return RecordStatus.PROCESSED
            self._store.update_findings(
                document.api_endpoint,
                document.method,
                build_document(document, result),
            )
            return RecordStatus.WITH_PII

        outcome = BatchOutcome.from_statuses(self._run(documents, rescan_one, cancel))
        logger.info(
            "PII analysis complete. Processed: %d, found PII in: %d records",
            outcome.processed,
            outcome.with_pii,
        )
        return outcome

    def analyse_all(
        self, cancel: threading.Event | None = None
    ) -> list[AnalysisResult]:
        """Analyse every stored record without persisting.

        Returns:
            Results of the records with PII, in store order

        """
        documents = self._store.find_all()
        results: list[AnalysisResult | None] = [None] * len(documents)

        def analyse_one(indexed: tuple[int, TrafficDocument]) -> RecordStatus:
            index, document = indexed
            result = self._detector.analyse(document)
            if not result.has_pii:
                return RecordStatus.PROCESSED
            results[index] = result
            return RecordStatus.WITH_PII

        self._run(list(enumerate(documents)), analyse_one, cancel)
        with_pii = [result for result in results if result is not None]
        logger.info(
            "PII analysis complete. Found PII in %d/%d records",
            len(with_pii),
            len(documents),
        )
        return with_pii

    def generate_report(self) -> ComplianceReport:
        """Build a compliance report from the store and save it."""
        logger.info("Generating PII compliance report")
        report = build_report(
            self._store.find_with_pii(),
            self._store.compliance_stats(),
            threshold=self._config.risky_endpoint_threshold,
            limit=self._config.top_risky_limit,
        )
        self._store.save_report(report)
        return report

    def _run[T](
        self,
        items: Sequence[T],
        work: Callable[[T], RecordStatus],
        cancel: threading.Event | None,
    ) -> list[RecordStatus]:
        def guarded(item: T) -> RecordStatus:
            if cancel is not None and cancel.is_set():
                return RecordStatus.CANCELLED
            try:
                return work(item)
            except Exception as e:
                logger.error("Failed to process record %s: %s", _describe(item), e)
                return RecordStatus.FAILED

        if not items:
            return []
        with ThreadPoolExecutor(max_workers=self._config.max_concurrency) as pool:
            return list(pool.map(guarded, items))


def _describe(item: object) -> str:
    if isinstance(item, tuple):
        item = item[-1]
    if isinstance(item, TrafficRecord):
        return f"{item.method} {item.api_endpoint}"
    return repr(item)
