"""Tests for batch analysis of traffic records."""

import json
import logging
import threading
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest

from waivern_api_pii.analyser import PiiDetector
from waivern_api_pii.batch import BatchOutcome, PiiBatchProcessor, RecordStatus
from waivern_api_pii.config import ApiPiiConfig
from waivern_api_pii.errors import TrafficStoreError
from waivern_api_pii.store import InMemoryTrafficStore, build_document
from waivern_api_pii.types import StoredFinding, TrafficDocument, TrafficRecord

NOW = datetime(2024, 5, 2, 12, 0, tzinfo=UTC)


def _record(endpoint: str, body: dict[str, object] | None = None) -> TrafficRecord:
    return TrafficRecord(
        api_endpoint=endpoint,
        method="POST",
        request_body=json.dumps(body) if body is not None else "",
    )


def _stored(
    endpoint: str, last_analysis: datetime | None, body: dict[str, object]
) -> TrafficDocument:
    return TrafficDocument(
        api_endpoint=endpoint,
        method="POST",
        request_body=json.dumps(body),
        last_pii_analysis=last_analysis,
    )


@pytest.fixture
def processor(
    detector: PiiDetector, traffic_store: InMemoryTrafficStore
) -> PiiBatchProcessor:
    """Processor with a small worker pool and a 24 hour re-analysis interval."""
    return PiiBatchProcessor(
        detector, traffic_store, ApiPiiConfig(max_concurrency=4)
    )


class TestBatchOutcome:
    """Tests for counting record statuses."""

    def test_records_with_pii_count_as_processed(self) -> None:
        """Processed includes the records that carried PII."""
        outcome = BatchOutcome.from_statuses(
            [
                RecordStatus.PROCESSED,
                RecordStatus.WITH_PII,
                RecordStatus.WITH_PII,
                RecordStatus.SKIPPED,
                RecordStatus.FAILED,
                RecordStatus.CANCELLED,
            ]
        )

        assert outcome == BatchOutcome(
            total=6, processed=3, with_pii=2, skipped=1, failed=1, cancelled=1
        )


class TestIngest:
    """Tests for analysing and saving new records."""

    def test_every_record_is_saved(
        self, processor: PiiBatchProcessor, traffic_store: InMemoryTrafficStore
    ) -> None:
        """Clean and PII-carrying records are both persisted."""
        records = [
            _record("/health"),
            _record("/users", {"email": "a@b.com"}),
            _record("/orders", {"quantity": 2}),
        ]

        outcome = processor.ingest(records)

        assert outcome.total == 3
        assert outcome.processed == 3
        assert outcome.with_pii == 1
        assert len(traffic_store.find_all()) == 3
        (document,) = traffic_store.find_with_pii()
        assert document.api_endpoint == "/users"
        assert document.sensitive_fields == ["email"]

    def test_pii_alert_is_logged(
        self, processor: PiiBatchProcessor, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Records with PII raise a warning."""
        with caplog.at_level(logging.WARNING):
            processor.ingest([_record("/users", {"ssn": "123-45-6789"})])

        assert "PII alert: found 1 PII items in POST /users" in caplog.text

    def test_failing_record_does_not_stop_batch(
        self, detector: PiiDetector, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A store failure is logged and counted."""
        store = Mock()
        store.save_record.side_effect = [None, TrafficStoreError("disk full"), None]
        processor = PiiBatchProcessor(detector, store, ApiPiiConfig(max_concurrency=1))

        with caplog.at_level(logging.ERROR):
            outcome = processor.ingest(
                [_record("/a"), _record("/b"), _record("/c")]
            )

        assert outcome.failed == 1
        assert outcome.processed == 2
        assert "Failed to process record POST /b: disk full" in caplog.text

    def test_cancelled_batch_processes_nothing(
        self, processor: PiiBatchProcessor, traffic_store: InMemoryTrafficStore
    ) -> None:
        """A set cancellation event stops every pending record."""
        cancel = threading.Event()
        cancel.set()

        outcome = processor.ingest([_record("/a"), _record("/b")], cancel)

        assert outcome.cancelled == 2
        assert outcome.processed == 0
        assert traffic_store.find_all() == []

    def test_empty_batch(self, processor: PiiBatchProcessor) -> None:
        """No records give an empty outcome."""
        assert processor.ingest([]) == BatchOutcome()


class TestNeedsAnalysis:
    """Tests for the re-analysis interval."""

    def test_never_analysed_record_is_due(self, processor: PiiBatchProcessor) -> None:
        """Records without an analysis timestamp are always due."""
        document = TrafficDocument(api_endpoint="/a", method="GET")

        assert processor.needs_analysis(document, NOW) is True

    def test_recent_analysis_is_not_due(self, processor: PiiBatchProcessor) -> None:
        """Records analysed within the interval are skipped."""
        document = TrafficDocument(
            api_endpoint="/a",
            method="GET",
            last_pii_analysis=NOW - timedelta(hours=23),
        )

        assert processor.needs_analysis(document, NOW) is False

    def test_interval_boundary_is_due(self, processor: PiiBatchProcessor) -> None:
        """A record analysed exactly one interval ago is due."""
        document = TrafficDocument(
            api_endpoint="/a",
            method="GET",
            last_pii_analysis=NOW - timedelta(hours=24),
        )

        assert processor.needs_analysis(document, NOW) is True

    def test_naive_timestamps_are_treated_as_utc(
        self, processor: PiiBatchProcessor
    ) -> None:
        """Timestamps read back without a timezone are UTC."""
        document = TrafficDocument(
            api_endpoint="/a",
            method="GET",
            last_pii_analysis=datetime(2024, 5, 2, 11, 0),
        )

        assert processor.needs_analysis(document, NOW) is False

    def test_falls_back_to_finding_timestamp(
        self, processor: PiiBatchProcessor
    ) -> None:
        """Older documents keep the analysis time on their findings only."""
        finding = StoredFinding(
            pii_type="email",
            masked_value="a@***om",
            location="request_body",
            detection_mode="field_based",
            risk_level="MEDIUM",
            category="CONTACT",
            last_pii_analysis=NOW - timedelta(hours=1),
        )
        document = TrafficDocument(
            api_endpoint="/a", method="GET", pii_findings=[finding]
        )

        assert processor.needs_analysis(document, NOW) is False


class TestRescanExisting:
    """Tests for re-analysing stored records."""

    def test_only_due_records_are_reanalysed(
        self, processor: PiiBatchProcessor, traffic_store: InMemoryTrafficStore
    ) -> None:
        """Recent records are skipped and due records with PII are updated."""
        traffic_store.save_record(
            _stored("/recent", NOW - timedelta(hours=1), {"email": "a@b.com"})
        )
        traffic_store.save_record(_stored("/never", None, {"email": "a@b.com"}))
        traffic_store.save_record(
            _stored("/stale", NOW - timedelta(hours=48), {"quantity": 1})
        )

        outcome = processor.rescan_existing(now=NOW)

        assert outcome.skipped == 1
        assert outcome.processed == 2
        assert outcome.with_pii == 1
        documents = {d.api_endpoint: d for d in traffic_store.find_all()}
        assert documents["/never"].has_pii is True
        assert documents["/never"].pii_findings[0].pii_type == "email"
        assert documents["/recent"].has_pii is False
        assert documents["/stale"].last_pii_analysis == NOW - timedelta(hours=48)

    def test_rescan_keeps_captured_exchange(
        self,
        processor: PiiBatchProcessor,
        traffic_store: InMemoryTrafficStore,
        detector: PiiDetector,
    ) -> None:
        """Updating findings leaves the stored request untouched."""
        record = _record("/users", {"phone": "5551234567"})
        traffic_store.save_record(
            build_document(record, detector.analyse(record)).model_copy(
                update={"last_pii_analysis": NOW - timedelta(days=2)}
            )
        )

        processor.rescan_existing(now=NOW)

        (document,) = traffic_store.find_all()
        assert document.request_body == record.request_body
        assert document.last_pii_analysis is not None
        assert document.last_pii_analysis > NOW - timedelta(days=2)


class TestAnalyseAll:
    """Tests for analysing every stored record without persisting."""

    def test_returns_results_with_pii_in_store_order(
        self, processor: PiiBatchProcessor, traffic_store: InMemoryTrafficStore
    ) -> None:
        """Only records with PII are returned."""
        for endpoint, body in [
            ("/a", {"email": "a@b.com"}),
            ("/b", {"quantity": 1}),
            ("/c", {"ssn": "123-45-6789"}),
        ]:
            traffic_store.save_record(_stored(endpoint, None, body))

        results = processor.analyse_all()

        assert [r.api_endpoint for r in results] == ["/a", "/c"]
        assert all(not d.has_pii for d in traffic_store.find_all())


class TestGenerateReport:
    """Tests for generating and saving compliance reports."""

    def test_report_is_saved(
        self, processor: PiiBatchProcessor, traffic_store: InMemoryTrafficStore
    ) -> None:
        """The generated report becomes the latest report."""
        processor.ingest(
            [
                _record("/users", {"ssn": "123-45-6789"}),
                _record("/health"),
            ]
        )

        report = processor.generate_report()

        assert report.total_analyzed == 2
        assert report.with_pii == 1
        assert report.compliance_percentage == 50.0
        assert [e.api_endpoint for e in report.top_risky_endpoints] == ["/users"]
        assert traffic_store.latest_report() == report

    def test_threshold_comes_from_config(
        self, detector: PiiDetector, traffic_store: InMemoryTrafficStore
    ) -> None:
        """The risky endpoint threshold is configurable."""
        processor = PiiBatchProcessor(
            detector, traffic_store, ApiPiiConfig(risky_endpoint_threshold=20)
        )
        processor.ingest([_record("/users", {"ssn": "123-45-6789"})])

        assert processor.generate_report().top_risky_endpoints == []
