"""Tests for compliance statistics and reports."""

import pytest

from waivern_api_pii.compliance import (
    ComplianceReport,
    ComplianceStats,
    ComplianceStatus,
    build_report,
    select_risky_endpoints,
    summarise_results,
)
from waivern_api_pii.types import (
    NO_RISK,
    AnalysisResult,
    Finding,
    StoredFinding,
    TrafficDocument,
)


def _stored_finding(
    risk_score: int,
    risk_level: str = "HIGH",
    category: str = "AUTHENTICATION",
    detection_mode: str = "field_based",
    pii_count: int = 1,
) -> StoredFinding:
    return StoredFinding(
        pii_type="api_key",
        masked_value="ab********yz",
        location="request_headers",
        detection_mode=detection_mode,
        risk_level=risk_level,
        category=category,
        pii_count=pii_count,
        risk_score=risk_score,
        highest_risk=risk_level,
        has_pii=True,
    )


def _document(
    endpoint: str, *findings: StoredFinding, method: str = "GET"
) -> TrafficDocument:
    if not findings:
        return TrafficDocument(api_endpoint=endpoint, method=method)
    return TrafficDocument(
        api_endpoint=endpoint,
        method=method,
        has_pii=True,
        pii_count=len(findings),
        risk_score=findings[0].risk_score,
        highest_risk=findings[0].highest_risk,
        pii_findings=list(findings),
    )


class TestComplianceStatus:
    """Tests for classifying compliance percentages."""

    @pytest.mark.parametrize(
        ("percentage", "expected"),
        [
            (100.0, ComplianceStatus.COMPLIANT),
            (95.0, ComplianceStatus.COMPLIANT),
            (94.9, ComplianceStatus.PARTIALLY_COMPLIANT),
            (80.0, ComplianceStatus.PARTIALLY_COMPLIANT),
            (79.9, ComplianceStatus.NON_COMPLIANT),
            (0.0, ComplianceStatus.NON_COMPLIANT),
        ],
    )
    def test_thresholds(self, percentage: float, expected: ComplianceStatus) -> None:
        """95% and 80% are inclusive lower bounds."""
        assert ComplianceStatus.from_percentage(percentage) is expected


class TestComplianceStats:
    """Tests for the aggregate counters."""

    def test_empty_store_is_fully_compliant(self) -> None:
        """No records means 100% compliance."""
        stats = ComplianceStats()

        assert stats.compliance_percentage == 100.0

    def test_percentage_is_share_without_pii(self) -> None:
        """The percentage counts records without PII."""
        stats = ComplianceStats(total_analyzed=20, with_pii=1)

        assert stats.compliance_percentage == 95.0

    def test_from_documents(self) -> None:
        """Counters are computed from stored documents."""
        documents = [
            _document("/a", _stored_finding(10, "CRITICAL"), _stored_finding(10)),
            _document("/b", _stored_finding(5)),
            _document("/c"),
        ]

        stats = ComplianceStats.from_documents(documents)

        assert stats.total_analyzed == 3
        assert stats.with_pii == 2
        assert stats.total_findings == 3
        assert stats.risk_level_counts == {"CRITICAL": 1, "HIGH": 1}


class TestSelectRiskyEndpoints:
    """Tests for picking the risky endpoints of a report."""

    def test_only_scores_above_threshold_are_listed(self) -> None:
        """The threshold is exclusive."""
        documents = [
            _document("/five", _stored_finding(5)),
            _document("/six", _stored_finding(6)),
        ]

        endpoints = select_risky_endpoints(documents, threshold=5)

        assert [e.api_endpoint for e in endpoints] == ["/six"]

    def test_first_finding_above_threshold_represents_record(self) -> None:
        """A record is listed once, through its first risky finding."""
        document = _document(
            "/orders",
            _stored_finding(3, "MEDIUM"),
            _stored_finding(8, "HIGH", pii_count=3),
            _stored_finding(12, "CRITICAL"),
        )

        endpoints = select_risky_endpoints([document])

        assert len(endpoints) == 1
        assert endpoints[0].risk_score == 8
        assert endpoints[0].pii_count == 3
        assert endpoints[0].highest_risk == "HIGH"

    def test_list_keeps_store_order_and_is_truncated(self) -> None:
        """Endpoints are not sorted by score and at most ten are listed."""
        documents = [
            _document(f"/endpoint/{score}", _stored_finding(score))
            for score in range(6, 21)
        ]

        endpoints = select_risky_endpoints(documents)

        assert [e.risk_score for e in endpoints] == list(range(6, 16))


class TestBuildReport:
    """Tests for compliance report generation."""

    def test_report_over_mixed_traffic(self) -> None:
        """Twelve records, three of them risky."""
        documents = [
            _document("/users", _stored_finding(10, "CRITICAL", "IDENTITY")),
            _document("/login", _stored_finding(8)),
            _document(
                "/contacts",
                _stored_finding(3, "MEDIUM", "CONTACT", "value_only"),
            ),
            _document("/cards", _stored_finding(20, "CRITICAL", "FINANCIAL")),
        ]
        stats = ComplianceStats(
            total_analyzed=12,
            with_pii=4,
            total_findings=4,
            risk_level_counts={"CRITICAL": 2, "HIGH": 1, "MEDIUM": 1},
        )

        report = build_report(documents, stats)

        assert report.total_analyzed == 12
        assert report.with_pii == 4
        assert report.compliance_percentage == pytest.approx(66.666, rel=1e-3)
        assert report.compliance_status == ComplianceStatus.NON_COMPLIANT
        assert [e.api_endpoint for e in report.top_risky_endpoints] == [
            "/users",
            "/login",
            "/cards",
        ]
        assert report.risk_level_breakdown == {"CRITICAL": 2, "HIGH": 1, "MEDIUM": 1}
        assert report.category_breakdown == {
            "IDENTITY": 1,
            "AUTHENTICATION": 1,
            "CONTACT": 1,
            "FINANCIAL": 1,
        }
        assert report.detection_mode_breakdown == {"field_based": 3, "value_only": 1}

    def test_report_for_empty_store(self) -> None:
        """An empty store gives a compliant report."""
        report = build_report([], ComplianceStats())

        assert report.compliance_percentage == 100.0
        assert report.compliance_status == ComplianceStatus.COMPLIANT
        assert report.top_risky_endpoints == []

    def test_partially_compliant_boundary(self) -> None:
        """Exactly 80% is partially compliant."""
        report = build_report([], ComplianceStats(total_analyzed=5, with_pii=1))

        assert report.compliance_status == ComplianceStatus.PARTIALLY_COMPLIANT

    def test_custom_threshold_and_limit(self) -> None:
        """Threshold and limit are configurable."""
        documents = [
            _document("/a", _stored_finding(3)),
            _document("/b", _stored_finding(4)),
            _document("/c", _stored_finding(9)),
        ]

        report = build_report(
            documents, ComplianceStats(total_analyzed=3, with_pii=3), 2, 2
        )

        assert [e.api_endpoint for e in report.top_risky_endpoints] == ["/a", "/b"]

    def test_report_round_trips_through_json(self) -> None:
        """Reports serialise with their status as a plain string."""
        report = build_report([], ComplianceStats(total_analyzed=4, with_pii=2))

        data = report.model_dump(mode="json")
        restored = ComplianceReport.model_validate(data)

        assert data["compliance_status"] == "NON_COMPLIANT"
        assert isinstance(data["created_at"], str)
        assert restored.created_at == report.created_at


class TestSummariseResults:
    """Tests for summarising in-process analysis results."""

    def test_summary_counts(self) -> None:
        """Findings are counted per risk level, category and mode."""
        finding = Finding(
            pii_type="email",
            masked_value="a@***om",
            location="request_body",
            detection_mode="field_based",
            risk_level="MEDIUM",
            category="CONTACT",
        )
        results = [
            AnalysisResult(
                api_endpoint="/a",
                method="POST",
                url="",
                findings=[finding, finding],
                total_count=2,
                risk_score=6,
                highest_risk="MEDIUM",
            ),
            AnalysisResult(api_endpoint="/b", method="GET", url=""),
        ]

        summary = summarise_results(results)

        assert summary.total_apis_analyzed == 2
        assert summary.apis_with_pii == 1
        assert summary.total_pii_findings == 2
        assert summary.risk_level_breakdown == {"MEDIUM": 2}
        assert summary.category_breakdown == {"CONTACT": 2}
        assert summary.detection_mode_breakdown == {"field_based": 2}

    def test_empty_summary(self) -> None:
        """No results give an empty summary."""
        summary = summarise_results([])

        assert summary.total_apis_analyzed == 0
        assert summary.apis_with_pii == 0
        assert summary.risk_level_breakdown == {}

    def test_result_without_findings_has_no_risk(self) -> None:
        """Results default to no findings and no risk."""
        result = AnalysisResult(api_endpoint="/", method="GET", url="")

        assert result.has_pii is False
        assert result.highest_risk == NO_RISK
