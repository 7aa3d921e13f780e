"""PII detector for API traffic records."""

import logging

from waivern_api_pii.matching import FieldMatcher, JsonWalker, UrlAnalyser
from waivern_api_pii.patterns import PatternStore
from waivern_api_pii.scoring import RiskScorer
from waivern_api_pii.types import (
    UNREADABLE_BODY_SENTINEL,
    AnalysisResult,
    Finding,
    Location,
    TrafficRecord,
)

logger = logging.getLogger(__name__)


class PiiDetector:
    """Detects PII and SPII in a traffic record.

    Headers, request body, response body and URL are analysed in that order;
    the order of the resulting findings decides the highest-risk tie-break.
    The detector holds no mutable state and may be shared between threads.
    """

    def __init__(self, patterns: PatternStore) -> None:
        """Initialise the detector and its matchers.

        Args:
            patterns: Pattern store shared by every component

        """
        self._patterns = patterns
        self._matcher = FieldMatcher(patterns)
        self._json_walker = JsonWalker(self._matcher)
        self._url_analyser = UrlAnalyser(self._matcher)
        self._scorer = RiskScorer(patterns)

    @property
    def patterns(self) -> PatternStore:
        """Pattern store the detector was built with."""
        return self._patterns

    def analyse(self, record: TrafficRecord) -> AnalysisResult:
        """Analyse one traffic record.

        Args:
            record: Normalised API exchange

        Returns:
            Findings with their count, risk score and highest risk

        """
        findings: list[Finding] = []
        for name, value in record.headers.items():
            findings.extend(
                self._matcher.match_field(name, value, Location.REQUEST_HEADERS)
            )
        findings.extend(self._analyse_body(record.request_body, Location.REQUEST_BODY))
        findings.extend(
            self._analyse_body(record.response_body, Location.RESPONSE_BODY)
        )
        if record.url:
            findings.extend(self._url_analyser.analyse(record.url))

        score = self._scorer.score(findings)
        logger.debug(
            "Analysed %s %s: %d findings, risk score %d",
            record.method,
            record.api_endpoint,
            len(findings),
            score.risk_score,
        )
        return AnalysisResult(
            api_endpoint=record.api_endpoint,
            method=record.method,
            url=record.url,
            findings=findings,
            total_count=len(findings),
            risk_score=score.risk_score,
            highest_risk=score.highest_risk,
        )

    def _analyse_body(self, body: str, location: Location) -> list[Finding]:
        if not body or body == UNREADABLE_BODY_SENTINEL:
            return []
        return self._json_walker.analyse_body(body, location)


def analyse_pii_in_api_data(
    record: TrafficRecord, patterns: PatternStore
) -> AnalysisResult:
    """Analyse a single record with a one-off detector."""
    return PiiDetector(patterns).analyse(record)
