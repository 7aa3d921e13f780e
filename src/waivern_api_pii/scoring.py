"""Risk scoring of finding sets."""

from collections.abc import Sequence
from typing import NamedTuple

from waivern_api_pii.patterns import PatternStore
from waivern_api_pii.types import NO_RISK, Finding


class RiskScore(NamedTuple):
    """Total weight of a finding set and its highest risk label."""

    risk_score: int
    highest_risk: str


class RiskScorer:
    """Reduces findings to a risk score using the configured level weights."""

    def __init__(self, patterns: PatternStore) -> None:
        self._patterns = patterns

    def score(self, findings: Sequence[Finding]) -> RiskScore:
        """Score a finding set.

        The score is the sum of the weights of every finding; unknown risk
        levels weigh 0. The highest risk is the level of the first finding
        holding the largest single weight.

        Args:
            findings: Findings in scan order

        Returns:
            ``RiskScore(0, "NONE")`` for an empty set

        """
        if not findings:
            return RiskScore(0, NO_RISK)

        total = 0
        highest_risk = findings[0].risk_level
        max_weight = -1
        for finding in findings:
            weight = self._patterns.weight(finding.risk_level)
            total += weight
            if weight > max_weight:
                max_weight = weight
                highest_risk = finding.risk_level
        return RiskScore(total, highest_risk)
