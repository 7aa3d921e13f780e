"""PII and SPII detection and risk scoring for captured API traffic."""

from waivern_api_pii.analyser import PiiDetector, analyse_pii_in_api_data
from waivern_api_pii.batch import BatchOutcome, PiiBatchProcessor
from waivern_api_pii.compliance import (
    ComplianceReport,
    ComplianceStats,
    ComplianceStatus,
    ResultsSummary,
    RiskyEndpoint,
    build_report,
    summarise_results,
)
from waivern_api_pii.config import ApiPiiConfig, MongoTrafficStoreConfig
from waivern_api_pii.errors import (
    ApiPiiConfigError,
    ApiPiiError,
    PatternConfigError,
    RecordNotFoundError,
    ReportNotFoundError,
    TrafficSourceError,
    TrafficStoreError,
)
from waivern_api_pii.patterns import PatternStore
from waivern_api_pii.scoring import RiskScore, RiskScorer
from waivern_api_pii.types import (
    NO_RISK,
    UNREADABLE_BODY_SENTINEL,
    AnalysisResult,
    DetectionMode,
    Finding,
    Location,
    StoredFinding,
    TrafficDocument,
    TrafficRecord,
)

__all__ = [
    "NO_RISK",
    "UNREADABLE_BODY_SENTINEL",
    "AnalysisResult",
    "ApiPiiConfig",
    "ApiPiiConfigError",
    "ApiPiiError",
    "BatchOutcome",
    "ComplianceReport",
    "ComplianceStats",
    "ComplianceStatus",
    "DetectionMode",
    "Finding",
    "Location",
    "MongoTrafficStoreConfig",
    "PatternConfigError",
    "PatternStore",
    "PiiBatchProcessor",
    "PiiDetector",
    "RecordNotFoundError",
    "ReportNotFoundError",
    "ResultsSummary",
    "RiskScore",
    "RiskScorer",
    "RiskyEndpoint",
    "StoredFinding",
    "TrafficDocument",
    "TrafficRecord",
    "TrafficSourceError",
    "TrafficStoreError",
    "analyse_pii_in_api_data",
    "build_report",
    "summarise_results",
]
