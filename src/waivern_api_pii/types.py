"""Data models for API traffic PII analysis."""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Body text recorded upstream when a payload is binary or not valid UTF-8
UNREADABLE_BODY_SENTINEL = "[Invalid UTF-8 or Binary Data]"

# Highest risk label reported for records without findings
NO_RISK = "NONE"

Timestamp = Annotated[
    datetime,
    PlainSerializer(lambda v: v.isoformat(), return_type=str, when_used="json"),
]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Location(str, Enum):
    """Part of the API exchange where a finding was located."""

    REQUEST_HEADERS = "request_headers"
    REQUEST_BODY = "request_body"
    RESPONSE_BODY = "response_body"
    URL_PATH = "url_path"
    QUERY_PARAMS = "query_params"


class DetectionMode(str, Enum):
    """Strategy that produced a finding.

    FIELD_BASED: The field name matched a known field and its value matched
        the pattern's value regex.

    VALUE_ONLY: The raw text matched a regex regardless of any field name.

    KEYWORD_BASED: The field name itself matched a keyword regex.
    """

    FIELD_BASED = "field_based"
    VALUE_ONLY = "value_only"
    KEYWORD_BASED = "keyword_based"


class TrafficRecord(BaseModel):
    """Normalised API exchange produced by a record source."""

    api_endpoint: str = Field(description="Request path (and query) of the API call")
    method: str = Field(description="HTTP method (GET, POST, ...)")
    url: str = Field(default="", description="Full request URL")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Request headers"
    )
    request_body: str = Field(default="", description="Request body text")
    response_body: str = Field(default="", description="Response body text")
    source: str = Field(default="", description="Where the record came from")
    timestamp: Timestamp | None = Field(
        default=None, description="When the exchange was captured"
    )


class Finding(BaseModel):
    """A single detected instance of PII in an API exchange."""

    model_config = ConfigDict(use_enum_values=True)

    pii_type: str = Field(description="Name of the pattern that matched")
    masked_value: str = Field(description="Matched value with its middle masked")
    field_name: str | None = Field(
        default=None, description="Field, header or parameter name the value came from"
    )
    field_path: str | None = Field(
        default=None, description="Dotted/indexed location inside a JSON body"
    )
    location: Location = Field(description="Part of the exchange holding the value")
    detection_mode: DetectionMode = Field(description="Strategy that matched")
    risk_level: str = Field(description="Risk level label from the pattern")
    category: str = Field(description="PII category from the pattern")
    tags: list[str] = Field(default_factory=list, description="Pattern tags")
    timestamp: Timestamp = Field(
        default_factory=utc_now, description="When the finding was produced"
    )


class AnalysisResult(BaseModel):
    """PII analysis outcome for one traffic record."""

    api_endpoint: str
    method: str
    url: str
    findings: list[Finding] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)
    risk_score: int = Field(default=0, ge=0)
    highest_risk: str = NO_RISK
    timestamp: Timestamp = Field(default_factory=utc_now)

    @property
    def has_pii(self) -> bool:
        """Whether any finding was produced."""
        return self.total_count > 0


class StoredFinding(Finding):
    """Persisted finding, carrying the analysis totals of its record."""

    pii_count: int = Field(default=0, ge=0)
    risk_score: int = Field(default=0, ge=0)
    highest_risk: str = NO_RISK
    has_pii: bool = False
    last_pii_analysis: Timestamp | None = None


class TrafficDocument(TrafficRecord):
    """Traffic record enriched with its PII analysis, as persisted."""

    has_pii: bool = False
    pii_count: int = Field(default=0, ge=0)
    risk_score: int = Field(default=0, ge=0)
    highest_risk: str = NO_RISK
    sensitive_fields: list[str] = Field(
        default_factory=list, description="Unique PII types, first-seen order"
    )
    pii_findings: list[StoredFinding] = Field(default_factory=list)
    last_pii_analysis: Timestamp | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the record in a store."""
        return self.api_endpoint, self.method
