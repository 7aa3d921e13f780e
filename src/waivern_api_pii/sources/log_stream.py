"""Traffic records from streamed NGINX access log messages.

Messages are the JSON documents NGINX (njs) writes and Filebeat ships to the
log topic. Fetching them from the broker is left to the caller; this module
decodes, maps and analyses the raw message bytes.
"""

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from waivern_api_pii.analyser import PiiDetector
from waivern_api_pii.batch import BatchOutcome, RecordStatus
from waivern_api_pii.errors import TrafficSourceError, TrafficStoreError
from waivern_api_pii.store import TrafficStore, build_document
from waivern_api_pii.types import TrafficDocument, TrafficRecord

logger = logging.getLogger(__name__)


class LogMessage(BaseModel):
    """Subset of the access log message used for PII analysis."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime | None = Field(default=None, alias="@timestamp")
    method: str = ""
    path: str = ""
    host: str = ""
    time: str | int | float = Field(
        default="", description="Request time as epoch seconds"
    )
    request_headers: dict[str, str] = Field(
        default_factory=dict, alias="requestHeaders"
    )
    response_headers: dict[str, str] = Field(
        default_factory=dict, alias="responseHeaders"
    )
    request_payload: Any = Field(default=None, alias="requestPayload")
    response_payload: Any = Field(default=None, alias="responsePayload")
    source: str = ""
    status_code: str | int = Field(default="", alias="statusCode")


def decode_log_message(raw: bytes | str) -> LogMessage:
    """Decode one raw log message.

    Raises:
        TrafficSourceError: If the message is not a valid log document

    """
    try:
        return LogMessage.model_validate_json(raw)
    except ValidationError as e:
        raise TrafficSourceError(f"Invalid log message: {e}") from e


def _payload_text(payload: Any) -> str:  # noqa: ANN401
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload)


def _request_time(message: LogMessage) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(message.time), UTC)
    except (ValueError, OverflowError, OSError):
        logger.warning(
            "Could not parse request time %r, using the shipper timestamp",
            message.time,
        )
        return message.timestamp


def map_log_message(message: LogMessage) -> TrafficRecord:
    """Convert a log message into a traffic record.

    The host may carry its scheme (``https://api.example.com``); plain hosts
    default to http. The endpoint is the request path without its query.
    """
    scheme = "http"
    host = message.host
    for prefix in ("https://", "http://"):
        if host.startswith(prefix):
            scheme = prefix.removesuffix("://")
            host = host.removeprefix(prefix)
            break

    return TrafficRecord(
        api_endpoint=message.path.partition("?")[0],
        method=message.method,
        url=f"{scheme}://{host}{message.path}",
        headers=message.request_headers,
        request_body=_payload_text(message.request_payload),
        response_body=_payload_text(message.response_payload),
        source=message.source,
        timestamp=_request_time(message),
    )


class LogStreamIngestor:
    """Analyses streamed log messages and saves the enriched records."""

    def __init__(self, detector: PiiDetector, store: TrafficStore) -> None:
        self._detector = detector
        self._store = store

    def process(self, raw: bytes | str) -> TrafficDocument | None:
        """Process one raw message.

        Returns:
            The saved document, or None when the message could not be decoded

        Raises:
            TrafficStoreError: If the document cannot be saved

        """
        try:
            record = map_log_message(decode_log_message(raw))
        except TrafficSourceError as e:
            logger.error("Skipping log message: %s", e)
            return None

        result = self._detector.analyse(record)
        document = build_document(record, result)
        if document.has_pii:
            logger.warning(
                "PII detected in %s %s. Risk: %s, findings: %d",
                document.method,
                document.api_endpoint,
                document.highest_risk,
                document.pii_count,
            )
        self._store.save_record(document)
        return document

    def process_many(self, messages: Iterable[bytes | str]) -> BatchOutcome:
        """Process messages in stream order."""
        statuses: list[RecordStatus] = []
        for raw in messages:
            try:
                document = self.process(raw)
            except TrafficStoreError as e:
                logger.error("Error saving log record: %s", e)
                statuses.append(RecordStatus.FAILED)
                continue
            if document is None:
                statuses.append(RecordStatus.SKIPPED)
            elif document.has_pii:
                statuses.append(RecordStatus.WITH_PII)
            else:
                statuses.append(RecordStatus.PROCESSED)
        return BatchOutcome.from_statuses(statuses)
