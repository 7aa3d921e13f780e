"""Sources of traffic records: HAR captures and streamed access logs."""

from waivern_api_pii.sources.har import (
    HAR_SOURCE,
    HarLog,
    extract_records,
    parse_har,
    request_uri,
)
from waivern_api_pii.sources.log_stream import (
    LogMessage,
    LogStreamIngestor,
    decode_log_message,
    map_log_message,
)

__all__ = [
    "HAR_SOURCE",
    "HarLog",
    "LogMessage",
    "LogStreamIngestor",
    "decode_log_message",
    "extract_records",
    "map_log_message",
    "parse_har",
    "request_uri",
]
