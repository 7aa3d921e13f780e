"""Traffic records from HAR (HTTP Archive) captures."""

import base64
import binascii
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated
from urllib.parse import urlsplit

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from waivern_api_pii.errors import TrafficSourceError
from waivern_api_pii.types import UNREADABLE_BODY_SENTINEL, TrafficRecord

logger = logging.getLogger(__name__)

HAR_SOURCE = "HAR File"


def _replace_unencodable(value: object) -> object:
    # Lone surrogates from JSON escapes cannot be encoded as UTF-8
    if isinstance(value, str):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            logger.warning("Invalid UTF-8 detected in HAR body, replacing")
            return UNREADABLE_BODY_SENTINEL
    return value


BodyText = Annotated[str, BeforeValidator(_replace_unencodable)]


class _HarModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HarHeader(_HarModel):
    """Name/value pair of a request or response header."""

    name: str
    value: str = ""


class HarPostData(_HarModel):
    """Request body of a HAR entry."""

    mime_type: str = Field(default="", alias="mimeType")
    text: BodyText = ""


class HarContent(_HarModel):
    """Response body of a HAR entry."""

    size: int = 0
    mime_type: str = Field(default="", alias="mimeType")
    text: BodyText = ""
    encoding: str = ""


class HarRequest(_HarModel):
    """Request of a HAR entry."""

    method: str
    url: str
    headers: list[HarHeader] = Field(default_factory=list)
    post_data: HarPostData | None = Field(default=None, alias="postData")


class HarResponse(_HarModel):
    """Response of a HAR entry."""

    status: int = 0
    headers: list[HarHeader] = Field(default_factory=list)
    content: HarContent | None = None


class HarEntry(_HarModel):
    """One recorded HTTP exchange."""

    started_date_time: str = Field(default="", alias="startedDateTime")
    time: float = 0
    request: HarRequest
    response: HarResponse = Field(default_factory=HarResponse)


class HarLog(_HarModel):
    """Root ``log`` object of a HAR capture."""

    version: str = ""
    entries: list[HarEntry] = Field(default_factory=list)


class _HarFile(_HarModel):
    log: HarLog


def parse_har(path: Path | str) -> HarLog:
    """Read and validate a HAR file.

    Raises:
        TrafficSourceError: If the file cannot be read or is not a HAR capture

    """
    har_path = Path(path)
    try:
        raw = json.loads(har_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise TrafficSourceError(f"Error reading HAR file {har_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise TrafficSourceError(f"Error parsing HAR file {har_path}: {e}") from e

    try:
        return _HarFile.model_validate(raw).log
    except ValidationError as e:
        raise TrafficSourceError(f"Invalid HAR file {har_path}: {e}") from e


def request_uri(url: str) -> str:
    """Return the path and query of a URL, the raw URL if it cannot be parsed."""
    try:
        parts = urlsplit(url)
    except ValueError as e:
        logger.warning("Failed to parse URL %r: %s", url, e)
        return url
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def _parse_started(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Could not parse HAR entry time %r", value)
        return None


def _response_body(entry: HarEntry) -> str:
    content = entry.response.content
    if content is None:
        return ""
    if content.encoding != "base64":
        return content.text

    try:
        decoded = base64.b64decode(content.text, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(
            "Failed to decode base64 response body for %s: %s", entry.request.url, e
        )
        return content.text
    try:
        return decoded.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning(
            "Invalid UTF-8 detected in response body for %s %s, replacing",
            entry.request.method,
            entry.request.url,
        )
        return UNREADABLE_BODY_SENTINEL


def extract_records(har: HarLog) -> list[TrafficRecord]:
    """Convert HAR entries into traffic records.

    Header names are lower-cased; later duplicates win.
    """
    records: list[TrafficRecord] = []
    for entry in har.entries:
        request = entry.request
        request_body = request.post_data.text if request.post_data else ""
        records.append(
            TrafficRecord(
                api_endpoint=request_uri(request.url),
                method=request.method,
                url=request.url,
                headers={h.name.lower(): h.value for h in request.headers},
                request_body=request_body,
                response_body=_response_body(entry),
                source=HAR_SOURCE,
                timestamp=_parse_started(entry.started_date_time),
            )
        )
    logger.info("Extracted %d entries from HAR capture", len(records))
    return records
