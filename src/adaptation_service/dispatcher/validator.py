"""Structural validation of inbound message headers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from adaptation_service.dispatcher.models import (
    DEFAULT_GENERATE_REPORT,
    FILE_ID_HEADER,
    GENERATE_REPORT_HEADER,
    REBUILT_FILE_LOCATION_HEADER,
    REQUIRED_HEADERS,
    SOURCE_FILE_LOCATION_HEADER,
    AdaptationRequest,
    ExtractionResult,
    HeaderError,
    HeaderErrorKind,
    InboundMessage,
)


def extract_adaptation_request(message: InboundMessage) -> ExtractionResult:
    """Extract typed request fields, or report the first malformed header.

    Required headers must be present and hold strings. ``generate-report`` is
    optional and defaults to ``"false"``. AMQP tables may carry long strings
    as bytes, so UTF-8 bytes are accepted as strings.
    """

    headers = message.headers or {}
    values: dict[str, str] = {}
    for header in REQUIRED_HEADERS:
        value, error = _string_header(headers, header)
        if error is not None:
            return ExtractionResult(error=error)
        values[header] = value

    generate_report = DEFAULT_GENERATE_REPORT
    if headers.get(GENERATE_REPORT_HEADER) is not None:
        value, error = _string_header(headers, GENERATE_REPORT_HEADER)
        if error is not None:
            return ExtractionResult(error=error)
        generate_report = value

    return ExtractionResult(
        request=AdaptationRequest(
            file_id=values[FILE_ID_HEADER],
            source_file_location=values[SOURCE_FILE_LOCATION_HEADER],
            rebuilt_file_location=values[REBUILT_FILE_LOCATION_HEADER],
            generate_report=generate_report,
            reply_to=message.reply_to or "",
        ),
    )


def _string_header(headers: Mapping[str, Any], header: str) -> tuple[str, HeaderError | None]:
    value = headers.get(header)
    if value is None:
        return "", HeaderError(kind=HeaderErrorKind.MISSING, header=header)
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8"), None
        except UnicodeDecodeError:
            return "", HeaderError(
                kind=HeaderErrorKind.WRONG_TYPE,
                header=header,
                actual_type="bytes",
            )
    if not isinstance(value, str):
        return "", HeaderError(
            kind=HeaderErrorKind.WRONG_TYPE,
            header=header,
            actual_type=type(value).__name__,
        )
    return value, None
