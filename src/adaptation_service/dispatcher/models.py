"""Domain models for message dispatch."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from adaptation_service.config import Settings

FILE_ID_HEADER = "file-id"
SOURCE_FILE_LOCATION_HEADER = "source-file-location"
REBUILT_FILE_LOCATION_HEADER = "rebuilt-file-location"
GENERATE_REPORT_HEADER = "generate-report"
REQUIRED_HEADERS = (
    FILE_ID_HEADER,
    SOURCE_FILE_LOCATION_HEADER,
    REBUILT_FILE_LOCATION_HEADER,
)
DEFAULT_GENERATE_REPORT = "false"


class DispatchOutcome(str, Enum):
    """Result of handling one inbound message."""

    ACCEPTED = "accepted"
    VALIDATION_FAILED = "validation_failed"
    CLIENT_ACQUISITION_FAILED = "client_acquisition_failed"
    SUBMISSION_FAILED = "submission_failed"

    @property
    def metric_label(self) -> str:
        return _METRIC_LABELS[self]


_METRIC_LABELS = {
    DispatchOutcome.ACCEPTED: "ok",
    DispatchOutcome.VALIDATION_FAILED: "json_error",
    DispatchOutcome.CLIENT_ACQUISITION_FAILED: "k8s_client_error",
    DispatchOutcome.SUBMISSION_FAILED: "k8s_api_error",
}
OUTCOME_METRIC_LABELS: tuple[str, ...] = tuple(_METRIC_LABELS.values())


class HeaderErrorKind(str, Enum):
    """Why a header failed validation."""

    MISSING = "missing"
    WRONG_TYPE = "wrong_type"


@dataclass(frozen=True, slots=True)
class HeaderError:
    """Structural problem with one message header."""

    kind: HeaderErrorKind
    header: str
    actual_type: str | None = None

    def describe(self) -> str:
        if self.kind is HeaderErrorKind.MISSING:
            return f"Header {self.header!r} is missing"
        return f"Header {self.header!r} must be a string, got {self.actual_type}"


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """Broker delivery reduced to what the dispatcher reads."""

    headers: Mapping[str, Any] = field(default_factory=dict)
    reply_to: str | None = None
    delivery_tag: int = 0
    redelivered: bool = False
    delivery_count: int = 0


@dataclass(frozen=True, slots=True)
class AdaptationRequest:
    """Typed per-message fields extracted from headers."""

    file_id: str
    source_file_location: str
    rebuilt_file_location: str
    generate_report: str = DEFAULT_GENERATE_REPORT
    reply_to: str = ""


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Either an adaptation request or the first header error found."""

    request: AdaptationRequest | None = None
    error: HeaderError | None = None

    def __post_init__(self) -> None:
        if (self.request is None) == (self.error is None):
            raise ValueError("ExtractionResult needs exactly one of request or error.")

    @property
    def ok(self) -> bool:
        return self.request is not None


@dataclass(frozen=True, slots=True)
class DispatchRequest:
    """Everything the cluster client needs to launch one worker."""

    settings: Settings
    request: AdaptationRequest

    @property
    def namespace(self) -> str:
        return self.settings.worker.namespace

    @property
    def file_id(self) -> str:
        return self.request.file_id

    def worker_environment(self) -> dict[str, str]:
        """Environment variables handed to the worker container."""

        broker = self.settings.broker
        return {
            "FILE_ID": self.request.file_id,
            "INPUT_PATH": self.request.source_file_location,
            "OUTPUT_PATH": self.request.rebuilt_file_location,
            "GENERATE_REPORT": self.request.generate_report,
            "REPLY_TO": self.request.reply_to,
            "REQUEST_PROCESSING_TIMEOUT": self.settings.worker.timeout,
            "ADAPTATION_REQUEST_QUEUE_HOSTNAME": broker.adaptation_request.hostname,
            "ADAPTATION_REQUEST_QUEUE_PORT": broker.adaptation_request.port,
            "ARCHIVE_ADAPTATION_REQUEST_QUEUE_HOSTNAME": (
                broker.archive_adaptation_request.hostname
            ),
            "ARCHIVE_ADAPTATION_REQUEST_QUEUE_PORT": broker.archive_adaptation_request.port,
            "TRANSACTION_EVENT_QUEUE_HOSTNAME": broker.transaction_event.hostname,
            "TRANSACTION_EVENT_QUEUE_PORT": broker.transaction_event.port,
            "MESSAGE_BROKER_USER": broker.user,
            "MESSAGE_BROKER_PASSWORD": broker.password,
        }


@dataclass(frozen=True, slots=True)
class AckDecision:
    """How the consumer must settle one delivery with the broker."""

    acknowledge: bool
    requeue: bool
    reason: str


@dataclass(frozen=True, slots=True)
class ProcessingResult:
    """Outcome of the per-message pipeline."""

    outcome: DispatchOutcome
    decision: AckDecision
    latency_ms: float
    file_id: str | None = None
    error_summary: str | None = None
