"""Runtime configuration for the adaptation dispatcher."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from adaptation_service.errors import ConfigurationError

DEFAULT_BROKER_USER = "guest"
DEFAULT_BROKER_PASSWORD = "guest"


@dataclass(frozen=True, slots=True)
class QueueEndpoint:
    """Hostname and port of one broker endpoint."""

    hostname: str = ""
    port: str = ""

    @property
    def address(self) -> str:
        return f"{self.hostname}:{self.port}"


@dataclass(frozen=True, slots=True)
class WorkerSettings:
    """Settings forwarded to every worker pod."""

    namespace: str = ""
    input_mount: str = ""
    output_mount: str = ""
    image: str = ""
    timeout: str = ""


@dataclass(frozen=True, slots=True)
class BrokerSettings:
    """Broker endpoints for the three logical queues and shared credentials."""

    adaptation_request: QueueEndpoint = field(default_factory=QueueEndpoint)
    archive_adaptation_request: QueueEndpoint = field(default_factory=QueueEndpoint)
    transaction_event: QueueEndpoint = field(default_factory=QueueEndpoint)
    user: str = DEFAULT_BROKER_USER
    password: str = DEFAULT_BROKER_PASSWORD


@dataclass(frozen=True, slots=True)
class ResourceSettings:
    """CPU and memory sizing for worker pods, in Kubernetes quantity notation."""

    cpu_limit: str = ""
    cpu_request: str = ""
    memory_limit: str = ""
    memory_request: str = ""


@dataclass(frozen=True, slots=True)
class DeliverySettings:
    """Consumer-side delivery tuning."""

    max_redeliveries: int = 0
    prefetch_count: int = 1
    poll_interval_seconds: float = 1.0
    metrics_port: int = 0


@dataclass(frozen=True, slots=True)
class MissingSettings:
    """One incomplete group of related environment variables."""

    group: tuple[str, ...]
    missing: tuple[str, ...]

    def describe(self) -> str:
        if len(self.group) == 1:
            names = self.group[0]
        else:
            names = f"{', '.join(self.group[:-1])} or {self.group[-1]}"
        return f"{names} environment variables not set"


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide settings, resolved once at startup."""

    worker: WorkerSettings = field(default_factory=WorkerSettings)
    broker: BrokerSettings = field(default_factory=BrokerSettings)
    resources: ResourceSettings = field(default_factory=ResourceSettings)
    delivery: DeliverySettings = field(default_factory=DeliverySettings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment without checking completeness."""

        env = os.environ if environ is None else environ

        def get(name: str) -> str:
            return env.get(name, "").strip()

        return cls(
            worker=WorkerSettings(
                namespace=get("POD_NAMESPACE"),
                input_mount=get("INPUT_MOUNT"),
                output_mount=get("OUTPUT_MOUNT"),
                image=get("REQUEST_PROCESSING_IMAGE"),
                timeout=get("REQUEST_PROCESSING_TIMEOUT"),
            ),
            broker=BrokerSettings(
                adaptation_request=QueueEndpoint(
                    hostname=get("ADAPTATION_REQUEST_QUEUE_HOSTNAME"),
                    port=get("ADAPTATION_REQUEST_QUEUE_PORT"),
                ),
                archive_adaptation_request=QueueEndpoint(
                    hostname=(
                        get("ARCHIVE_ADAPTATION_REQUEST_QUEUE_HOSTNAME")
                        or get("ARCHIVE_ADAPTATION_QUEUE_REQUEST_HOSTNAME")
                    ),
                    port=get("ARCHIVE_ADAPTATION_REQUEST_QUEUE_PORT"),
                ),
                transaction_event=QueueEndpoint(
                    hostname=get("TRANSACTION_EVENT_QUEUE_HOSTNAME"),
                    port=get("TRANSACTION_EVENT_QUEUE_PORT"),
                ),
                user=get("MESSAGE_BROKER_USER") or DEFAULT_BROKER_USER,
                password=get("MESSAGE_BROKER_PASSWORD") or DEFAULT_BROKER_PASSWORD,
            ),
            resources=ResourceSettings(
                cpu_limit=get("CPU_LIMIT"),
                cpu_request=get("CPU_REQUEST"),
                memory_limit=get("MEMORY_LIMIT"),
                memory_request=get("MEMORY_REQUEST"),
            ),
            delivery=DeliverySettings(
                max_redeliveries=_env_int(env, "ADAPTATION_MAX_REDELIVERIES", 0, minimum=0),
                prefetch_count=_env_int(env, "ADAPTATION_PREFETCH_COUNT", 1, minimum=1),
                poll_interval_seconds=_env_float(env, "ADAPTATION_POLL_INTERVAL_SECONDS", 1.0),
                metrics_port=_env_int(env, "METRICS_PORT", 0, minimum=0),
            ),
        )

    def require_complete(self) -> Settings:
        """Raise configuration error naming every incomplete settings group."""

        problems = validate_settings(self)
        if problems:
            raise ConfigurationError(
                "init failed: " + "; ".join(problem.describe() for problem in problems),
            )
        return self


def validate_settings(settings: Settings) -> list[MissingSettings]:
    """Return the groups of required settings that have at least one empty member."""

    worker = settings.worker
    broker = settings.broker
    resources = settings.resources
    groups: tuple[tuple[tuple[str, str], ...], ...] = (
        (
            ("POD_NAMESPACE", worker.namespace),
            ("INPUT_MOUNT", worker.input_mount),
            ("OUTPUT_MOUNT", worker.output_mount),
        ),
        (
            ("ADAPTATION_REQUEST_QUEUE_HOSTNAME", broker.adaptation_request.hostname),
            (
                "ARCHIVE_ADAPTATION_REQUEST_QUEUE_HOSTNAME",
                broker.archive_adaptation_request.hostname,
            ),
            ("TRANSACTION_EVENT_QUEUE_HOSTNAME", broker.transaction_event.hostname),
        ),
        (
            ("ADAPTATION_REQUEST_QUEUE_PORT", broker.adaptation_request.port),
            ("ARCHIVE_ADAPTATION_REQUEST_QUEUE_PORT", broker.archive_adaptation_request.port),
            ("TRANSACTION_EVENT_QUEUE_PORT", broker.transaction_event.port),
        ),
        (
            ("CPU_LIMIT", resources.cpu_limit),
            ("CPU_REQUEST", resources.cpu_request),
            ("MEMORY_LIMIT", resources.memory_limit),
            ("MEMORY_REQUEST", resources.memory_request),
        ),
        (
            ("REQUEST_PROCESSING_IMAGE", worker.image),
            ("REQUEST_PROCESSING_TIMEOUT", worker.timeout),
        ),
    )

    problems: list[MissingSettings] = []
    for group in groups:
        missing = tuple(name for name, value in group if not value)
        if missing:
            problems.append(
                MissingSettings(group=tuple(name for name, _ in group), missing=missing),
            )
    return problems


def _env_int(env: Mapping[str, str], name: str, default: int, *, minimum: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as error:
        raise ConfigurationError(f"Invalid integer value for {name}: {raw!r}") from error
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as error:
        raise ConfigurationError(f"Invalid number for {name}: {raw!r}") from error
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0.")
    return value
