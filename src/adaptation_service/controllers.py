"""Controllers for dispatcher CLI commands."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from prometheus_client import start_http_server

from adaptation_service.broker.topology import BrokerSession, open_broker_session
from adaptation_service.cluster import ClusterClientFactory, KubernetesClusterClient
from adaptation_service.config import Settings, validate_settings
from adaptation_service.dispatcher.consumer import AdaptationConsumer, ConsumerService
from adaptation_service.dispatcher.coordinator import DispatchCoordinator
from adaptation_service.dispatcher.metrics import MetricsRecorder, PrometheusMetricsRecorder
from adaptation_service.dispatcher.processor import MessageProcessor
from adaptation_service.errors import ConfigurationError


@dataclass(slots=True)
class RunDispatcherCommand:
    """CLI input for the long-running dispatcher."""

    metrics_port: int | None = None


@dataclass(slots=True)
class CheckConfigResult:
    """Validation verdict plus printable lines."""

    success: bool
    lines: list[str]


class DispatcherCliController:
    """Application service behind the adaptation-service CLI."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        environ: Mapping[str, str] | None = None,
        session_opener: Callable[[Settings], BrokerSession] = open_broker_session,
        client_factory: ClusterClientFactory = KubernetesClusterClient.connect,
        metrics_factory: Callable[[], MetricsRecorder] = PrometheusMetricsRecorder,
        metrics_server: Callable[..., Any] = start_http_server,
        service_factory: Callable[..., ConsumerService] = ConsumerService,
    ) -> None:
        self.environ = environ
        self.session_opener = session_opener
        self.client_factory = client_factory
        self.metrics_factory = metrics_factory
        self.metrics_server = metrics_server
        self.service_factory = service_factory

    def run(self, command: RunDispatcherCommand) -> list[str]:
        """Resolve settings, declare topology and consume until stopped."""

        settings = Settings.from_env(self.environ).require_complete()
        metrics = self.metrics_factory()
        metrics_port = (
            command.metrics_port
            if command.metrics_port is not None
            else settings.delivery.metrics_port
        )
        if metrics_port:
            registry = getattr(metrics, "registry", None)
            if registry is None:
                self.metrics_server(metrics_port)
            else:
                self.metrics_server(metrics_port, registry=registry)

        with self.session_opener(settings) as session:
            processor = MessageProcessor(
                coordinator=DispatchCoordinator(
                    settings=settings,
                    client_factory=self.client_factory,
                ),
                metrics=metrics,
                max_redeliveries=settings.delivery.max_redeliveries,
            )
            consumer = AdaptationConsumer(
                channel=session.channel,
                queue_name=session.queue_name,
                processor=processor,
                poll_interval_seconds=settings.delivery.poll_interval_seconds,
            )
            summary = self.service_factory(consumer=consumer).run()

        return [
            "Dispatcher summary: "
            f"processed={summary.processed} acked={summary.acked} "
            f"dropped={summary.dropped} requeued={summary.requeued}",
        ]

    def check_config(self) -> CheckConfigResult:
        """Report missing settings groups, or the resolved non-secret settings."""

        try:
            settings = Settings.from_env(self.environ)
        except ConfigurationError as error:
            return CheckConfigResult(success=False, lines=[f"invalid: {error}"])
        problems = validate_settings(settings)
        if problems:
            return CheckConfigResult(
                success=False,
                lines=[f"missing: {problem.describe()}" for problem in problems],
            )

        worker = settings.worker
        broker = settings.broker
        resources = settings.resources
        delivery = settings.delivery
        return CheckConfigResult(
            success=True,
            lines=[
                f"namespace: {worker.namespace}",
                f"mounts: input={worker.input_mount} output={worker.output_mount}",
                f"worker: image={worker.image} timeout={worker.timeout}",
                f"adaptation-request queue: {broker.adaptation_request.address}",
                f"archive-adaptation-request queue: {broker.archive_adaptation_request.address}",
                f"transaction-event queue: {broker.transaction_event.address}",
                f"broker user: {broker.user}",
                (
                    f"resources: cpu={resources.cpu_request}/{resources.cpu_limit} "
                    f"memory={resources.memory_request}/{resources.memory_limit}"
                ),
                (
                    f"delivery: max_redeliveries={delivery.max_redeliveries} "
                    f"prefetch={delivery.prefetch_count} "
                    f"poll_interval={delivery.poll_interval_seconds}s "
                    f"metrics_port={delivery.metrics_port}"
                ),
            ],
        )
