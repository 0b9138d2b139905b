"""Shared test fixtures."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterator
from typing import Any

import pika
import pytest

from adaptation_service.config import Settings
from adaptation_service.dispatcher.models import DispatchOutcome, DispatchRequest

COMPLETE_ENV = {
    "POD_NAMESPACE": "icap-adaptation",
    "INPUT_MOUNT": "/var/source",
    "OUTPUT_MOUNT": "/var/target",
    "REQUEST_PROCESSING_IMAGE": "glasswall/rebuild:1.0",
    "REQUEST_PROCESSING_TIMEOUT": "00:01:00",
    "ADAPTATION_REQUEST_QUEUE_HOSTNAME": "rabbitmq-service",
    "ADAPTATION_REQUEST_QUEUE_PORT": "5672",
    "ARCHIVE_ADAPTATION_REQUEST_QUEUE_HOSTNAME": "rabbitmq-archive",
    "ARCHIVE_ADAPTATION_REQUEST_QUEUE_PORT": "5673",
    "TRANSACTION_EVENT_QUEUE_HOSTNAME": "rabbitmq-events",
    "TRANSACTION_EVENT_QUEUE_PORT": "5674",
    "CPU_LIMIT": "1",
    "CPU_REQUEST": "250m",
    "MEMORY_LIMIT": "1000Mi",
    "MEMORY_REQUEST": "250Mi",
}

VALID_HEADERS = {
    "file-id": "abc",
    "source-file-location": "/in/abc",
    "rebuilt-file-location": "/out/abc",
}


class RecordingMetricsRecorder:
    """Metrics recorder that keeps every observation in memory."""

    def __init__(self) -> None:
        self.latencies: list[float] = []
        self.outcomes: Counter[str] = Counter()

    def observe_latency(self, milliseconds: float) -> None:
        self.latencies.append(milliseconds)

    def count_outcome(self, outcome: DispatchOutcome) -> None:
        self.outcomes[outcome.metric_label] += 1


class FakeClusterClient:
    """Cluster client that records submissions or fails on demand."""

    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.requests: list[DispatchRequest] = []

    def create_worker(self, request: DispatchRequest) -> str:
        if self.error is not None:
            raise self.error
        self.requests.append(request)
        return f"rebuild-{len(self.requests)}"


class FakeChannel:
    """Blocking-channel stand-in that replays deliveries then reports idle polls."""

    def __init__(self, deliveries: list[tuple[Any, Any, bytes]], *, idle_polls: int = 1) -> None:
        self.deliveries = list(deliveries)
        self.idle_polls = idle_polls
        self.acks: list[int] = []
        self.nacks: list[tuple[int, bool]] = []
        self.published: list[tuple[str, str, Any]] = []
        self.consume_kwargs: dict[str, Any] = {}
        self.cancelled = False
        self.is_open = True

    def consume(self, queue: str, **kwargs: Any) -> Iterator[tuple[Any, Any, Any]]:
        self.consume_kwargs = {"queue": queue, **kwargs}
        yield from self.deliveries
        for _ in range(self.idle_polls):
            yield None, None, None

    def basic_ack(self, delivery_tag: int) -> None:
        self.acks.append(delivery_tag)

    def basic_nack(self, delivery_tag: int, requeue: bool = True) -> None:
        self.nacks.append((delivery_tag, requeue))

    def basic_publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        properties: pika.BasicProperties | None = None,
    ) -> None:
        """Record the publish and route it back as a fresh delivery on the same queue."""

        self.published.append((exchange, routing_key, properties))
        method = pika.spec.Basic.Deliver(
            consumer_tag="ctag",
            delivery_tag=1000 + len(self.published),
            redelivered=False,
            exchange=exchange,
            routing_key=routing_key,
        )
        self.deliveries.append((method, properties, body))

    def cancel(self) -> int:
        self.cancelled = True
        return 0

    def close(self) -> None:
        self.is_open = False


def make_delivery(
    delivery_tag: int,
    headers: dict[str, Any] | None,
    *,
    reply_to: str | None = None,
    redelivered: bool = False,
) -> tuple[pika.spec.Basic.Deliver, pika.BasicProperties, bytes]:
    method = pika.spec.Basic.Deliver(
        consumer_tag="ctag",
        delivery_tag=delivery_tag,
        redelivered=redelivered,
        exchange="adaptation-exchange",
        routing_key="adaptation-request",
    )
    properties = pika.BasicProperties(headers=headers, reply_to=reply_to)
    return method, properties, b""


@pytest.fixture()
def complete_env() -> dict[str, str]:
    return dict(COMPLETE_ENV)


@pytest.fixture()
def settings(complete_env: dict[str, str]) -> Settings:
    return Settings.from_env(complete_env).require_complete()


@pytest.fixture()
def metrics_recorder() -> RecordingMetricsRecorder:
    return RecordingMetricsRecorder()


@pytest.fixture()
def cluster_client() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture()
def valid_headers() -> dict[str, str]:
    return dict(VALID_HEADERS)


@pytest.fixture()
def delivery_factory() -> Callable[..., tuple[Any, Any, bytes]]:
    return make_delivery


@pytest.fixture()
def channel_factory() -> Callable[..., FakeChannel]:
    return FakeChannel


@pytest.fixture()
def failing_cluster_client_factory() -> Callable[[Exception], FakeClusterClient]:
    return lambda error: FakeClusterClient(error=error)
