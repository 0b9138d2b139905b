"""Prometheus metrics for message processing."""

from __future__ import annotations

from typing import Protocol

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from adaptation_service.dispatcher.models import DispatchOutcome

PROCESSING_TIME_METRIC = "message_processing_time_millisecond"
MESSAGES_CONSUMED_METRIC = "messages_consumed_total"
PROCESSING_TIME_BUCKETS = (5, 10, 100, 250, 500, 1000)


class MetricsRecorder(Protocol):
    """Sink for per-message latency and outcome counts."""

    def observe_latency(self, milliseconds: float) -> None:
        """Record one processing duration."""

    def count_outcome(self, outcome: DispatchOutcome) -> None:
        """Increment the counter for one outcome."""


class PrometheusMetricsRecorder:
    """Records processing metrics into a prometheus registry."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = REGISTRY if registry is None else registry
        self.processing_time = Histogram(
            PROCESSING_TIME_METRIC,
            "Time taken to process queue message",
            buckets=PROCESSING_TIME_BUCKETS,
            registry=self.registry,
        )
        # prometheus_client appends the _total suffix on exposition.
        self.messages_consumed = Counter(
            MESSAGES_CONSUMED_METRIC.removesuffix("_total"),
            "Number of messages consumed from the broker",
            labelnames=["status"],
            registry=self.registry,
        )
        for outcome in DispatchOutcome:
            self.messages_consumed.labels(status=outcome.metric_label)

    def observe_latency(self, milliseconds: float) -> None:
        self.processing_time.observe(milliseconds)

    def count_outcome(self, outcome: DispatchOutcome) -> None:
        self.messages_consumed.labels(status=outcome.metric_label).inc()
