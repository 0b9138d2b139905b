from __future__ import annotations

import allure
from prometheus_client import CollectorRegistry

from adaptation_service.dispatcher.metrics import PrometheusMetricsRecorder
from adaptation_service.dispatcher.models import OUTCOME_METRIC_LABELS, DispatchOutcome

pytestmark = [
    allure.epic("Adaptation Dispatcher"),
    allure.feature("Metrics"),
]


def test_outcome_labels_are_fixed() -> None:
    assert OUTCOME_METRIC_LABELS == ("ok", "json_error", "k8s_client_error", "k8s_api_error")
    assert DispatchOutcome.ACCEPTED.metric_label == "ok"
    assert DispatchOutcome.VALIDATION_FAILED.metric_label == "json_error"
    assert DispatchOutcome.CLIENT_ACQUISITION_FAILED.metric_label == "k8s_client_error"
    assert DispatchOutcome.SUBMISSION_FAILED.metric_label == "k8s_api_error"


def test_counter_starts_at_zero_for_every_label() -> None:
    registry = CollectorRegistry()
    PrometheusMetricsRecorder(registry=registry)

    for label in OUTCOME_METRIC_LABELS:
        assert registry.get_sample_value("messages_consumed_total", {"status": label}) == 0.0


def test_count_outcome_increments_only_its_label() -> None:
    registry = CollectorRegistry()
    recorder = PrometheusMetricsRecorder(registry=registry)

    recorder.count_outcome(DispatchOutcome.SUBMISSION_FAILED)
    recorder.count_outcome(DispatchOutcome.SUBMISSION_FAILED)
    recorder.count_outcome(DispatchOutcome.ACCEPTED)

    assert registry.get_sample_value("messages_consumed_total", {"status": "k8s_api_error"}) == 2.0
    assert registry.get_sample_value("messages_consumed_total", {"status": "ok"}) == 1.0
    assert registry.get_sample_value("messages_consumed_total", {"status": "json_error"}) == 0.0


def test_latency_histogram_uses_millisecond_buckets() -> None:
    registry = CollectorRegistry()
    recorder = PrometheusMetricsRecorder(registry=registry)

    recorder.observe_latency(3.0)
    recorder.observe_latency(120.0)

    name = "message_processing_time_millisecond"
    assert registry.get_sample_value(f"{name}_count") == 2.0
    assert registry.get_sample_value(f"{name}_sum") == 123.0
    assert registry.get_sample_value(f"{name}_bucket", {"le": "5.0"}) == 1.0
    assert registry.get_sample_value(f"{name}_bucket", {"le": "100.0"}) == 1.0
    assert registry.get_sample_value(f"{name}_bucket", {"le": "250.0"}) == 2.0
    assert registry.get_sample_value(f"{name}_bucket", {"le": "1000.0"}) == 2.0
