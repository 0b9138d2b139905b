"""Per-message pipeline: validate, dispatch, decide acknowledgment, record metrics."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from adaptation_service.dispatcher.acknowledgement import decide_acknowledgement
from adaptation_service.dispatcher.coordinator import DispatchCoordinator
from adaptation_service.dispatcher.metrics import MetricsRecorder
from adaptation_service.dispatcher.models import (
    DispatchOutcome,
    InboundMessage,
    ProcessingResult,
)
from adaptation_service.dispatcher.validator import extract_adaptation_request

logger = logging.getLogger(__name__)

# perf_counter deltas can round to zero on coarse clocks.
MIN_LATENCY_MS = 0.001


class MessageProcessor:
    """Turns one inbound message into a dispatch and an acknowledgment decision."""

    def __init__(
        self,
        *,
        coordinator: DispatchCoordinator,
        metrics: MetricsRecorder,
        max_redeliveries: int = 0,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.coordinator = coordinator
        self.metrics = metrics
        self.max_redeliveries = max_redeliveries
        self._clock = clock

    def process(self, message: InboundMessage) -> ProcessingResult:
        started = self._clock()
        outcome: DispatchOutcome | None = None
        file_id: str | None = None
        error_summary: str | None = None
        try:
            outcome, file_id, error_summary = self._dispatch(message)
        finally:
            latency_ms = max((self._clock() - started) * 1000.0, MIN_LATENCY_MS)
            self.metrics.observe_latency(latency_ms)
            if outcome is not None:
                self.metrics.count_outcome(outcome)

        decision = decide_acknowledgement(
            outcome,
            delivery_count=message.delivery_count,
            max_redeliveries=self.max_redeliveries,
        )
        if error_summary is not None:
            logger.error(
                "Failed to process message: %s (requeue=%s, reason=%s)",
                error_summary,
                decision.requeue,
                decision.reason,
            )
        return ProcessingResult(
            outcome=outcome,
            decision=decision,
            latency_ms=latency_ms,
            file_id=file_id,
            error_summary=error_summary,
        )

    def _dispatch(
        self,
        message: InboundMessage,
    ) -> tuple[DispatchOutcome, str | None, str | None]:
        extracted = extract_adaptation_request(message)
        if extracted.error is not None:
            return DispatchOutcome.VALIDATION_FAILED, None, extracted.error.describe()

        request = extracted.request
        logger.info("Received a message for file: %s", request.file_id)
        result = self.coordinator.dispatch(request)
        return result.outcome, request.file_id, result.error_summary
