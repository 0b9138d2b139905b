"""Deterministic acknowledgment policy for dispatch outcomes."""

from __future__ import annotations

from adaptation_service.dispatcher.models import AckDecision, DispatchOutcome

_TRANSIENT_OUTCOMES = frozenset(
    {DispatchOutcome.CLIENT_ACQUISITION_FAILED, DispatchOutcome.SUBMISSION_FAILED},
)


def is_retryable(outcome: DispatchOutcome) -> bool:
    """Whether redelivery could change the outcome."""

    return outcome in _TRANSIENT_OUTCOMES


def decide_acknowledgement(
    outcome: DispatchOutcome,
    *,
    delivery_count: int = 0,
    max_redeliveries: int = 0,
) -> AckDecision:
    """Map a dispatch outcome to an ack, a drop, or a requeue.

    ``max_redeliveries`` of zero leaves transient failures requeued forever.
    A positive cap drops the message once that many previous attempts are
    recorded on it, handing it to dead-lettering when configured.
    """

    if outcome is DispatchOutcome.ACCEPTED:
        return AckDecision(acknowledge=True, requeue=False, reason="accepted")

    if outcome is DispatchOutcome.VALIDATION_FAILED:
        return AckDecision(acknowledge=False, requeue=False, reason="malformed_headers")

    if max_redeliveries > 0 and delivery_count >= max_redeliveries:
        return AckDecision(acknowledge=False, requeue=False, reason="redelivery_limit_reached")

    return AckDecision(acknowledge=False, requeue=True, reason=f"{outcome.value}_transient")
