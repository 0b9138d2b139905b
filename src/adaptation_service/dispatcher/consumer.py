"""Broker consumption loop and the thread that hosts it."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import pika
from pika.exceptions import AMQPError

from adaptation_service.broker.topology import EXCHANGE_NAME, ROUTING_KEY
from adaptation_service.dispatcher.models import AckDecision, InboundMessage
from adaptation_service.dispatcher.processor import MessageProcessor

logger = logging.getLogger(__name__)

DELIVERY_COUNT_HEADER = "x-delivery-count"
ATTEMPT_HEADER = "x-adaptation-attempt"


@dataclass(slots=True)
class ConsumerRunSummary:
    """Aggregate consumer counters for CLI reporting."""

    processed: int = 0
    acked: int = 0
    dropped: int = 0
    requeued: int = 0


def inbound_message_from_delivery(method: Any, properties: Any) -> InboundMessage:
    """Convert a pika delivery into the dispatcher's message view."""

    headers: Mapping[str, Any] = getattr(properties, "headers", None) or {}
    return InboundMessage(
        headers=dict(headers),
        reply_to=getattr(properties, "reply_to", None),
        delivery_tag=method.delivery_tag,
        redelivered=bool(getattr(method, "redelivered", False)),
        delivery_count=_delivery_count(headers),
    )


class AdaptationConsumer:
    """Feeds deliveries to the message processor one at a time."""

    def __init__(
        self,
        *,
        channel: Any,
        queue_name: str,
        processor: MessageProcessor,
        poll_interval_seconds: float = 1.0,
        exchange_name: str = EXCHANGE_NAME,
        routing_key: str = ROUTING_KEY,
    ) -> None:
        self.channel = channel
        self.queue_name = queue_name
        self.processor = processor
        self.poll_interval_seconds = poll_interval_seconds
        self.exchange_name = exchange_name
        self.routing_key = routing_key

    def run_loop(
        self,
        stop_event: threading.Event,
        *,
        max_messages: int | None = None,
    ) -> ConsumerRunSummary:
        """Consume until the stop event is set or max_messages were handled.

        The stop event is checked between deliveries and on every idle poll,
        so an in-flight dispatch always completes before the loop returns.
        """

        summary = ConsumerRunSummary()
        logger.info("[*] Waiting for messages on %s", self.queue_name)
        deliveries = self.channel.consume(
            self.queue_name,
            auto_ack=False,
            inactivity_timeout=self.poll_interval_seconds,
        )
        try:
            for method, properties, body in deliveries:
                if stop_event.is_set():
                    if method is not None:
                        self.channel.basic_nack(delivery_tag=method.delivery_tag, requeue=True)
                    break
                if method is None:
                    continue

                self._handle_delivery(method, properties, body, summary)
                if max_messages is not None and summary.processed >= max_messages:
                    break
        finally:
            self._cancel_consumer()
        return summary

    def _handle_delivery(
        self,
        method: Any,
        properties: Any,
        body: bytes,
        summary: ConsumerRunSummary,
    ) -> None:
        message = inbound_message_from_delivery(method, properties)
        summary.processed += 1
        try:
            decision = self.processor.process(message).decision
        except Exception:
            logger.exception("Unexpected error while processing delivery %s", message.delivery_tag)
            decision = AckDecision(acknowledge=False, requeue=True, reason="unexpected_error")
        self._settle(message, properties, body, decision, summary)

    def _settle(
        self,
        message: InboundMessage,
        properties: Any,
        body: bytes,
        decision: AckDecision,
        summary: ConsumerRunSummary,
    ) -> None:
        delivery_tag = message.delivery_tag
        if decision.acknowledge:
            self.channel.basic_ack(delivery_tag=delivery_tag)
            summary.acked += 1
            return
        if not decision.requeue:
            self.channel.basic_nack(delivery_tag=delivery_tag, requeue=False)
            summary.dropped += 1
            return

        if self.processor.max_redeliveries > 0:
            self._republish(message, properties, body)
            self.channel.basic_ack(delivery_tag=delivery_tag)
        else:
            self.channel.basic_nack(delivery_tag=delivery_tag, requeue=True)
        summary.requeued += 1

    def _republish(self, message: InboundMessage, properties: Any, body: bytes) -> None:
        """Send a retry copy carrying the next attempt number back through the exchange."""

        headers = dict(message.headers)
        headers[ATTEMPT_HEADER] = message.delivery_count + 1
        retry_properties = pika.BasicProperties(
            headers=headers,
            reply_to=message.reply_to,
            content_type=getattr(properties, "content_type", None),
            correlation_id=getattr(properties, "correlation_id", None),
            delivery_mode=getattr(properties, "delivery_mode", None),
        )
        self.channel.basic_publish(
            exchange=self.exchange_name,
            routing_key=self.routing_key,
            body=body or b"",
            properties=retry_properties,
        )
        logger.info(
            "Republished delivery %s as attempt %s",
            message.delivery_tag,
            headers[ATTEMPT_HEADER],
        )

    def _cancel_consumer(self) -> None:
        if not getattr(self.channel, "is_open", True):
            return
        try:
            self.channel.cancel()
        except AMQPError:
            logger.debug("Consumer cancel failed", exc_info=True)


class ConsumerService:
    """Runs the consumer on a dedicated thread while the main thread waits for a signal."""

    def __init__(
        self,
        *,
        consumer: AdaptationConsumer,
        stop_event: threading.Event | None = None,
        join_interval_seconds: float = 0.5,
    ) -> None:
        self.consumer = consumer
        self.stop_event = stop_event or threading.Event()
        self.join_interval_seconds = join_interval_seconds
        self._summary = ConsumerRunSummary()
        self._error: BaseException | None = None

    def run(self) -> ConsumerRunSummary:
        thread = threading.Thread(target=self._consume, daemon=True, name="adaptation-consumer")
        with self._signal_handlers():
            thread.start()
            logger.info("Consumer thread started. To exit press CTRL+C")
            while thread.is_alive():
                thread.join(timeout=self.join_interval_seconds)
        logger.info("Consumer thread stopped")
        if self._error is not None:
            raise self._error
        return self._summary

    def request_stop(self, *, signal_name: str = "manual") -> None:
        if not self.stop_event.is_set():
            logger.info("Stop requested (%s), draining in-flight message", signal_name)
        self.stop_event.set()

    def _consume(self) -> None:
        try:
            self._summary = self.consumer.run_loop(self.stop_event)
        except BaseException as error:  # noqa: BLE001
            logger.exception("Consumer loop terminated")
            self._error = error
            self.stop_event.set()

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        """Route SIGINT and SIGTERM to ``request_stop`` while the consumer runs."""

        def _handler(signum: int, _frame: object | None) -> None:
            self.request_stop(signal_name=signal.Signals(signum).name)

        previous: dict[signal.Signals, Any] = {}
        try:
            for stop_signal in (signal.SIGINT, signal.SIGTERM):
                previous[stop_signal] = signal.signal(stop_signal, _handler)
        except ValueError:
            # Off the main thread: leave stopping to request_stop callers.
            logger.debug("Signal handlers not installed outside the main thread")
        try:
            yield
        finally:
            for stop_signal, handler in previous.items():
                try:
                    signal.signal(stop_signal, handler)
                except ValueError:
                    logger.debug("Could not restore handler for %s", stop_signal.name)


def _delivery_count(headers: Mapping[str, Any]) -> int:
    """Previous deliveries, from the broker count or our own retry attempt header."""

    counts = [0]
    for name in (DELIVERY_COUNT_HEADER, ATTEMPT_HEADER):
        raw = headers.get(name)
        if isinstance(raw, int) and not isinstance(raw, bool):
            counts.append(raw)
    return max(counts)
