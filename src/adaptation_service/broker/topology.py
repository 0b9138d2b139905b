"""RabbitMQ connection and exchange/queue declaration."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import quote

import pika
from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError
from pika.exchange_type import ExchangeType

from adaptation_service.config import Settings
from adaptation_service.errors import BrokerSetupError

logger = logging.getLogger(__name__)

EXCHANGE_NAME = "adaptation-exchange"
QUEUE_NAME = "adaptation-request-queue"
ROUTING_KEY = "adaptation-request"

_T = TypeVar("_T")


@dataclass(slots=True)
class BrokerSession:
    """Open connection and channel with the adaptation topology declared."""

    connection: Any
    channel: BlockingChannel | None
    queue_name: str = QUEUE_NAME

    def close(self) -> None:
        for resource in (self.channel, self.connection):
            if not getattr(resource, "is_open", False):
                continue
            try:
                resource.close()
            except AMQPError:  # pragma: no cover - best effort
                logger.debug("Broker resource close failed", exc_info=True)

    def __enter__(self) -> BrokerSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_amqp_url(settings: Settings) -> str:
    """AMQP URL for the adaptation-request endpoint on the default vhost."""

    broker = settings.broker
    user = quote(broker.user, safe="")
    password = quote(broker.password, safe="")
    return f"amqp://{user}:{password}@{broker.adaptation_request.address}/"


def open_broker_session(
    settings: Settings,
    *,
    connection_factory: Callable[[pika.URLParameters], Any] = pika.BlockingConnection,
) -> BrokerSession:
    """Connect and declare exchange, queue and binding, or raise BrokerSetupError."""

    address = settings.broker.adaptation_request.address
    logger.info("Connecting to %s", address)
    parameters = pika.URLParameters(build_amqp_url(settings))
    connection = _step(f"connect to {address}", lambda: connection_factory(parameters))

    try:
        channel = _step("open a channel", connection.channel)
        _step(
            "declare an exchange",
            lambda: channel.exchange_declare(
                exchange=EXCHANGE_NAME,
                exchange_type=ExchangeType.direct,
                durable=True,
            ),
        )
        _step("declare a queue", lambda: channel.queue_declare(queue=QUEUE_NAME, durable=False))
        _step(
            "bind queue",
            lambda: channel.queue_bind(
                queue=QUEUE_NAME,
                exchange=EXCHANGE_NAME,
                routing_key=ROUTING_KEY,
            ),
        )
        _step(
            "set channel prefetch",
            lambda: channel.basic_qos(prefetch_count=settings.delivery.prefetch_count),
        )
    except BrokerSetupError:
        BrokerSession(connection=connection, channel=None).close()
        raise

    logger.info(
        "Declared exchange %s and bound queue %s with routing key %s",
        EXCHANGE_NAME,
        QUEUE_NAME,
        ROUTING_KEY,
    )
    return BrokerSession(connection=connection, channel=channel)


def _step(step: str, action: Callable[[], _T]) -> _T:
    try:
        return action()
    except (AMQPError, OSError) as error:
        raise BrokerSetupError(step, error) from error
