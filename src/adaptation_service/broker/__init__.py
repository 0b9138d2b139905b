"""Broker connection and topology."""

from adaptation_service.broker.topology import (
    EXCHANGE_NAME,
    QUEUE_NAME,
    ROUTING_KEY,
    BrokerSession,
    open_broker_session,
)

__all__ = [
    "EXCHANGE_NAME",
    "QUEUE_NAME",
    "ROUTING_KEY",
    "BrokerSession",
    "open_broker_session",
]
