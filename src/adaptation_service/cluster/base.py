"""Cluster client interface used by the dispatch coordinator."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from adaptation_service.dispatcher.models import DispatchRequest


class ClusterClient(Protocol):
    """Protocol implemented by cluster orchestration clients."""

    def create_worker(self, request: DispatchRequest) -> str:
        """Submit one worker and return its name."""


ClusterClientFactory = Callable[[str], ClusterClient]
