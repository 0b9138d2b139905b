"""Builds dispatch requests and submits them to the cluster."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from adaptation_service.cluster.base import ClusterClientFactory
from adaptation_service.config import Settings
from adaptation_service.dispatcher.models import (
    AdaptationRequest,
    DispatchOutcome,
    DispatchRequest,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Dispatch outcome with the failure text when there is one."""

    outcome: DispatchOutcome
    worker_name: str | None = None
    error_summary: str | None = None


class DispatchCoordinator:
    """Acquires a cluster client and submits one worker per request."""

    def __init__(self, *, settings: Settings, client_factory: ClusterClientFactory) -> None:
        self.settings = settings
        self.client_factory = client_factory

    def build_dispatch_request(self, request: AdaptationRequest) -> DispatchRequest:
        return DispatchRequest(settings=self.settings, request=request)

    def dispatch(self, request: AdaptationRequest) -> DispatchResult:
        dispatch_request = self.build_dispatch_request(request)

        try:
            cluster_client = self.client_factory(dispatch_request.namespace)
        except Exception as error:  # noqa: BLE001
            summary = f"Failed to get client for cluster: {error}"
            logger.warning("%s (file %s)", summary, request.file_id)
            return DispatchResult(
                outcome=DispatchOutcome.CLIENT_ACQUISITION_FAILED,
                error_summary=summary,
            )

        try:
            worker_name = cluster_client.create_worker(dispatch_request)
        except Exception as error:  # noqa: BLE001
            summary = f"Failed to create pod: {error}"
            logger.warning("%s (file %s)", summary, request.file_id)
            return DispatchResult(
                outcome=DispatchOutcome.SUBMISSION_FAILED,
                error_summary=summary,
            )

        return DispatchResult(outcome=DispatchOutcome.ACCEPTED, worker_name=worker_name)
