"""Exception hierarchy for the adaptation service."""

from __future__ import annotations


class AdaptationServiceError(Exception):
    """Base class for errors raised by the adaptation service."""


class ConfigurationError(AdaptationServiceError):
    """Required process settings are absent or malformed."""


class BrokerSetupError(AdaptationServiceError):
    """Broker connection or topology declaration failed at startup."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"Failed to {step}: {cause}")
        self.step = step
        self.cause = cause


class ClusterClientError(AdaptationServiceError):
    """Base class for cluster orchestration failures."""


class ClientAcquisitionError(ClusterClientError):
    """A cluster client could not be obtained for the configured namespace."""


class WorkerSubmissionError(ClusterClientError):
    """The worker creation request was rejected or could not be delivered."""
