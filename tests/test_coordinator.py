from __future__ import annotations

import allure

from adaptation_service.config import Settings
from adaptation_service.dispatcher.coordinator import DispatchCoordinator, DispatchResult
from adaptation_service.dispatcher.models import AdaptationRequest, DispatchOutcome
from adaptation_service.errors import WorkerSubmissionError

pytestmark = [
    allure.epic("Adaptation Dispatcher"),
    allure.feature("Dispatch Coordinator"),
]

_REQUEST = AdaptationRequest(
    file_id="abc",
    source_file_location="/in/abc",
    rebuilt_file_location="/out/abc",
    generate_report="true",
    reply_to="reply-queue",
)


def test_build_dispatch_request_merges_settings_and_message_fields(settings: Settings) -> None:
    coordinator = DispatchCoordinator(settings=settings, client_factory=lambda _ns: None)

    dispatch_request = coordinator.build_dispatch_request(_REQUEST)

    assert dispatch_request.namespace == "icap-adaptation"
    assert dispatch_request.file_id == "abc"
    env = dispatch_request.worker_environment()
    assert env["FILE_ID"] == "abc"
    assert env["INPUT_PATH"] == "/in/abc"
    assert env["OUTPUT_PATH"] == "/out/abc"
    assert env["GENERATE_REPORT"] == "true"
    assert env["REPLY_TO"] == "reply-queue"
    assert env["REQUEST_PROCESSING_TIMEOUT"] == "00:01:00"
    assert env["ARCHIVE_ADAPTATION_REQUEST_QUEUE_HOSTNAME"] == "rabbitmq-archive"
    assert env["TRANSACTION_EVENT_QUEUE_PORT"] == "5674"
    assert env["MESSAGE_BROKER_USER"] == "guest"


def test_dispatch_acquires_client_for_configured_namespace(
    settings: Settings,
    cluster_client,
) -> None:
    namespaces: list[str] = []

    def _factory(namespace: str):
        namespaces.append(namespace)
        return cluster_client

    result = DispatchCoordinator(settings=settings, client_factory=_factory).dispatch(_REQUEST)

    assert result == DispatchResult(outcome=DispatchOutcome.ACCEPTED, worker_name="rebuild-1")
    assert namespaces == ["icap-adaptation"]
    assert cluster_client.requests[0].request == _REQUEST


def test_dispatch_classifies_factory_error_as_client_acquisition(settings: Settings) -> None:
    def _factory(namespace: str):
        raise PermissionError("credentials rejected")

    result = DispatchCoordinator(settings=settings, client_factory=_factory).dispatch(_REQUEST)

    assert result.outcome is DispatchOutcome.CLIENT_ACQUISITION_FAILED
    assert result.worker_name is None
    assert result.error_summary == "Failed to get client for cluster: credentials rejected"


def test_dispatch_classifies_create_error_as_submission(
    settings: Settings,
    failing_cluster_client_factory,
) -> None:
    client = failing_cluster_client_factory(WorkerSubmissionError("403 Forbidden"))

    result = DispatchCoordinator(
        settings=settings,
        client_factory=lambda _ns: client,
    ).dispatch(_REQUEST)

    assert result.outcome is DispatchOutcome.SUBMISSION_FAILED
    assert result.error_summary == "Failed to create pod: 403 Forbidden"
