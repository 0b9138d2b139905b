"""Kubernetes-backed cluster client that launches one rebuild pod per request."""

from __future__ import annotations

import logging
from uuid import uuid4

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from adaptation_service.dispatcher.models import DispatchRequest
from adaptation_service.errors import ClientAcquisitionError, WorkerSubmissionError

logger = logging.getLogger(__name__)

WORKER_APP_LABEL = "adaptation-worker"
WORKER_CONTAINER_NAME = "rebuild"
POD_NAME_PREFIX = "rebuild-"
INPUT_VOLUME_NAME = "sourcedir"
OUTPUT_VOLUME_NAME = "targetdir"


class KubernetesClusterClient:
    """Creates worker pods through the Kubernetes core API."""

    def __init__(self, *, namespace: str, api: client.CoreV1Api) -> None:
        self.namespace = namespace
        self.api = api

    @classmethod
    def connect(cls, namespace: str) -> KubernetesClusterClient:
        """Build a client from in-cluster config, falling back to kubeconfig."""

        try:
            config.load_incluster_config()
        except ConfigException:
            logger.debug("In-cluster config unavailable, trying kubeconfig")
            try:
                config.load_kube_config()
            except (ConfigException, OSError) as error:
                raise ClientAcquisitionError(
                    f"Failed to get client for cluster namespace {namespace!r}: {error}",
                ) from error
        return cls(namespace=namespace, api=client.CoreV1Api())

    def create_worker(self, request: DispatchRequest) -> str:
        pod = build_worker_pod(request)
        try:
            created = self.api.create_namespaced_pod(namespace=self.namespace, body=pod)
        except ApiException as error:
            raise WorkerSubmissionError(
                f"Failed to create pod for file {request.file_id}: "
                f"{error.status} {error.reason}",
            ) from error
        name = created.metadata.name if created.metadata is not None else pod.metadata.name
        logger.info("Created pod %s for file %s", name, request.file_id)
        return name


def build_worker_pod(request: DispatchRequest, *, name: str | None = None) -> client.V1Pod:
    """Render the pod manifest for one dispatch request."""

    worker = request.settings.worker
    resources = request.settings.resources
    pod_name = name or f"{POD_NAME_PREFIX}{uuid4()}"
    container = client.V1Container(
        name=WORKER_CONTAINER_NAME,
        image=worker.image,
        image_pull_policy="IfNotPresent",
        env=[
            client.V1EnvVar(name=key, value=value)
            for key, value in request.worker_environment().items()
        ],
        resources=client.V1ResourceRequirements(
            requests={"cpu": resources.cpu_request, "memory": resources.memory_request},
            limits={"cpu": resources.cpu_limit, "memory": resources.memory_limit},
        ),
        volume_mounts=[
            client.V1VolumeMount(name=INPUT_VOLUME_NAME, mount_path=worker.input_mount),
            client.V1VolumeMount(name=OUTPUT_VOLUME_NAME, mount_path=worker.output_mount),
        ],
    )
    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=pod_name,
            namespace=request.namespace,
            labels={"app": WORKER_APP_LABEL},
            annotations={"adaptation/file-id": request.file_id},
        ),
        spec=client.V1PodSpec(
            restart_policy="Never",
            containers=[container],
            volumes=[
                client.V1Volume(
                    name=INPUT_VOLUME_NAME,
                    host_path=client.V1HostPathVolumeSource(path=worker.input_mount),
                ),
                client.V1Volume(
                    name=OUTPUT_VOLUME_NAME,
                    host_path=client.V1HostPathVolumeSource(path=worker.output_mount),
                ),
            ],
        ),
    )
