"""Orchestration (Kubernetes) HTTP API client with observability.

This module provides the real client implementation that:
- Uses httpx for async HTTP operations against the API server
- Always reads live objects (no informer cache), so the health check never
  acts on a stale view of which Machines exist
- Includes OpenTelemetry tracing for all API calls
- Records Prometheus metrics for monitoring
- Translates transport and HTTP failures into OrchestrationApiError
"""

from __future__ import annotations

import json
import logging
import ssl
import time
from typing import TYPE_CHECKING, Any

import httpx
from opentelemetry import trace

from etcdadm_healthcheck.core.exceptions import (
    ConfigurationError,
    OrchestrationApiError,
    ResourceNotFoundError,
)
from etcdadm_healthcheck.infra.orchestration.metrics import (
    orchestration_errors_total,
    orchestration_request_duration_seconds,
    orchestration_requests_total,
)
from etcdadm_healthcheck.infra.orchestration.models import (
    CLUSTER_NAME_LABEL,
    ETCD_CLUSTER_LABEL,
    Cluster,
    EtcdCluster,
    Machine,
)

if TYPE_CHECKING:
    from etcdadm_healthcheck.core.settings.orchestration import OrchestrationSettings

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ETCD_API_PREFIX = "/apis/etcdcluster.cluster.x-k8s.io/v1beta1"
CLUSTER_API_PREFIX = "/apis/cluster.x-k8s.io/v1beta1"
MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


class OrchestrationClient:
    """HTTP client for the orchestration API with observability.

    This client implements OrchestrationClientProtocol and provides:
    - Async HTTP operations using httpx
    - OpenTelemetry tracing for distributed tracing
    - Prometheus metrics for monitoring
    - Uniform error translation (OrchestrationApiError / ResourceNotFoundError)

    Example:
        settings = get_orchestration_settings()
        client = OrchestrationClient(settings)

        clusters = await client.list_etcd_clusters()

        await client.close()
    """

    def __init__(
        self,
        settings: OrchestrationSettings,
        *,
        namespace: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the orchestration client.

        Args:
            settings: OrchestrationSettings with connection configuration.
            namespace: Restrict cluster listing to one namespace (None = all).
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests).

        Raises:
            ConfigurationError: The configured CA bundle cannot be loaded.
        """
        self._settings = settings
        self._namespace = namespace

        verify: bool | ssl.SSLContext
        if isinstance(settings.verify, str):
            try:
                verify = ssl.create_default_context(cafile=settings.verify)
            except OSError as e:
                raise ConfigurationError(
                    f"Cannot load CA bundle {settings.verify}: {e}",
                    extra={"ca_file": settings.verify},
                ) from e
        else:
            verify = settings.verify

        self._client = httpx.AsyncClient(
            base_url=settings.api_url,
            headers={"Accept": "application/json", **settings.get_auth_headers()},
            timeout=httpx.Timeout(settings.request_timeout),
            verify=verify,
            transport=transport,
        )

        logger.debug(
            "OrchestrationClient initialized",
            extra={"api_url": settings.api_url, "namespace": namespace},
        )

    # ──────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────

    async def list_etcd_clusters(self) -> list[EtcdCluster]:
        """List etcdadm clusters in the configured namespace, or in all namespaces."""
        if self._namespace:
            path = f"{ETCD_API_PREFIX}/namespaces/{self._namespace}/etcdadmclusters"
        else:
            path = f"{ETCD_API_PREFIX}/etcdadmclusters"

        response = await self._request("list_etcd_clusters", "GET", path)
        return [EtcdCluster.model_validate(item) for item in _items(response)]

    async def get_etcd_cluster(self, namespace: str, name: str) -> EtcdCluster:
        """Read one etcdadm cluster.

        Raises:
            ResourceNotFoundError: If the cluster does not exist.
        """
        path = f"{ETCD_API_PREFIX}/namespaces/{namespace}/etcdadmclusters/{name}"
        response = await self._request("get_etcd_cluster", "GET", path)
        return EtcdCluster.model_validate(response.json())

    async def get_owner_cluster(self, etcd_cluster: EtcdCluster) -> Cluster | None:
        """Read the owning Cluster API Cluster; None if unowned or already gone."""
        cluster_name = etcd_cluster.cluster_name
        if cluster_name is None:
            return None

        path = f"{CLUSTER_API_PREFIX}/namespaces/{etcd_cluster.namespace}/clusters/{cluster_name}"
        response = await self._request("get_owner_cluster", "GET", path, allow_not_found=True)
        if response is None:
            return None
        return Cluster.model_validate(response.json())

    async def list_etcd_machines(self, etcd_cluster: EtcdCluster) -> list[Machine]:
        """List the Machines labelled as members of ``etcd_cluster``."""
        selector = f"{ETCD_CLUSTER_LABEL}={etcd_cluster.name}"
        if etcd_cluster.cluster_name:
            selector += f",{CLUSTER_NAME_LABEL}={etcd_cluster.cluster_name}"

        path = f"{CLUSTER_API_PREFIX}/namespaces/{etcd_cluster.namespace}/machines"
        response = await self._request(
            "list_etcd_machines",
            "GET",
            path,
            params={"labelSelector": selector},
        )
        return [Machine.model_validate(item) for item in _items(response)]

    # ──────────────────────────────────────────────────────────────
    # Writes
    # ──────────────────────────────────────────────────────────────

    async def delete_machine(self, machine: Machine) -> None:
        """Delete ``machine``; a 404 means it is already gone."""
        path = f"{CLUSTER_API_PREFIX}/namespaces/{machine.namespace}/machines/{machine.name}"
        response = await self._request("delete_machine", "DELETE", path, allow_not_found=True)

        if response is None:
            logger.info(
                "Machine already deleted",
                extra={"machine": machine.name, "namespace": machine.namespace},
            )
            return

        logger.info(
            "Machine deletion requested",
            extra={"machine": machine.name, "namespace": machine.namespace},
        )

    async def update_etcd_endpoints(self, etcd_cluster: EtcdCluster, endpoints: list[str]) -> None:
        """Patch the cluster status with a new endpoint list and ready=false."""
        path = (
            f"{ETCD_API_PREFIX}/namespaces/{etcd_cluster.namespace}"
            f"/etcdadmclusters/{etcd_cluster.name}/status"
        )
        patch = {"status": {"endpoints": ",".join(endpoints), "ready": False}}
        await self._request(
            "update_etcd_endpoints",
            "PATCH",
            path,
            content=json.dumps(patch),
            headers={"Content-Type": MERGE_PATCH_CONTENT_TYPE},
        )
        logger.info(
            "Etcd cluster endpoints updated",
            extra={"etcd_cluster": etcd_cluster.name, "endpoints": endpoints},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
        logger.debug("OrchestrationClient closed")

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Issue one traced, timed API request.

        Returns:
            The response, or None for a 404 when ``allow_not_found`` is set.

        Raises:
            ResourceNotFoundError: 404 and ``allow_not_found`` is False.
            OrchestrationApiError: Transport failure or any other non-2xx status.
        """
        start_time = time.perf_counter()

        with tracer.start_as_current_span(f"orchestration.{operation}") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("orchestration.path", path)

            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TimeoutException as e:
                span.record_exception(e)
                self._record_failure(operation, "timeout")
                raise OrchestrationApiError(
                    f"{operation} timed out",
                    operation=operation,
                    extra={"path": path},
                ) from e
            except httpx.HTTPError as e:
                span.record_exception(e)
                self._record_failure(operation, "connection")
                raise OrchestrationApiError(
                    f"{operation} connection error: {e}",
                    operation=operation,
                    extra={"path": path},
                ) from e
            finally:
                orchestration_request_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start_time
                )

            span.set_attribute("http.status_code", response.status_code)

            if response.status_code == 404:
                if allow_not_found:
                    orchestration_requests_total.labels(operation=operation, status="success").inc()
                    return None
                self._record_failure(operation, "not_found")
                raise ResourceNotFoundError(
                    f"{operation}: {path} not found",
                    operation=operation,
                    extra={"path": path},
                )

            if response.is_error:
                self._record_failure(operation, "http_error")
                logger.warning(
                    "Orchestration API request failed",
                    extra={
                        "operation": operation,
                        "status_code": response.status_code,
                        "response": response.text[:200],
                    },
                )
                raise OrchestrationApiError(
                    f"{operation} failed with HTTP {response.status_code}",
                    operation=operation,
                    status_code=response.status_code,
                    extra={"path": path},
                )

            orchestration_requests_total.labels(operation=operation, status="success").inc()
            return response

    @staticmethod
    def _record_failure(operation: str, error_type: str) -> None:
        orchestration_requests_total.labels(operation=operation, status="failure").inc()
        orchestration_errors_total.labels(operation=operation, error_type=error_type).inc()


def _items(response: httpx.Response | None) -> list[dict[str, Any]]:
    if response is None:
        return []
    return response.json().get("items") or []
