"""Resource store backed by the Kubernetes API via kubernetes-asyncio.

Arbitrary group/kind pairs go through the dynamic client, which resolves
them to API coordinates with discovery. EndpointSlices use the typed
``DiscoveryV1Api``.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
from kubernetes_asyncio import client as k8s_client
from kubernetes_asyncio import config as k8s_config
from kubernetes_asyncio.client.exceptions import ApiException
from kubernetes_asyncio.dynamic import DynamicClient
from kubernetes_asyncio.dynamic.exceptions import DynamicApiError, NotFoundError
from kubernetes_asyncio.dynamic.exceptions import ResourceNotFoundError as DiscoveryNotFoundError

from kubetopo.models.resources import EndpointSlice, EndpointTarget, ListedItem, OwnerReference, ResourceRef
from kubetopo.observability.logging import get_logger
from kubetopo.observability.metrics import store_requests_total
from kubetopo.store.base import ResourceStore, listed_item_from_manifest
from kubetopo.topology.errors import ResourceNotFoundError, StoreUnavailableError

_logger = get_logger("store.kubernetes")

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def _label_selector(labels: dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


def _endpoint_slice_from_model(model: Any) -> EndpointSlice:
    metadata = model.metadata
    targets: list[EndpointTarget | None] = []
    for endpoint in model.endpoints or []:
        ref = endpoint.target_ref
        if ref is None:
            targets.append(None)
            continue
        targets.append(EndpointTarget(kind=ref.kind or "", name=ref.name or "", namespace=ref.namespace or ""))
    return EndpointSlice(
        name=metadata.name or "",
        namespace=metadata.namespace or "",
        owner_references=[
            OwnerReference(kind=ref.kind, name=ref.name, api_version=ref.api_version, uid=ref.uid)
            for ref in metadata.owner_references or []
        ],
        targets=targets,
    )


class KubernetesResourceStore(ResourceStore):
    """Reads live cluster state.

    Args:
        api_client: A configured ``kubernetes_asyncio.client.ApiClient``.
                    The store does not own it unless created by ``connect()``.
    """

    def __init__(self, api_client: k8s_client.ApiClient) -> None:
        self._api_client = api_client
        self._dynamic: DynamicClient | None = None
        self._owns_client = False

    @classmethod
    async def connect(cls) -> KubernetesResourceStore:
        """Create a store from in-cluster config, falling back to kubeconfig."""
        try:
            k8s_config.load_incluster_config()
            _logger.info("k8s client configured from in-cluster service account")
        except k8s_config.ConfigException:
            await k8s_config.load_kube_config()
            _logger.info("k8s client configured from kubeconfig")
        store = cls(k8s_client.ApiClient())
        store._owns_client = True
        return store

    async def close(self) -> None:
        if self._owns_client:
            await self._api_client.close()

    async def _client(self) -> DynamicClient:
        if self._dynamic is None:
            self._dynamic = await DynamicClient(self._api_client)
        return self._dynamic

    async def _resolve(self, group: str, kind: str) -> Any:
        """Resolve group/kind to a discovered API resource, preferring the preferred version."""
        dynamic = await self._client()
        try:
            candidates = await dynamic.resources.search(group=group, kind=kind)
        except DiscoveryNotFoundError as exc:
            raise ResourceNotFoundError(f"kind {kind}.{group}") from exc
        except (DynamicApiError, ApiException, *_TRANSPORT_ERRORS) as exc:
            raise StoreUnavailableError(f"discovery failed for {kind}.{group}: {exc}") from exc
        # search() also matches subresources such as pods/status
        candidates = [res for res in candidates if "/" not in getattr(res, "name", "")]
        if not candidates:
            raise ResourceNotFoundError(f"kind {kind}.{group}")
        preferred = [res for res in candidates if getattr(res, "preferred", False)]
        return (preferred or candidates)[0]

    async def get(self, resource: ResourceRef) -> dict[str, Any]:
        api_resource = await self._resolve(resource.group, resource.kind)
        dynamic = await self._client()
        store_requests_total.labels(operation="get").inc()
        try:
            obj = await dynamic.get(
                api_resource,
                name=resource.name,
                namespace=resource.namespace or None,
            )
        except NotFoundError as exc:
            raise ResourceNotFoundError(str(resource)) from exc
        except (DynamicApiError, ApiException, *_TRANSPORT_ERRORS) as exc:
            raise StoreUnavailableError(f"get {resource} failed: {exc}") from exc
        return obj.to_dict()

    async def list(
        self,
        group: str,
        kind: str,
        *,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[ListedItem]:
        api_resource = await self._resolve(group, kind)
        dynamic = await self._client()
        kwargs: dict[str, Any] = {}
        if namespace is not None:
            kwargs["namespace"] = namespace
        if labels:
            kwargs["label_selector"] = _label_selector(labels)
        store_requests_total.labels(operation="list").inc()
        try:
            result = await dynamic.get(api_resource, **kwargs)
        except NotFoundError as exc:
            raise ResourceNotFoundError(f"kind {kind}.{group}") from exc
        except (DynamicApiError, ApiException, *_TRANSPORT_ERRORS) as exc:
            raise StoreUnavailableError(f"list {kind}.{group} failed: {exc}") from exc
        items = result.to_dict().get("items") or []
        _logger.debug("store_list", group=group, kind=kind, namespace=namespace, items=len(items))
        return [listed_item_from_manifest(item) for item in items]

    async def list_endpoint_slices(self, namespace: str) -> list[EndpointSlice]:
        api = k8s_client.DiscoveryV1Api(self._api_client)
        store_requests_total.labels(operation="list_endpoint_slices").inc()
        try:
            result = await api.list_namespaced_endpoint_slice(namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise ResourceNotFoundError(f"endpointslices in {namespace}") from exc
            raise StoreUnavailableError(f"list endpointslices in {namespace} failed: {exc}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise StoreUnavailableError(f"list endpointslices in {namespace} failed: {exc}") from exc
        return [_endpoint_slice_from_model(item) for item in result.items or []]
