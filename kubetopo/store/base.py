"""Read-only resource store interface consumed by the topology engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from kubetopo.models.resources import (
    EndpointSlice,
    EndpointTarget,
    ListedItem,
    OwnerReference,
    ResourceRef,
)


class ResourceStore(ABC):
    """Read access to cluster state.

    Implementations raise ``ResourceNotFoundError`` for missing objects or
    unknown kinds and ``StoreUnavailableError`` for any other failure. They
    never mutate the cluster.
    """

    @abstractmethod
    async def get(self, resource: ResourceRef) -> dict[str, Any]:
        """Return the live manifest of *resource* as a plain mapping."""

    @abstractmethod
    async def list(
        self,
        group: str,
        kind: str,
        *,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[ListedItem]:
        """List objects of ``group/kind``.

        Args:
            namespace: Restrict to one namespace; ``None`` lists all namespaces.
            labels:    Every pair must be present on the object's labels.
        """

    @abstractmethod
    async def list_endpoint_slices(self, namespace: str) -> list[EndpointSlice]:
        """List discovery.k8s.io/v1 EndpointSlices in *namespace*."""


def group_of(api_version: str) -> str:
    """Return the API group of an ``apiVersion`` string (``""`` for core)."""
    group, sep, _ = api_version.rpartition("/")
    return group if sep else ""


def listed_item_from_manifest(obj: dict[str, Any]) -> ListedItem:
    """Build a :class:`ListedItem` from a manifest mapping."""
    metadata = obj.get("metadata") or {}
    return ListedItem(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace") or "",
        labels=dict(metadata.get("labels") or {}),
        annotations=dict(metadata.get("annotations") or {}),
        owner_references=[
            OwnerReference(
                kind=ref.get("kind", ""),
                name=ref.get("name", ""),
                api_version=ref.get("apiVersion", ""),
                uid=ref.get("uid", ""),
            )
            for ref in metadata.get("ownerReferences") or []
        ],
    )


def endpoint_slice_from_manifest(obj: dict[str, Any]) -> EndpointSlice:
    """Build an :class:`EndpointSlice` from a discovery.k8s.io/v1 manifest mapping."""
    item = listed_item_from_manifest(obj)
    targets: list[EndpointTarget | None] = []
    for endpoint in obj.get("endpoints") or []:
        ref = endpoint.get("targetRef")
        if not ref:
            targets.append(None)
            continue
        targets.append(
            EndpointTarget(
                kind=ref.get("kind", ""),
                name=ref.get("name", ""),
                namespace=ref.get("namespace") or "",
            )
        )
    return EndpointSlice(
        name=item.name,
        namespace=item.namespace,
        owner_references=item.owner_references,
        targets=targets,
    )
