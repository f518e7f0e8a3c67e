"""In-memory resource store over a fixed set of manifests.

Useful for evaluating a rule set against exported manifests
(``kubectl get -o yaml``) without a cluster, and as the test double for the
engine.
"""

from __future__ import annotations

import copy
from typing import Any

import yaml

from kubetopo.models.resources import EndpointSlice, ListedItem, ResourceRef
from kubetopo.store.base import (
    ResourceStore,
    endpoint_slice_from_manifest,
    group_of,
    listed_item_from_manifest,
)
from kubetopo.topology.errors import ResourceNotFoundError

_ENDPOINT_SLICE_GROUP = "discovery.k8s.io"
_ENDPOINT_SLICE_KIND = "EndpointSlice"


def _identity(obj: dict[str, Any]) -> ResourceRef:
    metadata = obj.get("metadata") or {}
    return ResourceRef(
        group=group_of(obj.get("apiVersion", "")),
        kind=obj.get("kind", ""),
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace") or "",
    )


class InMemoryResourceStore(ResourceStore):
    """Serves get/list calls from a list of manifest mappings.

    Objects are returned in insertion order. ``List`` wrappers (``kind: List``
    or any ``*List`` with ``items``) are flattened on insert.
    """

    def __init__(self, manifests: list[dict[str, Any]] | None = None) -> None:
        self._objects: list[tuple[ResourceRef, dict[str, Any]]] = []
        for obj in manifests or []:
            self.add(obj)

    @classmethod
    def from_yaml(cls, text: str) -> InMemoryResourceStore:
        """Build a store from (multi-document) YAML text."""
        return cls([doc for doc in yaml.safe_load_all(text) if doc])

    def add(self, obj: dict[str, Any]) -> None:
        if obj.get("kind", "").endswith("List") and "items" in obj:
            for item in obj.get("items") or []:
                self.add(item)
            return
        self._objects.append((_identity(obj), obj))

    async def get(self, resource: ResourceRef) -> dict[str, Any]:
        for ref, obj in self._objects:
            if ref == resource:
                return copy.deepcopy(obj)
        raise ResourceNotFoundError(str(resource))

    async def list(
        self,
        group: str,
        kind: str,
        *,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[ListedItem]:
        items: list[ListedItem] = []
        for ref, obj in self._objects:
            if ref.group != group or ref.kind != kind:
                continue
            if namespace is not None and ref.namespace != namespace:
                continue
            item = listed_item_from_manifest(obj)
            if labels and any(item.labels.get(key) != value for key, value in labels.items()):
                continue
            items.append(item)
        return items

    async def list_endpoint_slices(self, namespace: str) -> list[EndpointSlice]:
        return [
            endpoint_slice_from_manifest(obj)
            for ref, obj in self._objects
            if ref.group == _ENDPOINT_SLICE_GROUP and ref.kind == _ENDPOINT_SLICE_KIND and ref.namespace == namespace
        ]
