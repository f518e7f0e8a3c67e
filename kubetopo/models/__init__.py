"""Core data structures for kubetopo."""

from kubetopo.models.config import KubeTopoConfig, LogConfig, TopologyConfig
from kubetopo.models.resources import (
    EndpointSlice,
    EndpointTarget,
    ListedItem,
    OwnerReference,
    ResourceRef,
    SubResource,
)

__all__ = [
    "EndpointSlice",
    "EndpointTarget",
    "KubeTopoConfig",
    "ListedItem",
    "LogConfig",
    "OwnerReference",
    "ResourceRef",
    "SubResource",
    "TopologyConfig",
]
