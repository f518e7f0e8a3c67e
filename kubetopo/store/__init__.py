"""Resource store layer.

Submodules:
    base        -- ResourceStore ABC and manifest conversion helpers.
    memory      -- InMemoryResourceStore over a fixed set of manifests.
    kubernetes  -- KubernetesResourceStore over kubernetes-asyncio (imported
                   explicitly so that the client library is only loaded when
                   a live cluster is used).
"""

from kubetopo.store.base import ResourceStore
from kubetopo.store.memory import InMemoryResourceStore

__all__ = ["InMemoryResourceStore", "ResourceStore"]
