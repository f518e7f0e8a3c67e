"""Bootstrap helpers for embedding kubetopo in a larger process.

Startup order: config -> logging -> resource store -> engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kubetopo.config import load_config
from kubetopo.observability.logging import get_logger, setup_logging
from kubetopo.topology.engine import ResourceTopology

if TYPE_CHECKING:
    from kubetopo.models.config import KubeTopoConfig
    from kubetopo.store.base import ResourceStore


async def build_topology(
    config: KubeTopoConfig | None = None,
    store: ResourceStore | None = None,
) -> ResourceTopology:
    """Build a ready-to-query engine.

    Args:
        config: Configuration; loaded from KUBETOPO_* variables when omitted.
        store:  Resource store; a live-cluster store is connected when omitted.
    """
    config = config or load_config()
    setup_logging(config.log.level, config.log.format)
    log = get_logger("app")

    if store is None:
        # Imported lazily so that offline use never loads the cluster client.
        from kubetopo.store.kubernetes import KubernetesResourceStore

        store = await KubernetesResourceStore.connect()

    topology = ResourceTopology.from_config(config.topology, store)
    log.info(
        "topology engine ready",
        rules=config.topology.rules_path or "<default>",
        max_depth=config.topology.max_depth,
        store=type(store).__name__,
    )
    return topology
