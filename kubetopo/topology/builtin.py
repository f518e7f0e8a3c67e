"""Built-in relationship heuristics.

These cover relationships that a single selector cannot express. They are
selected from a rule with ``selector: {builtin: <tag>}``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from kubetopo.models.resources import ResourceRef, SubResource
from kubetopo.observability.logging import get_logger
from kubetopo.topology.errors import UnsupportedBuiltinError

if TYPE_CHECKING:
    from kubetopo.store.base import ResourceStore
    from kubetopo.topology.rules import TraversalContext

_logger = get_logger("topology.builtin")

SubResourceExpander = Callable[["TraversalContext", ResourceRef], Awaitable[list[SubResource]]]

_POD_GROUP = ""
_POD_KIND = "Pod"
_SERVICE_GROUP = ""
_SERVICE_KIND = "Service"


def collect_group_kind(nodes: list[SubResource], group: str, kind: str) -> list[ResourceRef]:
    """Flatten *nodes* depth-first, keeping resources of ``group/kind``."""
    result: list[ResourceRef] = []
    for node in nodes:
        if node.resource.group == group and node.resource.kind == kind:
            result.append(node.resource)
        result.extend(collect_group_kind(node.children, group, kind))
    return result


class BuiltinRuleHandler:
    """Dispatches ``builtin`` selectors by tag (case-insensitive)."""

    def __init__(self, store: ResourceStore, expand: SubResourceExpander) -> None:
        self._store = store
        self._expand = expand

    async def resolve(self, tag: str, ctx: TraversalContext, relation: ResourceRef) -> list[ResourceRef]:
        if tag.lower() == "service":
            return await self.resolve_service(ctx, relation)
        raise UnsupportedBuiltinError(tag)

    async def resolve_service(self, ctx: TraversalContext, relation: ResourceRef) -> list[ResourceRef]:
        """Find the Services routing to the Pods under *relation*.

        The relation's sub-resource tree is expanded with the same document,
        its Pods collected, and every EndpointSlice endpoint targeting one of
        them yields the slice's owning Service. A Service is emitted once per
        matching endpoint.
        """
        subs = await self._expand(ctx, relation)
        pods = set(collect_group_kind(subs, _POD_GROUP, _POD_KIND))

        ctx.store_calls += 1
        slices = await self._store.list_endpoint_slices(relation.namespace)

        services: list[ResourceRef] = []
        for endpoint_slice in slices:
            for target in endpoint_slice.targets:
                if target is None:
                    continue
                candidate = ResourceRef(
                    group=_POD_GROUP,
                    kind=target.kind,
                    name=target.name,
                    namespace=target.namespace,
                )
                if candidate not in pods:
                    continue
                if not endpoint_slice.owner_references:
                    _logger.debug("endpoint_slice_without_owner", endpoint_slice=endpoint_slice.name)
                    continue
                services.append(
                    ResourceRef(
                        group=_SERVICE_GROUP,
                        kind=_SERVICE_KIND,
                        name=endpoint_slice.owner_references[0].name,
                        namespace=relation.namespace,
                    )
                )

        _logger.debug(
            "builtin_service_matched",
            relation=str(relation),
            pods=len(pods),
            endpoint_slices=len(slices),
            services=len(services),
        )
        return services
