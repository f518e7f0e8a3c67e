"""Tests for the built-in relationship heuristics."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from kubetopo.models.resources import (
    EndpointSlice,
    EndpointTarget,
    OwnerReference,
    ResourceRef,
    SubResource,
)
from kubetopo.topology.builtin import BuiltinRuleHandler, collect_group_kind
from kubetopo.topology.document import Document
from kubetopo.topology.errors import StoreUnavailableError, UnsupportedBuiltinError
from kubetopo.topology.rules import TraversalContext

_SVC_NS = "shop"
_DEPLOY = ResourceRef(group="apps", kind="Deployment", name="cart", namespace=_SVC_NS)
_RS = ResourceRef(group="apps", kind="ReplicaSet", name="cart-1", namespace=_SVC_NS)
_P1 = ResourceRef(group="", kind="Pod", name="p1", namespace=_SVC_NS)
_P2 = ResourceRef(group="", kind="Pod", name="p2", namespace=_SVC_NS)

_TREE = [SubResource(resource=_RS, children=[SubResource(resource=_P1), SubResource(resource=_P2)])]


def _slice(name: str, owner: str | None, targets: list[EndpointTarget | None]) -> EndpointSlice:
    return EndpointSlice(
        name=name,
        namespace=_SVC_NS,
        owner_references=[OwnerReference(kind="Service", name=owner)] if owner else [],
        targets=targets,
    )


def _pod_target(name: str, namespace: str = _SVC_NS) -> EndpointTarget:
    return EndpointTarget(kind="Pod", name=name, namespace=namespace)


def _make_handler(
    slices: list[EndpointSlice],
    tree: list[SubResource] | None = None,
) -> tuple[BuiltinRuleHandler, MagicMock, AsyncMock]:
    store = MagicMock()
    store.list_endpoint_slices = AsyncMock(return_value=slices)
    expand = AsyncMock(return_value=_TREE if tree is None else tree)
    return BuiltinRuleHandler(store, expand), store, expand


def _ctx() -> TraversalContext:
    return TraversalContext(document=Document({"rules": []}))


class TestCollectGroupKind:
    def test_flattens_depth_first(self) -> None:
        assert collect_group_kind(_TREE, "", "Pod") == [_P1, _P2]

    def test_group_must_match(self) -> None:
        assert collect_group_kind(_TREE, "apps", "Pod") == []

    def test_includes_intermediate_nodes(self) -> None:
        assert collect_group_kind(_TREE, "apps", "ReplicaSet") == [_RS]


class TestDispatch:
    async def test_tag_is_case_insensitive(self) -> None:
        handler, _, _ = _make_handler([])
        assert await handler.resolve("SeRvIcE", _ctx(), _DEPLOY) == []

    async def test_unknown_tag(self) -> None:
        handler, _, _ = _make_handler([])
        with pytest.raises(UnsupportedBuiltinError) as excinfo:
            await handler.resolve("ingress", _ctx(), _DEPLOY)
        assert excinfo.value.tag == "ingress"


class TestServiceHeuristic:
    async def test_matching_endpoint_yields_owning_service(self) -> None:
        handler, store, expand = _make_handler(
            [
                _slice("svc-a-xyz", "svc-a", [_pod_target("p1")]),
                _slice("svc-b-xyz", "svc-b", [_pod_target("unrelated")]),
            ]
        )
        ctx = _ctx()

        result = await handler.resolve("service", ctx, _DEPLOY)

        assert result == [ResourceRef(group="", kind="Service", name="svc-a", namespace=_SVC_NS)]
        expand.assert_awaited_once_with(ctx, _DEPLOY)
        store.list_endpoint_slices.assert_awaited_once_with(_SVC_NS)

    async def test_one_result_per_matching_endpoint(self) -> None:
        handler, _, _ = _make_handler([_slice("svc-a-xyz", "svc-a", [_pod_target("p1"), _pod_target("p2")])])

        result = await handler.resolve("service", _ctx(), _DEPLOY)

        assert [ref.name for ref in result] == ["svc-a", "svc-a"]

    async def test_target_namespace_must_match(self) -> None:
        handler, _, _ = _make_handler([_slice("svc-a-xyz", "svc-a", [_pod_target("p1", namespace="other")])])

        assert await handler.resolve("service", _ctx(), _DEPLOY) == []

    async def test_endpoints_without_target_are_skipped(self) -> None:
        handler, _, _ = _make_handler([_slice("svc-a-xyz", "svc-a", [None, _pod_target("p2")])])

        result = await handler.resolve("service", _ctx(), _DEPLOY)

        assert [ref.name for ref in result] == ["svc-a"]

    async def test_slice_without_owner_is_skipped(self) -> None:
        handler, _, _ = _make_handler([_slice("orphan", None, [_pod_target("p1")])])

        assert await handler.resolve("service", _ctx(), _DEPLOY) == []

    async def test_no_pods_in_tree(self) -> None:
        handler, _, _ = _make_handler([_slice("svc-a-xyz", "svc-a", [_pod_target("p1")])], tree=[])

        assert await handler.resolve("service", _ctx(), _DEPLOY) == []

    async def test_store_error_propagates(self) -> None:
        handler, store, _ = _make_handler([])
        store.list_endpoint_slices.side_effect = StoreUnavailableError("timeout")

        with pytest.raises(StoreUnavailableError):
            await handler.resolve("service", _ctx(), _DEPLOY)
