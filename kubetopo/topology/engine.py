"""Resource topology engine.

Public entry points:

    get_sub_resources(resource)  -- recursive tree of owned/spawned resources
    get_peer_resources(resource) -- flat list of related resources

Each call fetches the resource, renders the rule template against it, and
evaluates the matching rule. Evaluation is sequential and depth-first; the
first hard error aborts the whole query.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from kubetopo.models.resources import ResourceRef, SubResource
from kubetopo.observability.logging import get_logger
from kubetopo.observability.metrics import queries_total, query_duration_seconds
from kubetopo.topology.builtin import BuiltinRuleHandler
from kubetopo.topology.document import Document, DocumentBinder, DocumentKind, TemplateCompiler
from kubetopo.topology.errors import (
    DocumentTypeError,
    RuleDecodeError,
    RuleNotFoundError,
    RulesNotFoundError,
    TopologyDepthExceededError,
)
from kubetopo.topology.rules import (
    PEER_RESOURCES_KEY,
    SUB_RESOURCES_KEY,
    RuleResolver,
    TraversalContext,
)
from kubetopo.topology.selectors import SelectorEvaluator
from kubetopo.topology.templates import load_rule_template

if TYPE_CHECKING:
    from kubetopo.models.config import TopologyConfig
    from kubetopo.store.base import ResourceStore

_logger = get_logger("topology.engine")

DEFAULT_MAX_DEPTH = 32


@contextmanager
def _observed(operation: str) -> Iterator[None]:
    t_start = time.monotonic()
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        queries_total.labels(operation=operation, outcome=outcome).inc()
        query_duration_seconds.labels(operation=operation).observe(time.monotonic() - t_start)


def _declarations(rule: Document, key: str) -> list[Document]:
    value = rule.lookup(key)
    if value is None or value.kind is DocumentKind.NULL:
        return []
    try:
        return value.items()
    except DocumentTypeError as exc:
        raise RuleDecodeError(f"{key} should be a list: {exc}") from exc


class ResourceTopology:
    """Rule-driven sub-resource and peer-resource discovery.

    The instance holds no per-query state, so it can serve concurrent
    callers; every query gets its own :class:`TraversalContext`.

    Args:
        rules:     Rule template text (Jinja2 rendering to YAML).
        store:     Resource store used for every read.
        max_depth: Maximum nesting of sub-resource expansion; ``0`` disables
                   the guard.
        compiler:  Template compiler; defaults to :class:`TemplateCompiler`.
    """

    def __init__(
        self,
        rules: str,
        store: ResourceStore,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        compiler: TemplateCompiler | None = None,
    ) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self._binder = DocumentBinder(rules, store, compiler)
        self._resolver = RuleResolver()
        self._builtins = BuiltinRuleHandler(store, self._expand)
        self._evaluator = SelectorEvaluator(store, self._builtins)
        self._max_depth = max_depth

    @classmethod
    def from_config(cls, config: TopologyConfig, store: ResourceStore) -> ResourceTopology:
        """Build an engine from configuration, loading the configured rules file."""
        return cls(
            load_rule_template(config.rules_path or None),
            store,
            max_depth=config.max_depth,
        )

    async def get_sub_resources(self, resource: ResourceRef) -> list[SubResource]:
        """Return the sub-resource tree of *resource*.

        A resource without a rule has no sub-resources; that is not an error.
        """
        with _observed("sub_resources"):
            document = await self._binder.resolve_document(resource)
            ctx = TraversalContext(document=document)
            subs = await self._expand(ctx, resource)
        _logger.info(
            "sub_resources_resolved",
            resource=str(resource),
            top_level=len(subs),
            store_calls=ctx.store_calls,
        )
        return subs

    async def get_peer_resources(self, resource: ResourceRef) -> list[ResourceRef]:
        """Return the peer resources of *resource*.

        Raises:
            RulesNotFoundError, RuleNotFoundError: no rule covers the resource.
        """
        with _observed("peer_resources"):
            document = await self._binder.resolve_document(resource)
            ctx = TraversalContext(document=document)
            rule = self._resolver.rule_for(ctx, resource)
            peers = await self._peers(ctx, rule, resource)
        _logger.info(
            "peer_resources_resolved",
            resource=str(resource),
            peers=len(peers),
            store_calls=ctx.store_calls,
        )
        return peers

    async def _expand(self, ctx: TraversalContext, resource: ResourceRef) -> list[SubResource]:
        try:
            rule = self._resolver.rule_for(ctx, resource)
        except (RuleNotFoundError, RulesNotFoundError):
            return []

        declarations = _declarations(rule, SUB_RESOURCES_KEY)
        if not declarations:
            return []
        if self._max_depth and ctx.depth >= self._max_depth:
            raise TopologyDepthExceededError(resource, self._max_depth)

        subs: list[SubResource] = []
        ctx.depth += 1
        try:
            for declaration in declarations:
                items = await self._evaluator.evaluate(ctx, declaration, resource)
                for item in items:
                    children = await self._expand(ctx, item)
                    subs.append(SubResource(resource=item, children=children))
        finally:
            ctx.depth -= 1
        return subs

    async def _peers(self, ctx: TraversalContext, rule: Document, resource: ResourceRef) -> list[ResourceRef]:
        peers: list[ResourceRef] = []
        for declaration in _declarations(rule, PEER_RESOURCES_KEY):
            peers.extend(await self._evaluator.evaluate(ctx, declaration, resource))
        return peers
