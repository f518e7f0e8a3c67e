"""Selector decoding and evaluation.

A declaration in ``subResources``/``peerResources`` names a base
``{group, kind}`` and one ``selector`` mapping. The mapping decodes into one
of three variants, chosen by precedence:

* ``builtin``  -- hand-written heuristic, all other keys ignored;
* ``name``     -- literal names in the relation's namespace, no store call;
* list query   -- any combination of ``namespace``, ``labels``,
  ``annotations`` and ``ownerReference``, evaluated as one list call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kubetopo.models.resources import ListedItem, ResourceRef
from kubetopo.observability.logging import get_logger
from kubetopo.topology.document import Document, DocumentKind
from kubetopo.topology.errors import (
    DocumentTypeError,
    RuleDecodeError,
    SelectorDecodeError,
    SelectorMissingError,
    UnsupportedSelectorError,
)

if TYPE_CHECKING:
    from kubetopo.store.base import ResourceStore
    from kubetopo.topology.builtin import BuiltinRuleHandler
    from kubetopo.topology.rules import TraversalContext

_logger = get_logger("topology.selectors")

SELECTOR_KEY = "selector"

NAME_SELECTOR_KEY = "name"
NAMESPACE_SELECTOR_KEY = "namespace"
BUILTIN_SELECTOR_KEY = "builtin"
ANNOTATIONS_SELECTOR_KEY = "annotations"
LABELS_SELECTOR_KEY = "labels"
OWNER_REFERENCE_SELECTOR_KEY = "ownerReference"


@dataclass(frozen=True)
class BuiltinSelector:
    tag: str


@dataclass(frozen=True)
class NameSelector:
    names: tuple[str, ...]


@dataclass(frozen=True)
class ListSelector:
    namespace: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_reference: bool = False


Selector = BuiltinSelector | NameSelector | ListSelector


@dataclass(frozen=True)
class Declaration:
    """One decoded ``subResources``/``peerResources`` entry."""

    base: ResourceRef
    selector: Selector
    path: str


def _decode_str(value: Document, key: str, relation: ResourceRef, declaration: str) -> str:
    try:
        return value.as_str()
    except DocumentTypeError as exc:
        raise SelectorDecodeError(declaration, key, "a string", relation) from exc


def _decode_str_map(value: Document, key: str, relation: ResourceRef, declaration: str) -> dict[str, str]:
    try:
        return value.as_str_map()
    except DocumentTypeError as exc:
        raise SelectorDecodeError(declaration, key, "a mapping of strings", relation) from exc


def _decode_names(value: Document, relation: ResourceRef, declaration: str) -> tuple[str, ...]:
    try:
        if value.kind is DocumentKind.STRING:
            return (value.as_str(),)
        return tuple(value.as_str_list())
    except DocumentTypeError as exc:
        raise SelectorDecodeError(declaration, NAME_SELECTOR_KEY, "a string or a list of strings", relation) from exc


def decode_selector(value: Document, relation: ResourceRef, declaration: str = "") -> Selector:
    """Decode a ``selector`` mapping into its variant.

    *declaration* is the path of the owning declaration, used in error
    messages; it defaults to the selector's own path.

    Raises:
        SelectorDecodeError: a value has the wrong shape.
        UnsupportedSelectorError: an unknown key on the list-query path.
    """
    declaration = declaration or value.path or "<root>"
    if value.kind is not DocumentKind.OBJECT:
        raise SelectorDecodeError(declaration, SELECTOR_KEY, "an object", relation)
    fields = dict(value.fields())

    if BUILTIN_SELECTOR_KEY in fields:
        return BuiltinSelector(tag=_decode_str(fields[BUILTIN_SELECTOR_KEY], BUILTIN_SELECTOR_KEY, relation, declaration))
    if NAME_SELECTOR_KEY in fields:
        return NameSelector(names=_decode_names(fields[NAME_SELECTOR_KEY], relation, declaration))
    if not fields:
        # an empty selector selects nothing
        return NameSelector(names=())

    namespace: str | None = None
    labels: dict[str, str] = {}
    annotations: dict[str, str] = {}
    owner_reference = False
    for key, item in fields.items():
        if key == NAMESPACE_SELECTOR_KEY:
            namespace = _decode_str(item, key, relation, declaration)
        elif key == LABELS_SELECTOR_KEY:
            labels = _decode_str_map(item, key, relation, declaration)
        elif key == ANNOTATIONS_SELECTOR_KEY:
            annotations = _decode_str_map(item, key, relation, declaration)
        elif key == OWNER_REFERENCE_SELECTOR_KEY:
            try:
                owner_reference = item.as_bool()
            except DocumentTypeError as exc:
                raise SelectorDecodeError(declaration, key, "a bool", relation) from exc
        else:
            raise UnsupportedSelectorError(key, relation)
    return ListSelector(
        namespace=namespace,
        labels=labels,
        annotations=annotations,
        owner_reference=owner_reference,
    )


def decode_declaration(value: Document, relation: ResourceRef) -> Declaration:
    """Decode a declaration's base identity and selector."""
    try:
        base = value.decode_identity()
    except DocumentTypeError as exc:
        raise RuleDecodeError(f"invalid declaration {value.path} for {relation}: {exc}") from exc
    selector = value.lookup(SELECTOR_KEY)
    if selector is None:
        raise SelectorMissingError(value.path, relation)
    return Declaration(base=base, selector=decode_selector(selector, relation, value.path), path=value.path)


class SelectorEvaluator:
    """Resolves a declaration to concrete resource identities.

    Read-only: only ``get``/``list`` calls are issued against the store.
    """

    def __init__(self, store: ResourceStore, builtins: BuiltinRuleHandler) -> None:
        self._store = store
        self._builtins = builtins

    async def evaluate(
        self,
        ctx: TraversalContext,
        value: Document,
        relation: ResourceRef,
    ) -> list[ResourceRef]:
        declaration = decode_declaration(value, relation)
        selector = declaration.selector

        if isinstance(selector, BuiltinSelector):
            return await self._builtins.resolve(selector.tag, ctx, relation)
        if isinstance(selector, NameSelector):
            resources = self._evaluate_names(declaration.base, selector, relation)
        else:
            ctx.store_calls += 1
            resources = await self._evaluate_list(declaration.base, selector, relation)

        _logger.debug(
            "selector_evaluated",
            declaration=declaration.path,
            relation=str(relation),
            selector=type(selector).__name__,
            matched=len(resources),
        )
        return resources

    @staticmethod
    def _evaluate_names(base: ResourceRef, selector: NameSelector, relation: ResourceRef) -> list[ResourceRef]:
        return [
            ResourceRef(group=base.group, kind=base.kind, name=name, namespace=relation.namespace)
            for name in selector.names
        ]

    async def _evaluate_list(
        self,
        base: ResourceRef,
        selector: ListSelector,
        relation: ResourceRef,
    ) -> list[ResourceRef]:
        namespace = selector.namespace
        if selector.owner_reference and namespace is None:
            namespace = relation.namespace or None

        items: list[ListedItem] = await self._store.list(
            base.group,
            base.kind,
            namespace=namespace,
            labels=selector.labels or None,
        )
        if selector.annotations:
            items = [item for item in items if item.annotations == selector.annotations]
        if selector.owner_reference:
            items = [item for item in items if item.is_owned_by(relation)]

        return [
            ResourceRef(group=base.group, kind=base.kind, name=item.name, namespace=item.namespace)
            for item in items
        ]
