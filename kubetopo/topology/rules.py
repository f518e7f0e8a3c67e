"""Rule lookup within a rendered document."""

from __future__ import annotations

from dataclasses import dataclass

from kubetopo.models.resources import ResourceRef
from kubetopo.observability.logging import get_logger
from kubetopo.topology.document import Document, DocumentKind
from kubetopo.topology.errors import (
    DocumentTypeError,
    RuleDecodeError,
    RuleNotFoundError,
    RulesNotFoundError,
)

_logger = get_logger("topology.rules")

RULES_KEY = "rules"
SUB_RESOURCES_KEY = "subResources"
PEER_RESOURCES_KEY = "peerResources"


@dataclass
class TraversalContext:
    """State owned by one top-level query.

    Recursive calls share the same document and rule index; a new context is
    created for every ``get_sub_resources``/``get_peer_resources`` call.
    """

    document: Document
    rule_index: dict[str, Document] | None = None
    depth: int = 0
    store_calls: int = 0


class RuleResolver:
    """Finds the rule that applies to a resource's group/kind."""

    def rule_for(self, ctx: TraversalContext, resource: ResourceRef) -> Document:
        if ctx.rule_index is None:
            ctx.rule_index = self._build_index(ctx.document)
        rule = ctx.rule_index.get(resource.group_kind)
        if rule is None:
            raise RuleNotFoundError(resource.group_kind)
        return rule

    def _build_index(self, document: Document) -> dict[str, Document]:
        rules = document.lookup(RULES_KEY)
        if rules is None or rules.kind is DocumentKind.NULL:
            raise RulesNotFoundError()

        index: dict[str, Document] = {}
        try:
            entries = rules.items()
            for entry in entries:
                key = entry.decode_identity().group_kind
                if key in index:
                    _logger.warning("duplicate_rule_ignored", group_kind=key, path=entry.path)
                    continue
                index[key] = entry
        except DocumentTypeError as exc:
            raise RuleDecodeError(f"invalid rules: {exc}") from exc

        _logger.debug("rule_index_built", rules=len(index))
        return index
