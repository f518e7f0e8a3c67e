"""Exception hierarchy for topology resolution.

Every error raised by the engine derives from :class:`TopologyError`.
Only ``RuleNotFoundError`` and ``RulesNotFoundError`` are ever recovered
from, and only during sub-resource expansion.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubetopo.models.resources import ResourceRef


class TopologyError(Exception):
    """Base class for all topology errors."""


class StoreError(TopologyError):
    """The resource store could not serve a request."""


class ResourceNotFoundError(StoreError):
    """The requested object, or its kind, does not exist in the cluster."""

    def __init__(self, what: str) -> None:
        super().__init__(f"{what} not found")
        self.what = what


class StoreUnavailableError(StoreError):
    """The cluster API failed or could not be reached."""


class TemplateRenderError(TopologyError):
    """The rule template could not be rendered into a document."""


class DocumentTypeError(TopologyError):
    """A document value does not have the shape the caller asked for."""


class RulesNotFoundError(TopologyError):
    """The rendered document has no ``rules`` section."""

    def __init__(self) -> None:
        super().__init__("no rules found")


class RuleNotFoundError(TopologyError):
    """No rule entry matches the resource's group/kind."""

    def __init__(self, group_kind: str) -> None:
        super().__init__(f"no rule found for resource {group_kind}")
        self.group_kind = group_kind


class RuleDecodeError(TopologyError):
    """A rule entry or declaration has a malformed shape."""


class SelectorMissingError(TopologyError):
    """A sub/peer declaration has no ``selector``."""

    def __init__(self, declaration: str, resource: ResourceRef) -> None:
        super().__init__(f"selector is required (declaration {declaration} of {resource})")
        self.declaration = declaration
        self.resource = resource


class SelectorDecodeError(TopologyError):
    """A selector value has the wrong shape for its key."""

    def __init__(self, declaration: str, key: str, expected: str, resource: ResourceRef) -> None:
        super().__init__(f"selector [{key}] must be {expected} (declaration {declaration} of {resource})")
        self.declaration = declaration
        self.key = key
        self.resource = resource


class UnsupportedSelectorError(TopologyError):
    """An unknown key reached list-query selector dispatch."""

    def __init__(self, key: str, resource: ResourceRef) -> None:
        super().__init__(f"unknown selector [{key}] for list resources (evaluating for {resource})")
        self.key = key
        self.resource = resource


class UnsupportedBuiltinError(TopologyError):
    """The ``builtin`` tag names no known heuristic."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"unsupported built-in rule {tag}")
        self.tag = tag


class TopologyDepthExceededError(TopologyError):
    """Sub-resource expansion recursed past the configured depth.

    Almost always caused by a rule set whose selectors form a cycle.
    """

    def __init__(self, resource: ResourceRef, max_depth: int) -> None:
        super().__init__(f"sub-resource expansion exceeded max depth {max_depth} at {resource}")
        self.resource = resource
        self.max_depth = max_depth
