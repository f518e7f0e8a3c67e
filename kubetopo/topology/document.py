"""Rendered rule documents and the binder that produces them.

A rule template is Jinja2 text that renders to YAML. The live object being
inspected is exposed to the template as ``context.data``::

    rules:
      - group: apps
        kind: Deployment
        subResources:
          - group: apps
            kind: ReplicaSet
            selector:
              ownerReference: true

The engine only ever talks to :class:`Document`, so the template language
can change without touching selector or rule code.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from kubetopo.models.resources import ResourceRef
from kubetopo.observability.logging import get_logger
from kubetopo.topology.errors import DocumentTypeError, TemplateRenderError

if TYPE_CHECKING:
    from kubetopo.store.base import ResourceStore

_logger = get_logger("topology.document")

# Jinja re-raises errors from filters, operators and loops unchanged.
_EVALUATION_ERRORS = (TemplateError, TypeError, ValueError, ArithmeticError, LookupError, AttributeError)


class DocumentKind(StrEnum):
    """Kind of value held by a :class:`Document` node."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    LIST = "list"
    OBJECT = "object"


class Document:
    """Read-only, path-addressable view over a rendered rule document."""

    __slots__ = ("_value", "path")

    def __init__(self, value: Any, path: str = "") -> None:
        self._value = value
        self.path = path

    def __repr__(self) -> str:
        return f"Document(path={self.path!r}, kind={self.kind.value})"

    @property
    def value(self) -> Any:
        return self._value

    @property
    def kind(self) -> DocumentKind:
        value = self._value
        if value is None:
            return DocumentKind.NULL
        # bool before number: bool is an int subclass
        if isinstance(value, bool):
            return DocumentKind.BOOL
        if isinstance(value, int | float):
            return DocumentKind.NUMBER
        if isinstance(value, str):
            return DocumentKind.STRING
        if isinstance(value, list):
            return DocumentKind.LIST
        if isinstance(value, dict):
            return DocumentKind.OBJECT
        raise DocumentTypeError(f"{self._where()}: unsupported value type {type(value).__name__}")

    def _where(self) -> str:
        return self.path or "<root>"

    def _child_path(self, label: str | int) -> str:
        if isinstance(label, int):
            return f"{self.path}[{label}]"
        return f"{self.path}.{label}" if self.path else label

    def lookup(self, path: str) -> Document | None:
        """Follow a dotted *path* of object keys; ``None`` when any step is missing."""
        node: Document = self
        for label in path.split("."):
            if node.kind is not DocumentKind.OBJECT or label not in node._value:
                return None
            node = Document(node._value[label], node._child_path(label))
        return node

    def exists(self, path: str) -> bool:
        return self.lookup(path) is not None

    def items(self) -> list[Document]:
        """Iterate a list value."""
        if self.kind is not DocumentKind.LIST:
            raise DocumentTypeError(f"{self._where()} should be a list, got {self.kind.value}")
        return [Document(item, self._child_path(i)) for i, item in enumerate(self._value)]

    def fields(self) -> list[tuple[str, Document]]:
        """Iterate an object value as ``(label, value)`` pairs in document order."""
        if self.kind is not DocumentKind.OBJECT:
            raise DocumentTypeError(f"{self._where()} should be an object, got {self.kind.value}")
        return [(str(label), Document(item, self._child_path(str(label)))) for label, item in self._value.items()]

    def as_str(self) -> str:
        if self.kind is not DocumentKind.STRING:
            raise DocumentTypeError(f"{self._where()} should be a string, got {self.kind.value}")
        return self._value

    def as_bool(self) -> bool:
        if self.kind is not DocumentKind.BOOL:
            raise DocumentTypeError(f"{self._where()} should be a bool, got {self.kind.value}")
        return self._value

    def as_str_list(self) -> list[str]:
        return [item.as_str() for item in self.items()]

    def as_str_map(self) -> dict[str, str]:
        return {label: item.as_str() for label, item in self.fields()}

    def decode_identity(self) -> ResourceRef:
        """Decode the ``{group, kind}`` base identity of a rule or declaration.

        ``resource`` is accepted as an alias of ``kind``.
        """
        group_doc = self.lookup("group")
        kind_doc = self.lookup("kind") or self.lookup("resource")
        if kind_doc is None:
            raise DocumentTypeError(f"{self._where()} has no kind")
        group = "" if group_doc is None or group_doc.kind is DocumentKind.NULL else group_doc.as_str()
        return ResourceRef(group=group, kind=kind_doc.as_str())


class TemplateCompiler:
    """Renders rule templates (Jinja2 producing YAML) into documents."""

    def __init__(self) -> None:
        self._env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template: str, context: dict[str, Any]) -> Document:
        """Render *template* with *context* exposed as the ``context`` variable.

        Raises:
            TemplateRenderError: the template does not compile, fails while
                evaluating, or does not produce a YAML mapping.
        """
        try:
            text = self._env.from_string(template).render(context=context)
        except _EVALUATION_ERRORS as exc:
            raise TemplateRenderError(f"rule template evaluation failed: {exc}") from exc

        try:
            value = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise TemplateRenderError(f"rendered rules are not valid YAML: {exc}") from exc

        if value is None:
            value = {}
        if not isinstance(value, dict):
            raise TemplateRenderError(f"rendered rules must be a mapping, got {type(value).__name__}")
        return Document(value)


class DocumentBinder:
    """Binds the rule template to the live state of one resource.

    Every call re-fetches and re-renders; nothing is cached between calls.
    """

    def __init__(
        self,
        template: str,
        store: ResourceStore,
        compiler: TemplateCompiler | None = None,
    ) -> None:
        self._template = template
        self._store = store
        self._compiler = compiler or TemplateCompiler()

    async def resolve_document(self, resource: ResourceRef) -> Document:
        live = await self._store.get(resource)
        document = self._compiler.render(self._template, {"data": live})
        _logger.debug("rule_document_rendered", resource=str(resource))
        return document
