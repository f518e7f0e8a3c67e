"""Rule-driven resource topology.

Exports:
    ResourceTopology  -- Engine exposing get_sub_resources / get_peer_resources.
    DocumentBinder    -- Renders the rule template against a live object.
    TemplateCompiler  -- Jinja2 + YAML template compiler.
    Document          -- Path-addressable view over a rendered rule document.
    load_rule_template -- Loads a rules file or the bundled default rules.
"""

from kubetopo.topology.document import Document, DocumentBinder, DocumentKind, TemplateCompiler
from kubetopo.topology.engine import ResourceTopology
from kubetopo.topology.errors import (
    DocumentTypeError,
    ResourceNotFoundError,
    RuleDecodeError,
    RuleNotFoundError,
    RulesNotFoundError,
    SelectorDecodeError,
    SelectorMissingError,
    StoreError,
    StoreUnavailableError,
    TemplateRenderError,
    TopologyDepthExceededError,
    TopologyError,
    UnsupportedBuiltinError,
    UnsupportedSelectorError,
)
from kubetopo.topology.templates import load_rule_template

__all__ = [
    "Document",
    "DocumentBinder",
    "DocumentKind",
    "DocumentTypeError",
    "ResourceNotFoundError",
    "ResourceTopology",
    "RuleDecodeError",
    "RuleNotFoundError",
    "RulesNotFoundError",
    "SelectorDecodeError",
    "SelectorMissingError",
    "StoreError",
    "StoreUnavailableError",
    "TemplateRenderError",
    "TopologyDepthExceededError",
    "TopologyError",
    "UnsupportedBuiltinError",
    "UnsupportedSelectorError",
    "load_rule_template",
]
