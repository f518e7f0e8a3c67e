"""Tests for RuleResolver and its per-query index."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from kubetopo.models.resources import ResourceRef
from kubetopo.topology.document import Document
from kubetopo.topology.errors import RuleDecodeError, RuleNotFoundError, RulesNotFoundError
from kubetopo.topology.rules import RuleResolver, TraversalContext

_DEPLOY = ResourceRef(group="apps", kind="Deployment", name="web", namespace="ns")
_POD = ResourceRef(group="", kind="Pod", name="p", namespace="ns")


def _ctx(doc: dict) -> TraversalContext:
    return TraversalContext(document=Document(doc))


class TestRuleFor:
    def test_finds_rule_by_group_kind(self) -> None:
        ctx = _ctx({"rules": [{"group": "apps", "kind": "Deployment", "subResources": []}, {"kind": "Pod"}]})

        rule = RuleResolver().rule_for(ctx, _DEPLOY)

        assert rule.lookup("subResources") is not None
        assert RuleResolver().rule_for(ctx, _POD).path == "rules[1]"

    def test_resource_alias_in_rule_entry(self) -> None:
        ctx = _ctx({"rules": [{"group": "apps", "resource": "Deployment"}]})
        assert RuleResolver().rule_for(ctx, _DEPLOY).path == "rules[0]"

    def test_group_must_match(self) -> None:
        ctx = _ctx({"rules": [{"group": "extensions", "kind": "Deployment"}]})
        with pytest.raises(RuleNotFoundError) as excinfo:
            RuleResolver().rule_for(ctx, _DEPLOY)
        assert excinfo.value.group_kind == "apps/Deployment"

    def test_no_rules_section(self) -> None:
        with pytest.raises(RulesNotFoundError):
            RuleResolver().rule_for(_ctx({"other": 1}), _DEPLOY)

    def test_null_rules_section(self) -> None:
        with pytest.raises(RulesNotFoundError):
            RuleResolver().rule_for(_ctx({"rules": None}), _DEPLOY)

    def test_rules_not_a_list(self) -> None:
        with pytest.raises(RuleDecodeError, match="should be a list"):
            RuleResolver().rule_for(_ctx({"rules": {"kind": "Pod"}}), _POD)

    def test_rule_without_kind(self) -> None:
        with pytest.raises(RuleDecodeError):
            RuleResolver().rule_for(_ctx({"rules": [{"group": "apps"}]}), _DEPLOY)

    def test_first_duplicate_wins(self) -> None:
        ctx = _ctx({"rules": [{"kind": "Pod", "id": 1}, {"kind": "Pod", "id": 2}]})
        assert RuleResolver().rule_for(ctx, _POD).path == "rules[0]"


class TestRuleIndex:
    def test_index_built_once_per_context(self) -> None:
        resolver = RuleResolver()
        ctx = _ctx({"rules": [{"kind": "Pod"}]})

        with patch.object(RuleResolver, "_build_index", wraps=resolver._build_index) as build:
            resolver.rule_for(ctx, _POD)
            resolver.rule_for(ctx, _POD)
            with pytest.raises(RuleNotFoundError):
                resolver.rule_for(ctx, _DEPLOY)

        assert build.call_count == 1
        assert ctx.rule_index is not None

    def test_contexts_do_not_share_index(self) -> None:
        resolver = RuleResolver()
        first = _ctx({"rules": [{"kind": "Pod"}]})
        second = _ctx({"rules": [{"group": "apps", "kind": "Deployment"}]})

        resolver.rule_for(first, _POD)
        resolver.rule_for(second, _DEPLOY)

        with pytest.raises(RuleNotFoundError):
            resolver.rule_for(second, _POD)
