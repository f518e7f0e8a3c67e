"""Rule templates shipped with kubetopo."""

from __future__ import annotations

from importlib import resources

DEFAULT_RULES_TEMPLATE = "default_rules.yaml.j2"


def load_rule_template(path: str | None = None) -> str:
    """Return the rule template at *path*, or the bundled default rules."""
    if path:
        with open(path, encoding="utf-8") as fh:
            return fh.read()
    return resources.files(__package__).joinpath(DEFAULT_RULES_TEMPLATE).read_text(encoding="utf-8")
