"""Placeholder extraction and mustache-style rendering of narrative bodies."""

import re
from collections.abc import Mapping
from typing import Any

from app.services.narratives.constants import UNRESOLVED_MARKER

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def extract_placeholders(body: str) -> list[str]:
    """Distinct placeholder names used in a template body.

    Names are trimmed of surrounding whitespace and returned in order of
    first appearance.

    >>> extract_placeholders("Text {{a}} and {{ B }} twice {{a}}")
    ['a', 'B']
    """
    if not body:
        return []

    names: list[str] = []
    for raw in PLACEHOLDER_PATTERN.findall(body):
        name = raw.strip()
        if name not in names:
            names.append(name)
    return names


def render_narrative(body: str, variables: Mapping[str, Any]) -> str:
    """Substitute variables into a template body.

    Every ``{{ key }}`` (case-insensitive, whitespace around the key allowed)
    is replaced by ``str(value)``. Keys whose value is None are left for the
    final pass, which turns any remaining placeholder into the unresolved
    marker. Never raises for missing variables.
    """
    rendered = body or ""

    for key, value in (variables or {}).items():
        if value is None:
            continue
        replacement = str(value)
        pattern = re.compile(r"\{\{\s*" + re.escape(str(key)) + r"\s*\}\}", re.IGNORECASE)
        rendered = pattern.sub(lambda _match: replacement, rendered)

    return PLACEHOLDER_PATTERN.sub(UNRESOLVED_MARKER, rendered)
