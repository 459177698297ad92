"""
Variable Extraction from Finding Text

Derives narrative variables from a finding's free text:
- Location (compass directions, front/rear, floors, numbered rooms)
- Quantity and unit (counts of tiles/vents/outlets, lengths, vague quantifiers)
- Condition (deficiency adjectives)
- Material (wood, masonry, metal, plastics, roofing/tile, wall finishes)
- Component (trade vocabulary, singularised; section name as fallback)
- Area, room name and dimension

Structured inspection data overrides anything found in the text, and the
four critical variables fall back to fixed wording so rendering never leaves
them unresolved.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

from app.schemas.narratives import ExtractedVariables, StructuredHints, VariableValidation
from app.services.narratives.constants import (
    AREA_PATTERNS,
    COMPONENT_PATTERNS,
    CONDITION_PATTERNS,
    DIMENSION_PATTERNS,
    LOCATION_PATTERNS,
    MATERIAL_PATTERNS,
    QUANTITY_PATTERNS,
    ROOM_NAME_PATTERNS,
    VARIABLE_DEFAULTS,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

# (hint field, variable field) in application order; later pairs win
STRUCTURED_OVERRIDES: tuple[tuple[str, str], ...] = (
    ("room", "room_name"),
    ("area", "area"),
    ("location", "location"),
    ("component", "component"),
    ("system", "component"),
    ("condition", "condition"),
    ("status", "condition"),
    ("material", "material"),
    ("quantity", "quantity"),
    ("count", "quantity"),
)


def _first_match(patterns: Sequence, text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


class VariableExtractor:
    """Extracts narrative variables from finding text using ordered regex patterns."""

    def extract(
        self,
        title: str,
        summary: str,
        section_name: Optional[str] = None,
        structured_data: Optional[Union[StructuredHints, Mapping[str, Any]]] = None,
    ) -> ExtractedVariables:
        """
        Extract variables from a finding.

        Args:
            title: Finding title
            summary: Finding summary
            section_name: Report section the finding belongs to, used as the
                component when the text names none
            structured_data: Optional structured hints that override text matches

        Returns:
            ExtractedVariables with defaults applied
        """
        text = f"{title or ''} {summary or ''}".lower()

        quantity, unit = self._extract_quantity(text)
        values: dict[str, Optional[str]] = {
            "location": self._extract_lower(LOCATION_PATTERNS, text),
            "condition": self._extract_lower(CONDITION_PATTERNS, text),
            "quantity": quantity,
            "unit": unit,
            "material": self._extract_lower(MATERIAL_PATTERNS, text),
            "component": self._extract_component(text, section_name),
            "area": self._extract_lower(AREA_PATTERNS, text),
            "room_name": _first_match(ROOM_NAME_PATTERNS, text),
            "dimension": _first_match(DIMENSION_PATTERNS, text),
        }

        if structured_data is not None:
            values.update(self._from_structured_data(structured_data))

        for name, default in VARIABLE_DEFAULTS.items():
            if not values.get(name):
                values[name] = default

        variables = ExtractedVariables(**values)

        LOGGER.debug(
            "Variables extracted",
            extra={
                "text": text[:100],
                "extracted": sorted(variables.as_template_vars()),
            },
        )

        return variables

    @staticmethod
    def _extract_lower(patterns: Sequence, text: str) -> Optional[str]:
        value = _first_match(patterns, text)
        return value.lower() if value else None

    @staticmethod
    def _extract_quantity(text: str) -> tuple[Optional[str], Optional[str]]:
        """Quantity and unit from the first matching quantity pattern."""
        for pattern in QUANTITY_PATTERNS:
            match = pattern.search(text)
            if match:
                unit = match.group(2) if pattern.groups >= 2 else None
                return match.group(1), unit or None
        return None, None

    @staticmethod
    def _extract_component(text: str, section_name: Optional[str]) -> Optional[str]:
        """Component named in the text (trailing plural 's' stripped), else the section name."""
        value = _first_match(COMPONENT_PATTERNS, text)
        if value:
            value = value.lower()
            return value[:-1] if value.endswith("s") else value

        if section_name:
            return section_name.lower()

        return None

    @staticmethod
    def _from_structured_data(
        data: Union[StructuredHints, Mapping[str, Any]],
    ) -> dict[str, str]:
        hints = data if isinstance(data, StructuredHints) else StructuredHints.model_validate(dict(data))

        overrides: dict[str, str] = {}
        for hint_field, variable in STRUCTURED_OVERRIDES:
            value = getattr(hints, hint_field)
            if value:
                overrides[variable] = str(value)
        return overrides


def extract_variables(
    title: str,
    summary: str,
    section_name: Optional[str] = None,
    structured_data: Optional[Union[StructuredHints, Mapping[str, Any]]] = None,
) -> ExtractedVariables:
    """Convenience wrapper around VariableExtractor.extract."""
    return VariableExtractor().extract(title, summary, section_name, structured_data)


def validate_variables(
    variables: Union[ExtractedVariables, Mapping[str, Any]],
    required_placeholders: Sequence[str],
) -> VariableValidation:
    """Check that every required placeholder has a non-empty value.

    Names are compared case-insensitively, as rendering matches them.

    Args:
        variables: Variable bag keyed by placeholder name
        required_placeholders: Placeholder names a template references

    Returns:
        VariableValidation listing the missing placeholder names
    """
    if isinstance(variables, ExtractedVariables):
        variables = variables.as_template_vars()

    provided = {str(key).lower() for key, value in variables.items() if value}
    missing = [name for name in required_placeholders if name.lower() not in provided]
    return VariableValidation(is_valid=not missing, missing=missing)
