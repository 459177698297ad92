"""Narrative engine: template suggestion, variable extraction and rendering."""

from app.services.narratives.narrative_service import NarrativeService
from app.services.narratives.scorer import NarrativeScorer, map_section_to_category
from app.services.narratives.templating import extract_placeholders, render_narrative
from app.services.narratives.variable_extractor import (
    VariableExtractor,
    extract_variables,
    validate_variables,
)

__all__ = [
    "NarrativeService",
    "NarrativeScorer",
    "VariableExtractor",
    "extract_placeholders",
    "extract_variables",
    "map_section_to_category",
    "render_narrative",
    "validate_variables",
]
