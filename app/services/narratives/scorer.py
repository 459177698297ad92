"""
Lexical Scoring of Narrative Templates against Findings

Score = keyword overlap (weighted) + component boost + severity boost
      + tag boost (capped) + popularity boost (capped), capped at 1.0.

This is a lexical heuristic, not semantic search; the weights are fixed.
"""

import re
from typing import Any, Optional, Protocol, Sequence

from app.services.narratives.constants import (
    COMPONENT_MATCH_BOOST,
    DEFAULT_CATEGORY,
    KEYWORD_OVERLAP_WEIGHT,
    MAX_SCORE,
    SECTION_TO_CATEGORY_MAP,
    SEVERITY_MATCH_BOOST,
    TAG_BOOST_MAX,
    TAG_MATCH_BOOST,
    USE_COUNT_BOOST,
    USE_COUNT_BOOST_MAX,
)

WHITESPACE = re.compile(r"\s+")


class ScorableFinding(Protocol):
    title: str
    summary: str
    severity: Optional[str]


class ScorableTemplate(Protocol):
    title: str
    body: str
    component: Optional[str]
    severity: Optional[str]
    tags: Optional[Sequence[str]]
    use_count: Optional[int]


def map_section_to_category(section_name: Optional[str]) -> str:
    """Template category for a report section name; unknown or missing maps to OTHER."""
    return SECTION_TO_CATEGORY_MAP.get((section_name or "").lower(), DEFAULT_CATEGORY)


def finding_text(finding: ScorableFinding) -> str:
    return f"{finding.title or ''} {finding.summary or ''}".lower()


def tokenize(text: str) -> set[str]:
    # Splitting on the pattern keeps empty edge tokens, so the set is never empty
    return set(WHITESPACE.split(text))


def _raw(value: Any) -> Any:
    return getattr(value, "value", value)


class NarrativeScorer:
    """Scores one narrative template against one finding."""

    def score(self, finding: ScorableFinding, template: ScorableTemplate) -> float:
        """
        Compute the similarity score.

        Args:
            finding: Object with title, summary and severity
            template: Object with title, body, component, severity, tags and use_count

        Returns:
            Score in [0.0, 1.0]
        """
        text = finding_text(finding)
        score = self.keyword_score(text, f"{template.title or ''} {template.body or ''}".lower())

        if template.component and template.component.lower() in text:
            score += COMPONENT_MATCH_BOOST

        # Two missing severities count as a match
        if _raw(template.severity) == _raw(finding.severity):
            score += SEVERITY_MATCH_BOOST

        if template.tags:
            tag_matches = sum(1 for tag in template.tags if tag.lower() in text)
            score += min(tag_matches * TAG_MATCH_BOOST, TAG_BOOST_MAX)

        score += min((template.use_count or 0) * USE_COUNT_BOOST, USE_COUNT_BOOST_MAX)

        return min(score, MAX_SCORE)

    @staticmethod
    def keyword_score(left: str, right: str) -> float:
        """Shared-token count over the larger token set, weighted."""
        finding_tokens = tokenize(left)
        template_tokens = tokenize(right)
        overlap = len(finding_tokens & template_tokens)
        return overlap / max(len(finding_tokens), len(template_tokens)) * KEYWORD_OVERLAP_WEIGHT
