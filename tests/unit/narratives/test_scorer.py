"""Tests for lexical narrative scoring and section mapping."""

import pytest

from app.database.models import Severity
from app.services.narratives.scorer import NarrativeScorer, map_section_to_category, tokenize


@pytest.fixture
def scorer():
    return NarrativeScorer()


class TestMapSectionToCategory:
    @pytest.mark.parametrize(
        "section,expected",
        [
            ("Roofing", "ROOFING"),
            ("grounds", "EXTERIOR"),
            ("Garage", "EXTERIOR"),
            ("Kitchen", "INTERIOR"),
            ("HVAC", "HVAC"),
            ("Attic", "OTHER"),
            (None, "OTHER"),
            ("", "OTHER"),
        ],
    )
    def test_mapping(self, section, expected):
        assert map_section_to_category(section) == expected


class TestTokenize:
    def test_edge_whitespace_keeps_empty_token(self):
        assert tokenize(" a b ") == {"", "a", "b"}

    def test_empty_text_yields_one_empty_token(self):
        assert tokenize("") == {""}


class TestNarrativeScorer:
    def test_roof_scenario_scores_above_suggestion_floor(self, scorer, make_finding, make_template):
        finding = make_finding(
            section_name="roofing",
            title="Damaged shingles",
            summary="Several wood shingles on the north roof are damaged",
        )
        template = make_template(
            title="Roof Shingle Damage",
            body="The {{material}} shingles on the {{location}} roof show {{condition}}.",
            component=None,
        )

        # 4 shared tokens over 10 template tokens, plus the matching (absent) severity
        assert scorer.score(finding, template) == pytest.approx(0.34)

    def test_component_boost(self, scorer, make_finding, make_template):
        finding = make_finding(title="Loose outlet", summary="cover", severity="MINOR")
        with_component = make_template(title="x", body="y", component="Outlet", severity="MAJOR")
        without_component = make_template(title="x", body="y", component=None, severity="MAJOR")

        delta = scorer.score(finding, with_component) - scorer.score(finding, without_component)
        assert delta == pytest.approx(0.2)

    def test_severity_boost_accepts_enum_and_string(self, scorer, make_finding, make_template):
        finding = make_finding(title="a", summary="b", severity=Severity.SAFETY)
        matching = make_template(title="x", body="y", component=None, severity="SAFETY")
        other = make_template(title="x", body="y", component=None, severity="MINOR")

        assert scorer.score(finding, matching) - scorer.score(finding, other) == pytest.approx(0.1)

    def test_tag_boost_is_capped(self, scorer, make_finding, make_template):
        finding = make_finding(title="a b c d e f", summary="", severity="INFO")
        template = make_template(
            title="zz", body="zz", component=None, severity="MINOR", tags=["a", "b", "c", "d", "e", "f"]
        )

        # six tag hits would be 0.3; the cap is 0.2
        assert scorer.score(finding, template) == pytest.approx(0.2)

    def test_use_count_boost_is_capped(self, scorer, make_finding, make_template):
        finding = make_finding(title="a", summary="b", severity="INFO")
        popular = make_template(title="zz", body="zz", component=None, severity="MINOR", use_count=500)
        fresh = make_template(title="zz", body="zz", component=None, severity="MINOR", use_count=3)

        assert scorer.score(finding, popular) == pytest.approx(0.1)
        assert scorer.score(finding, fresh) == pytest.approx(0.03)

    def test_score_never_exceeds_one(self, scorer, make_finding, make_template):
        finding = make_finding(title="loose outlet", summary="kitchen", severity="MINOR")
        template = make_template(
            title="loose outlet",
            body="kitchen",
            component="outlet",
            severity="MINOR",
            tags=["loose", "outlet", "kitchen", "outlet"],
            use_count=1000,
        )

        assert scorer.score(finding, template) == 1.0

    def test_keyword_score_uses_larger_token_set(self):
        # shared: {"a"}; larger set has 4 tokens
        assert NarrativeScorer.keyword_score("a b", "a c d e") == pytest.approx(0.15)

    def test_no_overlap_scores_zero(self, scorer, make_finding, make_template):
        finding = make_finding(title="alpha", summary="beta", severity="INFO")
        template = make_template(title="gamma", body="delta", component=None, severity="MINOR")

        assert scorer.score(finding, template) == 0.0
