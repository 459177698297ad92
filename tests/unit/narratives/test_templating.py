"""Tests for placeholder extraction and narrative rendering."""

from app.services.narratives.templating import extract_placeholders, render_narrative


class TestExtractPlaceholders:
    def test_distinct_names_in_first_appearance_order(self):
        body = "The {{location}} {{component}} is {{condition}}; {{location}} again."
        assert extract_placeholders(body) == ["location", "component", "condition"]

    def test_names_are_trimmed(self):
        assert extract_placeholders("A {{ location }} and {{condition }}") == ["location", "condition"]

    def test_empty_body(self):
        assert extract_placeholders("") == []
        assert extract_placeholders("No tokens here") == []

    def test_case_is_preserved(self):
        assert extract_placeholders("{{roomName}} {{Area}}") == ["roomName", "Area"]


class TestRenderNarrative:
    def test_substitutes_known_variables(self):
        body = "The {{material}} shingles on the {{location}} roof show {{condition}}."
        variables = {"material": "wood", "location": "north", "condition": "damaged"}

        assert render_narrative(body, variables) == "The wood shingles on the north roof show damaged."

    def test_key_match_is_case_insensitive_and_whitespace_tolerant(self):
        assert render_narrative("At {{ LOCATION }}.", {"location": "rear"}) == "At rear."

    def test_missing_variables_become_unresolved(self):
        assert render_narrative("{{a}} and {{b}}", {"a": "x"}) == "x and [unresolved]"

    def test_none_values_render_unresolved(self):
        assert render_narrative("Room: {{roomName}}", {"roomName": None}) == "Room: [unresolved]"

    def test_non_string_values_are_stringified(self):
        assert render_narrative("{{quantity}} tiles", {"quantity": 3}) == "3 tiles"

    def test_regex_metacharacters_in_values_are_literal(self):
        assert render_narrative("Cost {{cost}}", {"cost": r"$1\g<0>"}) == r"Cost $1\g<0>"

    def test_keys_with_regex_characters_are_escaped(self):
        assert render_narrative("{{a.b}} {{axb}}", {"a.b": "dot"}) == "dot [unresolved]"

    def test_body_without_placeholders_is_unchanged(self):
        assert render_narrative("Plain text.", {"location": "north"}) == "Plain text."
