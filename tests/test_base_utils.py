"""
Tests for fiction_forge/base_utils.py -- JSON extraction/loading and the template engine.
"""

import pytest

from fiction_forge.base_utils import BaseUtils
from fiction_forge.errors import TemplateFailure
from fiction_forge.fiction_prompts import PROMPT_TEMPLATES


@pytest.fixture
def utils():
    return BaseUtils()


class TestExtractJsonBlock:
    def test_prefers_fenced_block(self, utils):
        raw = 'Intro {"not": "this"}\n```json\n{"name": "fenced"}\n```\nbye'
        assert utils.extract_json_block(raw) == '{"name": "fenced"}'

    def test_bare_object_with_nesting(self, utils):
        raw = 'Here you go: {"data": {"name": "A"}, "spec": "x"} Enjoy!'
        assert utils.extract_json_block(raw) == '{"data": {"name": "A"}, "spec": "x"}'

    def test_bare_array(self, utils):
        assert utils.extract_json_block('Result: [{"a": 1}, {"b": 2}]') == '[{"a": 1}, {"b": 2}]'

    def test_no_json_returns_trimmed_text(self, utils):
        assert utils.extract_json_block("   just words   ") == "just words"

    def test_empty(self, utils):
        assert utils.extract_json_block(None) == ""

    def test_truncated_object_keeps_outer_brace(self, utils):
        raw = 'Lorebook: {"name": "Lore", "entries": ["Kaelen"], "scan'
        assert utils.extract_json_block(raw) == '["Kaelen"]'
        assert utils.extract_json_block(raw, expect_object=True) == '{"name": "Lore", "entries": ["Kaelen"], "scan'

    def test_expect_object_leaves_top_level_array(self, utils):
        assert utils.extract_json_block('[{"a": 1}]', expect_object=True) == '[{"a": 1}]'


class TestLoadFaultTolerantJson:
    def test_plain_json(self, utils):
        assert utils.load_fault_tolerant_json('{"a": [1, 2]}') == {"a": [1, 2]}

    def test_comments_are_tolerated(self, utils):
        text = '{\n  "scan_depth": 35, // deeper scan\n  "enabled": true\n}'
        assert utils.load_fault_tolerant_json(text) == {"scan_depth": 35, "enabled": True}

    def test_trailing_comma_is_repaired(self, utils):
        assert utils.load_fault_tolerant_json('{"a": 1, "b": [1, 2,],}') == {"a": 1, "b": [1, 2]}

    def test_empty_input_raises(self, utils):
        with pytest.raises(ValueError):
            utils.load_fault_tolerant_json("   ")


class TestRenderTemplate:
    def test_fills_named_slots(self, utils):
        assert utils.render_template("Hello {name} of {place}", name="Kae", place="Ash") == "Hello Kae of Ash"

    def test_macros_are_left_alone(self, utils):
        text = utils.render_template("{{user}} meets {{char}} in {series_name}", series_name="Ashfall")
        assert text == "{{user}} meets {{char}} in Ashfall"

    def test_missing_parameter_fails(self, utils):
        with pytest.raises(TemplateFailure, match="missing parameters: tool_purpose"):
            utils.render_template("{series_name}: {tool_purpose}", series_name="Ashfall")

    def test_blank_parameter_counts_as_missing(self, utils):
        with pytest.raises(TemplateFailure, match="tool_purpose"):
            utils.render_template("{series_name}: {tool_purpose}", series_name="Ashfall", tool_purpose="   ")

    def test_extra_parameter_fails(self, utils):
        with pytest.raises(TemplateFailure, match="unexpected parameters: bogus"):
            utils.render_template("{series_name}", series_name="Ashfall", bogus="x")

    def test_values_are_not_rescanned(self, utils):
        assert utils.render_template("{a}", a="{b}") == "{b}"


class TestPromptTemplates:
    EXPECTED_SLOTS = {
        "lorebook": {"series_name"},
        "master_lorebook": {"series_name"},
        "narrator": {"series_name", "narrator_name"},
        "tool_card": {"series_name", "tool_purpose"},
        "tool_suggestion": {"series_name", "world_summary"},
    }

    @pytest.mark.parametrize("template_id", sorted(EXPECTED_SLOTS))
    def test_slots(self, utils, template_id):
        assert utils.template_placeholders(PROMPT_TEMPLATES[template_id]) == self.EXPECTED_SLOTS[template_id]

    def test_summary_slots(self, utils):
        slots = utils.template_placeholders(PROMPT_TEMPLATES["contextual_summary"])
        assert {"entry_1_comment", "entry_3_content", "lorebook_description", "narrator_personality"} <= slots

    def test_tool_card_keeps_macros(self, utils):
        prompt = utils.render_template(PROMPT_TEMPLATES["tool_card"], series_name="Ashfall", tool_purpose="Inventory")
        assert "{{char}}" in prompt and "{{user}}" in prompt
        assert "Inventory" in prompt and "Ashfall" in prompt
        assert "{series_name}" not in prompt
