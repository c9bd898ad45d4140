"""
Tests for fiction_forge/records.py -- parsing and normalization of cards and lorebooks.
"""

import json

import pytest

from conftest import card_json, lorebook_json
from fiction_forge.errors import ParseFailure
from fiction_forge.records import (
    CharacterCard,
    Lorebook,
    RecordParser,
    normalize_card,
    normalize_lorebook,
    record_to_json,
)


@pytest.fixture
def parser():
    return RecordParser()


class TestParseCard:
    def test_fenced_card_with_prose(self, parser):
        raw = "Sure! Here is the card:\n```json\n" + card_json(name="Narrator") + "\n```\nHope it helps."
        card = parser.parse_card(raw)
        assert card.data.name == "Narrator"
        assert card.data.first_mes == "Welcome, {{user}}."

    def test_unknown_fields_survive(self, parser):
        card = parser.parse_card(card_json(name="N", favourite_colour="ash grey"))
        dumped = json.loads(record_to_json(card))
        assert dumped["data"]["favourite_colour"] == "ash grey"

    def test_prose_only_is_parse_failure(self, parser):
        with pytest.raises(ParseFailure) as exc:
            parser.parse_card("I'm sorry, I cannot help with that request.", session_id="sid-1")
        assert exc.value.session_id == "sid-1"
        assert exc.value.raw_prefix.startswith("I'm sorry")

    def test_raw_prefix_is_bounded(self, parser):
        raw = "nope " * 1000
        with pytest.raises(ParseFailure) as exc:
            parser.parse_card(raw)
        assert len(exc.value.raw_prefix) == 600
        assert raw not in str(exc.value)

    def test_array_is_not_a_card(self, parser):
        with pytest.raises(ParseFailure, match="expected a JSON object"):
            parser.parse_card('[{"name": "x"}]')

    def test_wrong_field_type_is_parse_failure(self, parser):
        with pytest.raises(ParseFailure):
            parser.parse_card(json.dumps({"spec": "chara_card_v2", "data": {"tags": {"not": "a list"}}}))


INVALID_JSON_ANSWERS = {
    "unquoted_keys": "{name: Lore, entries: []}",
    "trailing_garbage": '{"name": "Lore", "entries": []}}',
    "truncated_object": 'Here it is: {"name": "Lore", "entries": [{"keys": ["Kaelen"], "content": "heir"}',
    "comments": '{\n  "name": "Lore", // the title\n  "entries": []\n}',
}


class TestStrictDecoding:
    @pytest.mark.parametrize("answer", list(INVALID_JSON_ANSWERS.values()), ids=list(INVALID_JSON_ANSWERS))
    def test_lorebook_rejects_invalid_json(self, parser, answer):
        with pytest.raises(ParseFailure, match="not valid JSON"):
            parser.parse_lorebook(answer)

    @pytest.mark.parametrize("answer", list(INVALID_JSON_ANSWERS.values()), ids=list(INVALID_JSON_ANSWERS))
    def test_card_rejects_invalid_json(self, parser, answer):
        with pytest.raises(ParseFailure, match="not valid JSON"):
            parser.parse_card(answer)

    def test_truncated_object_is_not_reported_as_list(self, parser):
        with pytest.raises(ParseFailure) as exc:
            parser.parse_lorebook(INVALID_JSON_ANSWERS["truncated_object"])
        assert "got list" not in str(exc.value)

    def test_tool_suggestions_stay_lenient(self, parser):
        raw = '[{"tool_name": "A",}, {"tool_name": "B"},]'
        assert [s.tool_name for s in parser.parse_tool_suggestions(raw)] == ["A", "B"]


class TestNormalizeCard:
    def test_defaults_and_cleared_book(self, parser):
        raw = json.dumps({
            "data": {
                "description": "d",
                "character_book": {"name": "Embedded", "entries": [{"keys": ["k"], "content": "c"}]},
            }
        })
        card = normalize_card(parser.parse_card(raw), "Cinder Ledger for Ashfall")
        assert card.spec == "chara_card_v2"
        assert card.spec_version == "2.0"
        assert card.data.name == "Cinder Ledger for Ashfall"
        assert card.data.character_book is None
        assert "character_book" not in json.loads(record_to_json(card))["data"]

    def test_keeps_given_name(self):
        card = normalize_card(CharacterCard.model_validate({"data": {"name": "Given"}}), "Fallback")
        assert card.data.name == "Given"

    def test_does_not_mutate_input(self):
        original = CharacterCard.model_validate({"data": {"name": ""}})
        normalize_card(original, "Fallback")
        assert original.data.name == ""


class TestParseLorebook:
    def test_enabled_forced_everywhere(self, parser):
        lorebook = normalize_lorebook(parser.parse_lorebook(lorebook_json(enabled=False)), "Lore for Ashfall")
        assert lorebook.enabled is True
        assert all(entry.enabled for entry in lorebook.entries)
        dumped = json.loads(record_to_json(lorebook))
        assert dumped["enabled"] is True
        assert all(entry["enabled"] is True for entry in dumped["entries"])

    def test_default_name(self, parser):
        lorebook = normalize_lorebook(parser.parse_lorebook(lorebook_json()), "Comprehensive Lore for Ashfall")
        assert lorebook.name == "Comprehensive Lore for Ashfall"

    def test_single_key_string_becomes_list(self, parser):
        lorebook = parser.parse_lorebook(json.dumps({"entries": [{"keys": "Kaelen", "content": "heir"}]}))
        assert lorebook.entries[0].keys == ["Kaelen"]

    def test_camel_case_entry_fields_round_trip(self, parser):
        raw = json.dumps({"entries": [{"keys": ["a"], "content": "b", "secondaryKeys": ["c"], "selectiveLogic": 0}]})
        dumped = json.loads(record_to_json(parser.parse_lorebook(raw)))
        assert dumped["entries"][0]["secondaryKeys"] == ["c"]
        assert dumped["entries"][0]["selectiveLogic"] == 0

    def test_always_present_fields(self):
        dumped = json.loads(record_to_json(Lorebook()))
        assert set(dumped) == {"insertion_order", "enabled", "entries"}


class TestParseToolSuggestions:
    def test_bare_array(self, parser):
        raw = '[{"tool_type": "T", "tool_name": "N", "tool_justification": "J"}]'
        suggestions = parser.parse_tool_suggestions(raw)
        assert [(s.tool_type, s.tool_name, s.tool_justification) for s in suggestions] == [("T", "N", "J")]

    def test_wrapped_array(self, parser):
        raw = json.dumps({"suggested_tools": [{"tool_name": "A"}, {"tool_name": "B"}]})
        assert [s.tool_name for s in parser.parse_tool_suggestions(raw)] == ["A", "B"]

    def test_object_without_array_fails(self, parser):
        with pytest.raises(ParseFailure):
            parser.parse_tool_suggestions('{"tools": "none"}')

    def test_non_object_items_fail(self, parser):
        with pytest.raises(ParseFailure):
            parser.parse_tool_suggestions('["just a name", "another"]')
