# fiction_forge/records.py
"""
SillyTavern V2 records produced by the forge, and the parsing layer that turns
model output into them.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fiction_forge.base_utils import LOG_PREVIEW_CHARS, BaseUtils
from fiction_forge.errors import ParseFailure

logger = logging.getLogger("fiction_forge")

CARD_SPEC = "chara_card_v2"
CARD_SPEC_VERSION = "2.0"

# Joins several serialized artifacts in one response body.
ARTIFACT_SEPARATOR = "CHARACTER_CARD_SEPARATOR_AI_FICTION_FORGE"
ARTIFACT_JOINER = f"\n\n{ARTIFACT_SEPARATOR}\n\n"


def _string_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return value


class LorebookEntry(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    keys: List[str] = Field(default_factory=list)
    content: str = ""
    enabled: bool = True
    insertion_order: int = 0
    priority: Optional[int] = None
    comment: Optional[str] = None
    selective_logic: Optional[Union[str, int]] = Field(default=None, alias="selectiveLogic")
    secondary_keys: Optional[List[str]] = Field(default=None, alias="secondaryKeys")
    constant: Optional[bool] = None
    case_sensitive: Optional[bool] = None
    probability: Optional[int] = None
    extensions: Optional[Dict[str, Any]] = None

    @field_validator("keys", mode="before")
    @classmethod
    def _keys_as_list(cls, value):
        return _string_list(value)

    @field_validator("content", mode="before")
    @classmethod
    def _content_as_text(cls, value):
        return "" if value is None else value

    @field_validator("insertion_order", mode="before")
    @classmethod
    def _order_default(cls, value):
        return 0 if value is None else value


class Lorebook(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    description: Optional[str] = None
    scan_depth: Optional[int] = None
    token_budget: Optional[int] = None
    recursive_scanning: Optional[bool] = None
    insertion_order: int = 0
    enabled: bool = True
    entries: List[LorebookEntry] = Field(default_factory=list)
    extensions: Optional[Dict[str, Any]] = None

    @field_validator("entries", mode="before")
    @classmethod
    def _entries_default(cls, value):
        return [] if value is None else value

    @field_validator("insertion_order", mode="before")
    @classmethod
    def _order_default(cls, value):
        return 0 if value is None else value


class CardData(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    description: str = ""
    personality: str = ""
    scenario: str = ""
    first_mes: str = ""
    mes_example: str = ""
    creator_notes: Optional[str] = None
    system_prompt: Optional[str] = None
    post_history_instructions: Optional[str] = None
    alternate_greetings: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    creator: Optional[str] = None
    character_version: Optional[str] = None
    character_book: Optional[Lorebook] = None
    visual_description: Optional[str] = None
    thought_pattern: Optional[str] = None
    speech_pattern: Optional[str] = None
    relationships: Optional[str] = None
    goals: Optional[str] = None
    fears: Optional[str] = None
    strengths: Optional[str] = None
    weaknesses: Optional[str] = None
    alignment: Optional[str] = None
    tropes: Optional[List[str]] = None
    extensions: Optional[Dict[str, Any]] = None

    @field_validator("name", "description", "personality", "scenario", "first_mes", "mes_example", mode="before")
    @classmethod
    def _required_text(cls, value):
        return "" if value is None else value

    @field_validator("alternate_greetings", "tags", "tropes", mode="before")
    @classmethod
    def _optional_lists(cls, value):
        return None if value is None else _string_list(value)


class CharacterCard(BaseModel):
    model_config = ConfigDict(extra="allow")

    spec: str = ""
    spec_version: str = ""
    data: CardData = Field(default_factory=CardData)
    extensions: Optional[Dict[str, Any]] = None

    @field_validator("spec", "spec_version", mode="before")
    @classmethod
    def _blank_if_missing(cls, value):
        return "" if value is None else value

    @field_validator("data", mode="before")
    @classmethod
    def _data_default(cls, value):
        return {} if value is None else value


class ToolSuggestion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tool_type: str = ""
    tool_name: str = ""
    tool_justification: str = ""

    @field_validator("tool_type", "tool_name", "tool_justification", mode="before")
    @classmethod
    def _text(cls, value):
        return "" if value is None else str(value).strip()


def record_to_json(record: BaseModel) -> str:
    return json.dumps(record.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2, ensure_ascii=False)


def normalize_card(card: CharacterCard, default_name: str) -> CharacterCard:
    """Fills the fixed spec markers and the name, and strips any embedded lorebook."""
    card = card.model_copy(deep=True)
    if not card.spec:
        card.spec = CARD_SPEC
    if not card.spec_version:
        card.spec_version = CARD_SPEC_VERSION
    if not card.data.name.strip():
        card.data.name = default_name
    card.data.character_book = None
    return card


def normalize_lorebook(lorebook: Lorebook, default_name: str) -> Lorebook:
    lorebook = lorebook.model_copy(deep=True)
    lorebook.enabled = True
    if not (lorebook.name or "").strip():
        lorebook.name = default_name
    for entry in lorebook.entries:
        entry.enabled = True
    return lorebook


class RecordParser(BaseUtils):
    """Mixin: model answer text -> validated records, or ParseFailure."""

    def _decode_json(self, response_text: str, what: str, expected_type, session_id: str = "", strict: bool = True):
        """
        Cards and lorebooks are decoded strictly with json.loads; lenient loading
        (comments, repair, yaml) is only used for the tool suggestion list.
        """
        raw = response_text or ""
        extracted = self.extract_json_block(raw, expect_object=expected_type is dict)

        def _fail(reason: str):
            logger.warning(
                f"Failed to parse {what} (Log ID {session_id}): {reason}. AI Response:\n{raw}"
            )
            return ParseFailure(
                f"failed to parse AI response for {what}: {reason}",
                raw_prefix=raw[:LOG_PREVIEW_CHARS],
                session_id=session_id,
            )

        if not extracted.startswith(("{", "[")):
            raise _fail("response does not contain a JSON object or array")
        if strict:
            try:
                data = json.loads(extracted)
            except json.JSONDecodeError as e:
                raise _fail(f"AI response was not valid JSON ({e})") from e
        else:
            try:
                data = self.load_fault_tolerant_json(extracted)
            except ValueError as e:
                raise _fail(str(e)) from e
        if not isinstance(data, expected_type):
            raise _fail(f"expected a JSON {'object' if expected_type is dict else 'array'}, got {type(data).__name__}")
        return data, _fail

    def parse_card(self, response_text: str, *, what: str = "Character Card", session_id: str = "") -> CharacterCard:
        data, fail = self._decode_json(response_text, what, dict, session_id)
        try:
            return CharacterCard.model_validate(data)
        except ValidationError as e:
            raise fail(f"card does not match the V2 layout: {e.error_count()} invalid field(s)") from e

    def parse_lorebook(self, response_text: str, *, what: str = "Lorebook", session_id: str = "") -> Lorebook:
        data, fail = self._decode_json(response_text, what, dict, session_id)
        try:
            return Lorebook.model_validate(data)
        except ValidationError as e:
            raise fail(f"lorebook does not match the V2 layout: {e.error_count()} invalid field(s)") from e

    def parse_tool_suggestions(self, response_text: str, *, session_id: str = "") -> List[ToolSuggestion]:
        """Accepts a bare array or an object wrapping it under "suggested_tools"."""
        what = "tool suggestions"
        data, fail = self._decode_json(response_text, what, (list, dict), session_id, strict=False)
        if isinstance(data, dict):
            data = data.get("suggested_tools")
            if not isinstance(data, list):
                raise fail("object has no 'suggested_tools' array")
        if any(not isinstance(item, dict) for item in data):
            raise fail("every suggestion must be a JSON object")
        return [ToolSuggestion.model_validate(item) for item in data]
