"""
Shared pytest fixtures for the AI Fiction Forge test suite.

Provides:
    - FakeCompletion: scripted stand-in for the AI completion capability
    - make_orchestrator: orchestrator bound to a fake, a temp jsons dir and a fixed session id
    - sample payloads: narrator / tool cards, lorebooks, tool suggestions
"""

import json

import pytest

from fiction_forge.errors import AiCallFailure
from fiction_forge.orchestrator import ForgeOrchestrator


SESSION_ID = "ashfall_chronicles_20260101_120000.000"


class FakeCompletion:
    """
    Replays a script of answers, one per call. Each item is a string (returned),
    an exception instance (raised) or a callable taking (prompt, cancel_event).
    """

    def __init__(self, script):
        self.script = list(script)
        self.prompts = []
        self.calls = []

    @property
    def call_count(self):
        return len(self.prompts)

    def complete(self, prompt, model_name, api_key, *, cancel_event=None):
        self.prompts.append(prompt)
        self.calls.append((model_name, api_key))
        if not self.script:
            raise AiCallFailure("fake completion script exhausted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(prompt, cancel_event)
        return item


def card_json(name="", description="Guides the telling of tales.", personality="Measured and wry.", **extra):
    data = {
        "name": name,
        "description": description,
        "personality": personality,
        "scenario": "A framework for stories.",
        "first_mes": "Welcome, {{user}}.",
        "mes_example": "<START>\n{{user}}: Hi\n{{char}}: Hello",
        "tags": ["AI Generated"],
    }
    data.update(extra)
    return json.dumps({"spec": "chara_card_v2", "spec_version": "2.0", "data": data})


def lorebook_json(name=None, entries=None, enabled=False, description="Lore of the ashen world."):
    if entries is None:
        entries = [
            {
                "keys": ["Kaelen", "the Ashborn"],
                "content": "Kaelen is the last heir of the burned city.",
                "enabled": False,
                "insertion_order": 1,
                "priority": 100,
                "comment": "Primary Character: Kaelen - The Ashborn heir",
            },
            {
                "keys": ["Ember Mark"],
                "content": "The ember mark is a copper coin stamped with a flame.",
                "enabled": False,
                "insertion_order": 2,
                "priority": 80,
                "comment": "Concept: Economy - The Ember Mark",
            },
        ]
    payload = {
        "description": description,
        "scan_depth": 35,
        "token_budget": 5000,
        "insertion_order": 0,
        "enabled": enabled,
        "recursive_scanning": True,
        "entries": entries,
    }
    if name is not None:
        payload["name"] = name
    return json.dumps(payload)


def suggestions_json(count=2):
    tools = [
        {"tool_type": "Vitality Ledger", "tool_name": "The Cinder Ledger", "tool_justification": "Survival is costly."},
        {"tool_type": "Faction Registry", "tool_name": "The Ash Accord", "tool_justification": "Loyalties shift."},
        {"tool_type": "Bestiary", "tool_name": "Codex of Soot", "tool_justification": "Monsters roam."},
    ]
    return json.dumps(tools[:count])


@pytest.fixture
def jsons_dir(tmp_path):
    return tmp_path / "jsons"


@pytest.fixture
def make_orchestrator(jsons_dir):
    def _make(script, **kwargs):
        fake = FakeCompletion(script)
        orchestrator = ForgeOrchestrator(
            fake,
            jsons_dir=str(kwargs.pop("jsons_dir", jsons_dir)),
            session_id_factory=lambda series: SESSION_ID,
        )
        return orchestrator, fake

    return _make
