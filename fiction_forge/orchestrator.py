# fiction_forge/orchestrator.py

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, Union

from fiction_forge.config import JSONS_DIR
from fiction_forge.errors import (
    AiCallFailure,
    GenerationCancelled,
    ParseFailure,
    PersistenceFailure,
    RequestValidationFailure,
    TemplateFailure,
)
from fiction_forge.file_saver import new_session_id, save_json_artifact
from fiction_forge.fiction_prompts import PROMPT_TEMPLATES
from fiction_forge.records import (
    ARTIFACT_JOINER,
    Lorebook,
    RecordParser,
    ToolSuggestion,
    normalize_card,
    normalize_lorebook,
    record_to_json,
)

logger = logging.getLogger("fiction_forge")

VALID_OPTIONS = ("1", "2", "3", "4")

OPTION_LABELS = {
    "1": "Lorebook Only (Comprehensive)",
    "2": "Narrator Card + Master Lorebook (Refined)",
    "3": "Utility/Tool Card Creator ({tool_purpose})",
    "4": "Narrator + Lorebook + Tailored Utils (Ultimate Pack)",
}

SUMMARY_PLACEHOLDER = "(Contextual summary generation failed or was skipped)"
NO_ENTRY_COMMENT = "(No further entry comment available)"
NO_ENTRY_SNIPPET = "(No further entry snippet available)"
NOT_PROVIDED = "(not provided)"

NARRATOR_SNIPPET_CHARS = 300
LOREBOOK_SNIPPET_CHARS = 300
ENTRY_SNIPPET_CHARS = 200
LORE_HINT_CHARS = 30
SUMMARY_ENTRY_COUNT = 3

# hint slot -> (comment keywords, content keywords, generic default)
LORE_HINT_RULES = {
    "lore_currency": (("economy",), ("currency", "coin"), "Standard Realm Currency (e.g., Gold Pieces, Credits)"),
    "lore_stats": (("character stat", "attribute"), (), "Vitality, Essence, Might (refer to lorebook for specifics)"),
    "lore_items": (("item", "artifact"), ("potion",), "Healing Draught, Mana Crystal (refer to lorebook for specifics)"),
    "lore_factions": (("faction", "organization", "guild"), (), "(Refer to lorebook for specific faction names)"),
    "lore_magic_tech": (("magic system", "technology", "tech level"), (), "(Refer to lorebook for specific system names)"),
}


@dataclass(frozen=True)
class GenerationRequest:
    api_key: str
    series: str
    option: str
    model: str
    tool_purpose: str = ""


@dataclass(frozen=True)
class StepSuccess:
    step: str
    artifact: Any
    json_text: Optional[str] = None
    saved_path: Optional[str] = None


@dataclass(frozen=True)
class StepFailure:
    step: str
    reason: str
    fatal: bool
    error: Optional[Exception] = None


StepOutcome = Union[StepSuccess, StepFailure]


@dataclass(frozen=True)
class GenerationResult:
    option_label: str
    session_id: str
    generated_json: str
    progress_log: Tuple[str, ...]
    outcomes: Tuple[StepOutcome, ...]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return "".join(self.progress_log)


def aggregate_artifacts(outcomes) -> str:
    """Serialized artifacts of the successful steps, in order, joined by the separator."""
    return ARTIFACT_JOINER.join(
        o.json_text for o in outcomes if isinstance(o, StepSuccess) and o.json_text
    )


def validate_request(request: GenerationRequest) -> None:
    if not (request.api_key or "").strip():
        raise RequestValidationFailure("API Key is missing")
    if not (request.series or "").strip():
        raise RequestValidationFailure("Series name is missing or empty")
    if not (request.option or "").strip():
        raise RequestValidationFailure("Option is missing")
    if request.option.strip() not in VALID_OPTIONS:
        raise RequestValidationFailure(f"Option must be one of {', '.join(VALID_OPTIONS)}")
    if request.option.strip() == "3" and not (request.tool_purpose or "").strip():
        raise RequestValidationFailure("Tool Card Purpose is required for Option 3")
    if not (request.model or "").strip():
        raise RequestValidationFailure("AI Model selection is missing")


@dataclass
class _Run:
    request: GenerationRequest
    session_id: str
    option_label: str
    cancel_event: threading.Event
    log: List[str] = field(default_factory=list)
    outcomes: List[StepOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def series(self) -> str:
        return self.request.series

    def say(self, line: str) -> None:
        self.log.append(line)

    def record(self, outcome: StepOutcome) -> StepOutcome:
        self.outcomes.append(outcome)
        if isinstance(outcome, StepFailure) and outcome.fatal and self.error is None:
            self.error = outcome.reason
        return outcome

    @property
    def stopped(self) -> bool:
        return self.error is not None

    def result(self) -> GenerationResult:
        return GenerationResult(
            option_label=self.option_label,
            session_id=self.session_id,
            generated_json=aggregate_artifacts(self.outcomes),
            progress_log=tuple(self.log),
            outcomes=tuple(self.outcomes),
            error=self.error,
        )


class ForgeOrchestrator(RecordParser):
    """
    Runs one generation request: picks the option flow, chains the
    render -> complete -> parse -> normalize -> persist steps, and folds every
    step outcome into a GenerationResult.

    The completion capability is injected; the orchestrator holds no state
    between requests.
    """

    def __init__(self, completion, jsons_dir: str = JSONS_DIR, session_id_factory: Callable[[str], str] = new_session_id):
        self.completion = completion
        self.jsons_dir = jsons_dir
        self.session_id_factory = session_id_factory

    def run(self, request: GenerationRequest, cancel_event: threading.Event | None = None) -> GenerationResult:
        validate_request(request)
        option = request.option.strip()
        request = GenerationRequest(
            api_key=request.api_key.strip(),
            series=request.series.strip(),
            option=option,
            model=request.model.strip(),
            tool_purpose=(request.tool_purpose or "").strip(),
        )
        run = _Run(
            request=request,
            session_id=self.session_id_factory(request.series),
            option_label=OPTION_LABELS[option].replace("{tool_purpose}", request.tool_purpose),
            cancel_event=cancel_event or threading.Event(),
        )
        self.color_print(
            f"[FORGE] Option {option} ({run.option_label}) for '{request.series}' | model={request.model} | log id={run.session_id}",
            color="cyan",
        )

        if option == "1":
            self._run_lorebook_only(run)
        elif option == "2":
            self._run_narrator_and_lorebook(run)
        elif option == "3":
            self._run_tool_card(run)
        elif option == "4":
            self._run_ultimate_pack(run)

        result = run.result()
        if result.ok:
            self.color_print(f"[FORGE] {run.session_id} finished with {len([o for o in result.outcomes if isinstance(o, StepSuccess)])} successful step(s)", color="green")
        else:
            self.color_print(f"[FORGE] {run.session_id} failed: {result.error}", color="red")
        return result

    # -----------------------
    # Option flows
    # -----------------------

    def _run_lorebook_only(self, run: _Run) -> None:
        run.say(f"Processing Option 1: Comprehensive Lorebook for '{run.series}'.\n")
        self._lorebook_step(
            run,
            step="lorebook",
            title="Comprehensive Lorebook",
            template_id="lorebook",
            default_name=f"Comprehensive Lore for {run.series}",
            kind="lorebook_comprehensive",
            fatal=True,
        )

    def _run_tool_card(self, run: _Run) -> None:
        purpose = run.request.tool_purpose
        run.say(f"Processing Option 3: Utility/Tool Card '{purpose}' for '{run.series}'.\n")
        outcome = self._card_step(
            run,
            step="tool_card",
            title=f"Utility/Tool Card '{purpose}'",
            prompt_parts=[("tool_card", {"series_name": run.series, "tool_purpose": purpose})],
            default_name=f"{purpose} for {run.series}",
            kind="tool_card",
            fatal=True,
        )
        if isinstance(outcome, StepSuccess):
            run.say(f"Option 3: Utility/Tool Card ('{purpose}') generation complete.\n")

    def _run_narrator_and_lorebook(self, run: _Run) -> None:
        run.say(f"Processing Option 2: Narrator Card + Master Lorebook for '{run.series}'. This is a multi-step process.\n\n")
        self._narrator_step(run)
        if run.stopped:
            return
        self._master_lorebook_step(run)
        if run.stopped:
            return
        run.say("Option 2 (Narrator Card + Master Lorebook) processing finished.\n")

    def _run_ultimate_pack(self, run: _Run) -> None:
        run.say(f"Processing Option 4: ULTIMATE PACK for '{run.series}'. This is a multi-step process and will take time.\n\n")

        narrator = self._narrator_step(run)
        if run.stopped:
            return

        lore = self._master_lorebook_step(run)
        if run.stopped:
            return
        lorebook = lore.artifact if isinstance(lore, StepSuccess) else Lorebook(enabled=False)

        summary = self._summary_step(run, narrator.artifact, lorebook)
        if run.stopped:
            return
        world_summary = summary.artifact if isinstance(summary, StepSuccess) else SUMMARY_PLACEHOLDER

        suggested = self._suggestion_step(run, world_summary)
        if run.stopped:
            return

        if isinstance(suggested, StepSuccess):
            for index, suggestion in enumerate(suggested.artifact, start=1):
                self._tailored_tool_step(run, index, suggestion, narrator.artifact, lorebook, world_summary)
                if run.stopped:
                    return
            run.say("Tailored utility card generation attempts complete.\n\n")

        run.say(f"Option 4: ULTIMATE PACK for '{run.series}' processing finished. Check all generated files and messages.\n")

    # -----------------------
    # Steps
    # -----------------------

    def _narrator_step(self, run: _Run) -> StepOutcome:
        narrator_name = f"The Narrator of {run.series}"
        return self._card_step(
            run,
            step="narrator",
            title="Narrator Card",
            prompt_parts=[("narrator", {"series_name": run.series, "narrator_name": narrator_name})],
            default_name=narrator_name,
            kind="narrator_card",
            fatal=True,
        )

    def _master_lorebook_step(self, run: _Run) -> StepOutcome:
        return self._lorebook_step(
            run,
            step="master_lorebook",
            title="Master Lorebook",
            template_id="master_lorebook",
            default_name=f"Master Lorebook for {run.series}",
            kind="master_lorebook",
            fatal=False,
        )

    def _summary_step(self, run: _Run, narrator, lorebook: Lorebook) -> StepOutcome:
        step = "contextual_summary"
        run.say("Step: Generating Contextual Summary for AI Tool Suggestion...\n")
        if self._cancel_requested(run, step):
            return run.outcomes[-1]
        try:
            prompt = self.render_prompt("contextual_summary", **self.summary_params(run.series, narrator, lorebook))
            text = self._complete(run, prompt).strip()
            if not text:
                raise AiCallFailure("AI returned an empty contextual summary")
        except GenerationCancelled as e:
            return self._cancelled(run, step, e)
        except (TemplateFailure, AiCallFailure) as e:
            run.say(f"  WARNING: Contextual Summary failed ({e}). Continuing with a generic placeholder.\n\n")
            return run.record(StepFailure(step=step, reason=f"contextual summary failed: {e}", fatal=False, error=e))

        logger.debug(f"[FORGE] contextual summary ({run.session_id}):\n{self.truncate(text, 600, '...')}")
        run.say("Contextual Summary generated.\n\n")
        return run.record(StepSuccess(step=step, artifact=text))

    def _suggestion_step(self, run: _Run, world_summary: str) -> StepOutcome:
        step = "tool_suggestion"
        run.say("Step: AI Suggesting 2 Tailored Utility Tools...\n")
        if self._cancel_requested(run, step):
            return run.outcomes[-1]
        try:
            prompt = self.render_prompt("tool_suggestion", series_name=run.series, world_summary=world_summary)
            raw = self._complete(run, prompt)
            suggestions = self.parse_tool_suggestions(raw, session_id=run.session_id)
        except GenerationCancelled as e:
            return self._cancelled(run, step, e)
        except ParseFailure as e:
            run.say(f"  ERROR parsing AI Tool Suggestions. Raw AI output (check logs for ID {run.session_id} for details): {e.raw_prefix}\n")
            run.say("Skipped generation of tailored utility tools as the tool suggestion step failed.\n\n")
            return run.record(StepFailure(step=step, reason=str(e), fatal=False, error=e))
        except (TemplateFailure, AiCallFailure) as e:
            run.say(f"  ERROR from AI during Tool Suggestion: {e}\n")
            run.say("Skipped generation of tailored utility tools as the tool suggestion step failed.\n\n")
            return run.record(StepFailure(step=step, reason=str(e), fatal=False, error=e))

        if len(suggestions) != 2:
            run.say(
                f"  AI did not suggest exactly two tools as requested. Received {len(suggestions)} suggestions. "
                "Proceeding without tailored tools.\n"
            )
            run.say("Skipped generation of tailored utility tools as AI suggestions were not successfully processed (wrong count).\n\n")
            return run.record(StepFailure(step=step, reason=f"expected 2 tool suggestions, got {len(suggestions)}", fatal=False))

        for i, tool in enumerate(suggestions, start=1):
            run.say(f"  AI Suggested Tool {i}: Type='{tool.tool_type}', Name='{tool.tool_name}', Justification='{tool.tool_justification}'\n")
        run.say("AI Tool Suggestion phase complete.\n\n")
        return run.record(StepSuccess(step=step, artifact=suggestions))

    def _tailored_tool_step(self, run: _Run, index: int, suggestion: ToolSuggestion, narrator, lorebook: Lorebook, world_summary: str) -> StepOutcome:
        tool_name = suggestion.tool_name or f"Utility Tool {index}"
        context = {
            "series_name": run.series,
            "tool_name": tool_name,
            "tool_type": suggestion.tool_type or "Utility Tool",
            "tool_justification": suggestion.tool_justification or NOT_PROVIDED,
            "narrator_name": narrator.data.name,
            "narrator_persona": self.truncate(narrator.data.personality, NARRATOR_SNIPPET_CHARS, "...") or NOT_PROVIDED,
            "world_summary": world_summary,
            **self.lore_hints(lorebook),
        }
        return self._card_step(
            run,
            step=f"tailored_tool_{index}",
            title=f"Tailored Utility Card {index} '{tool_name}'",
            prompt_parts=[
                ("tool_context", context),
                ("tool_card", {"series_name": run.series, "tool_purpose": tool_name}),
            ],
            default_name=tool_name,
            kind=f"utility_card_ai_suggested_{index}",
            fatal=False,
        )

    # -----------------------
    # Shared step primitives
    # -----------------------

    def _card_step(self, run: _Run, *, step, title, prompt_parts, default_name, kind, fatal) -> StepOutcome:
        return self._artifact_step(
            run,
            step=step,
            title=title,
            prompt_parts=prompt_parts,
            parse=lambda raw: self.parse_card(raw, what=title, session_id=run.session_id),
            normalize=lambda card: normalize_card(card, default_name),
            name_of=lambda card: card.data.name,
            kind=kind,
            fatal=fatal,
        )

    def _lorebook_step(self, run: _Run, *, step, title, template_id, default_name, kind, fatal) -> StepOutcome:
        return self._artifact_step(
            run,
            step=step,
            title=title,
            prompt_parts=[(template_id, {"series_name": run.series})],
            parse=lambda raw: self.parse_lorebook(raw, what=title, session_id=run.session_id),
            normalize=lambda lorebook: normalize_lorebook(lorebook, default_name),
            name_of=lambda lorebook: lorebook.name,
            kind=kind,
            fatal=fatal,
        )

    def _artifact_step(self, run: _Run, *, step, title, prompt_parts, parse, normalize, name_of, kind, fatal) -> StepOutcome:
        run.say(f"Step: Generating {title}...\n")
        self.color_print(f"[FORGE] {run.session_id} | step {step}", color="bright_blue")
        if self._cancel_requested(run, step):
            return run.outcomes[-1]

        try:
            prompt = "".join(self.render_prompt(template_id, **params) for template_id, params in prompt_parts)
            raw = self._complete(run, prompt)
            record = normalize(parse(raw))
        except GenerationCancelled as e:
            return self._cancelled(run, step, e)
        except TemplateFailure as e:
            run.say(f"  ERROR preparing prompt for {title}: {e}\n")
            return self._step_failed(run, step, title, f"prompt preparation failed for {title}: {e}", fatal, e)
        except AiCallFailure as e:
            run.say(f"  ERROR generating {title}: {e}\n")
            return self._step_failed(run, step, title, f"AI generation failed for {title}: {e}", fatal, e)
        except ParseFailure as e:
            run.say(f"  ERROR parsing {title}. Raw AI output (check logs for ID {run.session_id} for details): {e.raw_prefix}\n")
            return self._step_failed(run, step, title, str(e), fatal, e)

        json_text = record_to_json(record)
        saved_path = None
        try:
            saved_path = save_json_artifact(self.jsons_dir, run.series, kind, name_of(record), run.session_id, json_text)
            run.say(f"  Successfully generated and saved {title} to: {saved_path}\n")
        except PersistenceFailure as e:
            run.say(f"  Successfully generated {title} JSON, but FAILED to save. Error: {e}\n")
        run.say(f"{title} generation complete.\n\n")
        return run.record(StepSuccess(step=step, artifact=record, json_text=json_text, saved_path=saved_path))

    def _step_failed(self, run: _Run, step, title, reason, fatal, error) -> StepFailure:
        if not fatal:
            run.say(f"{title} failed; continuing with the remaining steps.\n\n")
        logger.info(f"[FORGE] {run.session_id} | step {step} failed ({'fatal' if fatal else 'non-fatal'}): {reason}")
        return run.record(StepFailure(step=step, reason=reason, fatal=fatal, error=error))

    def _complete(self, run: _Run, prompt: str) -> str:
        raw = self.completion.complete(prompt, run.request.model, run.request.api_key, cancel_event=run.cancel_event)
        logger.debug(f"[FORGE] {run.session_id} raw AI response:\n{self.truncate(raw, 600, '...')}")
        return raw

    def _cancel_requested(self, run: _Run, step: str) -> bool:
        if not run.cancel_event.is_set():
            return False
        self._cancelled(run, step, GenerationCancelled(f"generation cancelled before step '{step}'"))
        return True

    def _cancelled(self, run: _Run, step: str, error: Exception) -> StepFailure:
        run.say(f"  Generation cancelled: {error}\n")
        return run.record(StepFailure(step=step, reason=f"generation cancelled: {error}", fatal=True, error=error))

    # -----------------------
    # Prompt inputs
    # -----------------------

    def render_prompt(self, template_id: str, **params) -> str:
        template = PROMPT_TEMPLATES.get(template_id)
        if template is None:
            raise TemplateFailure(f"unknown prompt template '{template_id}'")
        return self.render_template(template, **params)

    def summary_params(self, series: str, narrator, lorebook: Lorebook) -> dict:
        params = {
            "series_name": series,
            "narrator_name": narrator.data.name or NOT_PROVIDED,
            "narrator_description": self.truncate(narrator.data.description, NARRATOR_SNIPPET_CHARS, "...") or NOT_PROVIDED,
            "narrator_personality": self.truncate(narrator.data.personality, NARRATOR_SNIPPET_CHARS, "...") or NOT_PROVIDED,
            "lorebook_name": lorebook.name or "(Master Lorebook unavailable)",
            "lorebook_description": self.truncate(lorebook.description, LOREBOOK_SNIPPET_CHARS, "...") or NOT_PROVIDED,
        }
        entries = lorebook.entries[:SUMMARY_ENTRY_COUNT]
        for i in range(SUMMARY_ENTRY_COUNT):
            if i < len(entries):
                comment = (entries[i].comment or "").strip() or NO_ENTRY_COMMENT
                content = self.truncate(entries[i].content.strip(), ENTRY_SNIPPET_CHARS, "...") or NO_ENTRY_SNIPPET
            else:
                comment, content = NO_ENTRY_COMMENT, NO_ENTRY_SNIPPET
            params[f"entry_{i + 1}_comment"] = comment
            params[f"entry_{i + 1}_content"] = content
        return params

    def lore_hints(self, lorebook: Lorebook) -> dict:
        """
        First lorebook entry per topic (currency, stats, items, factions, magic/tech),
        rendered as '<comment> (e.g., <first 30 chars>...)'. Generic defaults otherwise.
        """
        hints = {slot: rule[2] for slot, rule in LORE_HINT_RULES.items()}
        found = set()
        for entry in lorebook.entries:
            comment = (entry.comment or "").lower()
            content = entry.content.lower()
            for slot, (comment_words, content_words, _) in LORE_HINT_RULES.items():
                if slot in found:
                    continue
                if any(w in comment for w in comment_words) or any(w in content for w in content_words):
                    example = self.truncate(content.strip(), LORE_HINT_CHARS, "...")
                    hints[slot] = f"{entry.comment or slot} (e.g., {example})"
                    found.add(slot)
            if len(found) == len(LORE_HINT_RULES):
                break
        return hints
