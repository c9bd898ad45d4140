# fiction_forge/fiction_prompts.py
#
# Slots are single-brace names ({series_name}); SillyTavern macros keep their double
# braces ({{user}}, {{char}}) and reach the model untouched.


COMPREHENSIVE_LOREBOOK_PROMPT = """
Generate an EXHAUSTIVELY detailed SillyTavern V2 Lorebook JSON for the series '{series_name}'.
The lorebook is a world bible: it has to cover the big themes of '{series_name}' as well as the small, easily missed details
that make the setting feel lived in.

Your ENTIRE response MUST be ONLY one valid JSON object, starting with '{' and ending with '}'.
No prose, comments or markdown fences before or after it.

Lorebook root:
  "name": "Deep Dive Lore for {series_name}",
  "description": "An in-depth collection of lore for the world of '{series_name}': characters, locations, history, factions, relationships and the rules the world runs on.",
  "scan_depth": 35,
  "token_budget": 5000,
  "insertion_order": 0,
  "enabled": true,
  "recursive_scanning": true,
  "entries": [ ... ]

The "entries" array MUST hold at least 30-45 entries (aim for 40+), spread over these six categories:

1. PRIMARY CHARACTERS (4-6 entries)
   - "comment": "Primary Character: <Name> - <Role in the main plot>"
   - "content": full appearance, personality and inner conflicts, history, motivations, abilities and limits,
     key relationships, and how the character usually speaks.
   - "keys": 6-8 keywords a user would type (full name, alias, title, defining trait, key relationship, key event).
   - "priority": 95-100.

2. SECONDARY CHARACTERS & NOTABLE NPCS (8-12 entries)
   - "comment": "Secondary Character: <Name> - <Role or affiliation>"
   - "content": appearance, temperament and quirks, goals, role in the story, allegiances.
   - "keys": 5-7 keywords. "priority": 75-90.

3. KEY LOCATIONS (6-9 entries)
   - "comment": "Location: <Name> - <Type and region>"
   - "content": look, atmosphere, sounds and smells, history, who lives or rules there, dangers and secrets.
   - "keys": 5-7 keywords. "priority": 70-90.

4. FACTIONS & ORGANIZATIONS (5-7 entries)
   - "comment": "Faction: <Name> - <Type and allegiance>"
   - "content": stated and hidden goals, ideology, hierarchy, leaders, territory, resources, allies and enemies.
   - "keys": 5-7 keywords. "priority": 80-95.

5. PIVOTAL HISTORICAL EVENTS (4-6 entries)
   - "comment": "Event: <Name> - <Era and impact>"
   - "content": causes, who took part, how it unfolded, immediate consequences, how it still shapes '{series_name}'.
   - "keys": 5-7 keywords. "priority": 70-90.

6. CORE CONCEPTS & WORLD-BUILDING (6-8 entries)
   - "comment": "Concept: <Name> - <Category, e.g. magic system, pantheon, technology, economy>"
   - "content": how it works, its rules and costs, who uses it, how it changed society, examples in play.
   - "keys": 5-7 keywords. "priority": 85-100.

Every entry MUST contain:
  - "keys": a JSON array of specific, varied strings (synonyms included),
  - "content": several rich paragraphs with concrete examples,
  - "insertion_order": a unique integer,
  - "priority": an integer 0-100,
  - "enabled": true,
  - "comment": a short label of the topic.

Mention the links between entries where they exist. Leave no corner of '{series_name}' unexplored.
The whole output MUST be one complete, valid JSON object.
"""


MASTER_LOREBOOK_PROMPT = """
Generate the MOST COMPLETE and DEEPLY DETAILED SillyTavern V2 Lorebook JSON you can for the series '{series_name}'.
This Master Lorebook is the canonical knowledge base that a Narrator and several utility cards will rely on,
so depth and coverage matter more than brevity.

Your ENTIRE response MUST be ONLY one valid JSON object, starting with '{' and ending with '}'.
No prose, comments or markdown fences before or after it.

Lorebook root:
  "name": "{series_name} - The Definitive Canon",
  "description": "The definitive collection of lore for the world of '{series_name}', from its main cast to its background details.",
  "scan_depth": 50,
  "token_budget": 8000,
  "insertion_order": 0,
  "enabled": true,
  "recursive_scanning": true,
  "entries": [ ... ]

The "entries" array MUST hold AT LEAST 60-75 entries (more if the series supports it). Cover, at minimum:
  - every primary character and a wide cast of secondary and background characters,
  - major and minor locations, down to notable buildings and hidden places,
  - factions, guilds, governments, cults and their internal politics,
  - historical eras, wars, disasters and founding myths,
  - cosmology, religion and the planes or dimensions of the setting,
  - species and races with their physiology, culture and relations,
  - magic systems or technologies with their rules, costs and practitioners,
  - economy, currencies, trade goods and notable items or artifacts,
  - daily life: food, clothing, customs, festivals, law and crime,
  - flora, fauna and monsters,
  - open mysteries, prophecies and rumours.

For each entry:
  - "comment": "<Category>: <Name> - <one line of context>",
  - "content": multiple paragraphs, concrete and specific to '{series_name}', naming related entries,
  - "keys": 5-10 specific keywords including names, aliases and related terms,
  - "insertion_order": a unique integer,
  - "priority": an integer 0-100 reflecting how foundational the entry is,
  - "enabled": true.

Optional per-entry fields you may use: "secondaryKeys" (array), "selectiveLogic", "constant" (boolean), "case_sensitive" (boolean).

The whole output MUST be one complete, valid JSON object and should read as the definitive reference for '{series_name}'.
"""


NARRATOR_CARD_PROMPT = """
Generate a detailed SillyTavern V2 Character Card JSON for a STORYTELLING FRAMEWORK: the Narrator of the series '{series_name}'.
This is NOT a character inside the story. It is a meta-level guide that holds the principles, techniques and tone
for telling stories set in '{series_name}'.

Your ENTIRE response MUST be ONLY one valid JSON object, starting with '{' and ending with '}'.
No prose, comments or markdown fences before or after it.

Top level:
  "spec": "chara_card_v2",
  "spec_version": "2.0",
  "data": ...

The "data" object MUST contain all of the following, each filled with rich guidance rather than in-character dialogue:
  "name": "{narrator_name}",
  "description": a long guide to the narrative approach that suits '{series_name}': balance of plot and character, genre conventions, recurring themes, what makes a scene feel like '{series_name}'.
  "personality": the ideal narrative voice: pacing, how information is revealed, how tension is built and released, tone and humour.
  "scenario": how to structure scenes and transitions, and which narrative devices fit this setting.
  "first_mes": guidance on opening a story: establishing place, introducing characters, setting stakes, and offering the user numbered '/Option x' paths to choose the direction.
  "mes_example": THREE examples, each starting with "<START>", where {{user}} asks for storytelling help and {{char}} answers with concrete framework guidance and '/Option x' choices. Topics: a personal discovery arc, a conflict between factions, bringing supernatural or technological lore into a scene.
  "creator_notes": explain that this card is a storytelling framework for '{series_name}', meant to be used together with a lorebook.
  "system_prompt": "You are {{char}}, a STORYTELLING FRAMEWORK for the '{series_name}' series, not a character in it. ..." followed by concrete rules for giving guidance, respecting canon, and offering '/Option x' choices.
  "post_history_instructions": keep giving actionable guidance, build on earlier choices, stay consistent with '{series_name}' canon.
  "alternate_greetings": two alternative openings that introduce the framework and suggest first directions.
  "tags": ["{series_name}", "Storytelling Framework", "Narrative Guide", "Worldbuilding", "AI Generated", "SillyTavern V2"],
  "creator": "AI Fiction Forge (Narrator Framework v1.0)",
  "character_version": "1.0F",
  "visual_description": how the framework could be pictured in an interface (for example a bound guidebook themed after '{series_name}').
  "thought_pattern": how the framework organises its principles (themes, structure, culture, character types).
  "speech_pattern": clear instructional language, precise literary terms explained simply, concrete suggestions.

Do NOT include a "character_book" field.
The whole output MUST be one complete, valid JSON object.
"""


TOOL_CARD_PROMPT = """
Generate a SillyTavern V2 Character Card JSON designed as a UTILITY / TOOL card for the series '{series_name}'.
The purpose of this card is: '{tool_purpose}'. The tool should feel like an authentic object or interface from the world of '{series_name}'.

Your ENTIRE response MUST be ONLY one valid JSON object, starting with '{' and ending with '}'.
No prose, comments or markdown fences before or after it.

Top level:
  "spec": "chara_card_v2",
  "spec_version": "2.0",
  "data": ...

The "data" object:

1. "name": a short, thematic name for '{tool_purpose}' in '{series_name}'.

2. "description": THE DATA PANEL. This field stores the tool's actual data in a structured, human-readable text GUI.
   - Start from a sensible empty or default state for '{tool_purpose}', with placeholders taken from the lore of '{series_name}'.
   - Draw panels, sections and tables with Unicode box-drawing characters (╔═╗ ║ ╠═╣ ╚═╝ ╦ ╩) and keep columns aligned.
   - Use Markdown lists inside panels where useful; a few thematic emojis are allowed.
   - Use \\n for line breaks. The tool will REWRITE this panel whenever its data changes, keeping the same layout.

3. "personality": the tool's operating persona, in the tone of '{series_name}' (a grim ledger, a chatty implant AI, a rune-etched stone...).

4. "scenario": one or two sentences introducing {{char}} as a '{tool_purpose}' device of '{series_name}' that {{user}} can query and update with plain commands.

5. "first_mes": {{char}} introduces itself, shows the initial panel from "description", and lists example commands for viewing, adding, removing and updating data.

6. "mes_example": AT LEAST THREE examples, each starting with "<START>", that show:
   a. a QUERY ({{user}} asks for a value, {{char}} shows the relevant panel section),
   b. an UPDATE ({{user}} changes a value, {{char}} confirms and re-renders the changed section with its box characters),
   c. an ADD ({{user}} adds a new item or record, {{char}} re-renders the panel including it).
   Every answer that changes data MUST re-render the affected part of the panel.

7. "creator_notes": explain that the card is an interactive data tool themed for '{series_name}', that its state lives in "description", and that it should handle create/read/update/delete style commands.

8. "system_prompt": "You are {{char}}, a utility tool for '{tool_purpose}' in the world of '{series_name}'. ..." followed by rules: keep the panel format, apply every change cumulatively, never invent changes the user did not ask for, always show the affected section after a change.

9. "post_history_instructions": always start from the latest panel state, apply changes cumulatively, show the full current panel when asked.

10. "tags": ["Tool", "Utility", "{series_name}", "{tool_purpose}", "Data Tracker", "Text GUI", "AI Generated"]
11. "creator": "AI Fiction Forge (Tool Mode v1.2 - GUI Enhanced)"
12. "character_version": "1.2T"

Do NOT include a "character_book" field.
The whole output MUST be one complete, valid JSON object.
"""


TOOL_CONTEXT_PROMPT = """
--- BEGIN CONTEXT FOR THIS SPECIFIC TOOL ---
SERIES: {series_name}
REQUESTED TOOL NAME: {tool_name}
REQUESTED TOOL TYPE: {tool_type}
WHY THIS TOOL FITS '{series_name}': {tool_justification}

NARRATOR CONTEXT (match this style):
Narrator name: {narrator_name}
Narrator persona snippet: {narrator_persona}

WORLD CONTEXT (use these elements in the tool's data and examples):
World style and key themes: {world_summary}
In-world terminology found in the lorebook:
  - Currency: {lore_currency}
  - Measurable stats / attributes: {lore_stats}
  - Items / resources: {lore_items}
  - Factions: {lore_factions}
  - Magic system / technology: {lore_magic_tech}
--- END CONTEXT ---

Make '{tool_name}' feel like an indispensable artifact of '{series_name}', consistent with the Narrator and the lore above.
Its "description" panel, "first_mes", "mes_example" and "personality" MUST reflect this context.

"""


CONTEXTUAL_SUMMARY_PROMPT = """
You are an expert in thematic analysis and information synthesis.
Below are excerpts from a generated Narrator framework and a Master Lorebook for the fictional series '{series_name}'.

--- NARRATOR EXCERPTS ---
Narrator name: {narrator_name}
Description snippet: {narrator_description}
Personality snippet: {narrator_personality}
--- END NARRATOR EXCERPTS ---

--- LOREBOOK EXCERPTS ---
Lorebook name: {lorebook_name}
Description snippet: {lorebook_description}
Entry 1 ({entry_1_comment}): {entry_1_content}
Entry 2 ({entry_2_comment}): {entry_2_content}
Entry 3 ({entry_3_comment}): {entry_3_content}
--- END LOREBOOK EXCERPTS ---

Write a concise summary (about 150-250 words) covering:
1. the genre and overall tone of '{series_name}',
2. the recurring themes and central conflicts,
3. distinctive world elements (magic or technology, factions, cultures, currencies, resources),
4. the Narrator's general voice.

The summary will be used to design utility tools (inventories, stat trackers, quest logs...) that fit this world.
Answer with the summary as plain text only, without preamble or sign-off.
"""


TOOL_SUGGESTION_PROMPT = """
You are a game designer who builds immersive interface tools for fictional worlds.
The series '{series_name}' is described by this summary of its Narrator and Lorebook:

--- WORLD SUMMARY ---
{world_summary}
--- END WORLD SUMMARY ---

Using ONLY the summary above, suggest EXACTLY TWO SillyTavern utility/tool cards that are:
a) thematically right for '{series_name}',
b) genuinely useful to someone playing with the Narrator and the Lorebook,
c) complementary (they must serve different needs).

Typical needs: character stats, inventory and currency, quest or event logs, spell/ability/tech references,
faction reputation, party management, a bestiary or codex. Pick what fits this world best.

For each tool give:
  "tool_type": what it does (e.g. "Character Status Tracker", "Faction Allegiance Ledger"),
  "tool_name": a creative in-world name for the card,
  "tool_justification": one or two sentences on why it fits THIS world.

Answer with ONLY a JSON array of exactly two objects, each with the keys "tool_type", "tool_name" and "tool_justification".
Example shape:
[
  {
    "tool_type": "Vitality & Resource Ledger",
    "tool_name": "The Emberheart Chronicle",
    "tool_justification": "Combat and scarce resources drive the stories of this world, so a ledger of vitality and supplies keeps the stakes visible."
  },
  {
    "tool_type": "Registry of Pacts & Allegiances",
    "tool_name": "The Shadowbound Covenant",
    "tool_justification": "Faction politics and binding oaths shape every choice, and this registry tracks where loyalties stand."
  }
]
No other text. The two tool names must be different and specific to '{series_name}'.
"""


PROMPT_TEMPLATES = {
    "lorebook": COMPREHENSIVE_LOREBOOK_PROMPT,
    "master_lorebook": MASTER_LOREBOOK_PROMPT,
    "narrator": NARRATOR_CARD_PROMPT,
    "tool_card": TOOL_CARD_PROMPT,
    "tool_context": TOOL_CONTEXT_PROMPT,
    "contextual_summary": CONTEXTUAL_SUMMARY_PROMPT,
    "tool_suggestion": TOOL_SUGGESTION_PROMPT,
}
