# fiction_forge/base_utils.py


import logging
import re

import commentjson
import yaml
from json_repair import repair_json

from fiction_forge.config import LOG_LEVEL
from fiction_forge.errors import TemplateFailure


logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.DEBUG),
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n"
)

logger = logging.getLogger("fiction_forge")

# Single-brace placeholders only: "{series_name}" is a slot, "{{user}}" is a SillyTavern macro.
PLACEHOLDER_PATTERN = re.compile(r'(?<!\{)\{([A-Za-z_]\w*)\}(?!\})')

FENCED_JSON_PATTERN = re.compile(r'```(?:json)?\s*(\{.*?\}|\[.*?\])\s*```', re.DOTALL)
BARE_JSON_PATTERN = re.compile(r'(\{.*\}|\[.*\])', re.DOTALL)
BARE_OBJECT_PATTERN = re.compile(r'(\{.*\})', re.DOTALL)

LOG_PREVIEW_CHARS = 600


class BaseUtils():
    # -----------------------
    # General Utils
    # -----------------------

    def color_print(self, text, color=None):
        COLOR_CODES = {
            'black': '30', 'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35',
            'cyan': '36', 'white': '37', 'bright_black': '90', 'bright_red': '91', 'bright_green': '92',
            'bright_yellow': '93', 'bright_blue': '94', 'bright_magenta': '95', 'bright_cyan': '96', 'bright_white': '97'
        }
        if color and color.lower() in COLOR_CODES:
            color_code = COLOR_CODES[color.lower()]
            text = f"\033[{color_code}m{text}\033[0m"
        logger.info(str(text))

    def truncate(self, text, limit: int, suffix: str = "") -> str:
        text = text or ""
        if len(text) <= limit:
            return text
        return text[:limit] + suffix

    # -----------------------
    # AI output cleanup
    # -----------------------

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\n?|```\n?'
        return re.sub(pattern, '', code)

    def extract_json_block(self, raw: str, expect_object: bool = False) -> str:
        """
        Pulls the JSON payload out of a model answer that may be wrapped in prose
        or markdown fences. A fenced block wins over a bare object/array; when
        nothing looks like JSON the trimmed text is returned as is.

        With expect_object, an answer whose first bracket is '{' yields that object
        span; when it was cut off before its closing brace the text from the
        opening brace on is returned, never an inner array.
        """
        raw = raw or ""
        fenced = FENCED_JSON_PATTERN.search(raw)
        if fenced:
            return fenced.group(1).strip()
        first_bracket = re.search(r'[\[{]', raw)
        if expect_object and first_bracket and first_bracket.group() == "{":
            obj = BARE_OBJECT_PATTERN.search(raw)
            return (obj.group(1) if obj else raw[first_bracket.start():]).strip()
        bare = BARE_JSON_PATTERN.search(raw)
        if bare:
            return bare.group(1).strip()
        return raw.strip()

    def load_fault_tolerant_json(self, json_str):
        """
        Loads JSON emitted by a model. Tries commentjson first (tolerates comments),
        then json_repair for truncated or sloppy output, then yaml as a last resort.
        Raises ValueError with the collected reasons if every attempt fails.
        """
        errors = []
        text = self.clean_triple_backticks(json_str or "").strip()
        if not text:
            raise ValueError("load_fault_tolerant_json: empty input")

        try:
            return commentjson.loads(text)
        except Exception as e:
            errors.append(f"commentjson: {e}")

        repaired = repair_json(text)
        if repaired and repaired.strip() not in ('""', "{}", "[]"):
            try:
                return commentjson.loads(repaired)
            except Exception as e:
                errors.append(f"json_repair: {e}")
            try:
                data = yaml.safe_load(repaired)
                if isinstance(data, (dict, list)):
                    return data
                errors.append("yaml: result is not an object or array")
            except yaml.YAMLError as e:
                errors.append(f"yaml: {e}")
        else:
            errors.append("json_repair: nothing recoverable")

        raise ValueError("load_fault_tolerant_json: JSON parsing failed: " + " | ".join(errors))

    # -----------------------
    # Prompt templates
    # -----------------------

    def template_placeholders(self, template: str) -> set[str]:
        return set(PLACEHOLDER_PATTERN.findall(template))

    def render_template(self, template: str, **params) -> str:
        """
        Fills every {name} slot of the template from params.

        Unlike str.format this leaves {{user}}/{{char}} macros alone and refuses to
        render when a slot has no value (None or blank counts as no value) or when
        a parameter has no slot to go to.
        """
        placeholders = self.template_placeholders(template)
        blank = {k for k, v in params.items() if v is None or (isinstance(v, str) and not v.strip())}
        missing = sorted((placeholders - set(params)) | (blank & placeholders))
        extra = sorted(set(params) - placeholders)
        if missing or extra:
            details = []
            if missing:
                details.append(f"missing parameters: {', '.join(missing)}")
            if extra:
                details.append(f"unexpected parameters: {', '.join(extra)}")
            raise TemplateFailure(f"render_template: {'; '.join(details)}")

        return PLACEHOLDER_PATTERN.sub(lambda m: str(params[m.group(1)]), template)
