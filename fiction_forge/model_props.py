from typing import Any, Dict, Optional, Tuple


OPENAI_PREFIXES = ("gpt-", "gpt4", "o1", "o3", "o4")

VERBOSITY_TOKENS = {"low", "medium", "high"}
REASONING_TOKENS = {"none", "minimal", "low", "medium", "high", "xhigh"}
SERVICE_TIER_TOKENS = {"auto", "default", "flex", "priority"}

# preset -> (verbosity, reasoning effort, service tier)
MODEL_PRESETS: Dict[str, Tuple[Optional[str], Optional[str], Optional[str]]] = {
    "standard": ("low", "low", None),
    "std": ("low", "low", None),
    "fast": ("low", "none", None),
    "deep": ("medium", "high", None),
    "creative": ("high", "medium", None),
    "standard-flex": ("low", "low", "flex"),
    "deep-flex": ("medium", "high", "flex"),
}


def is_openai_model(model_name) -> bool:
    name = (model_name or "").strip().lower()
    return any(name.startswith(p) for p in OPENAI_PREFIXES)


def provider_for_model(model_name) -> str:
    return "openai" if is_openai_model(model_name) else "gemini"


def parse_model_name(raw: str) -> Tuple[str, Dict[str, Any]]:
    """Split 'gpt-5.1_deep' or 'gpt-5.1_low_high_flex' into (base_model, responses_api_params).

    Tokens after the base name are presets or explicit verbosity / reasoning / service-tier
    values; the first value found for each slot wins.
    """
    raw = (raw or "").strip()
    if not raw:
        raise ValueError("parse_model_name: No Model Name passed.")

    base, *tokens = raw.split("_")
    if not tokens:
        return base, {}

    verbosity = reasoning = tier = None
    unknown = []
    for tok in (t.strip().lower() for t in tokens):
        if not tok:
            continue
        if tok in MODEL_PRESETS:
            p_verb, p_reason, p_tier = MODEL_PRESETS[tok]
            verbosity = verbosity or p_verb
            reasoning = reasoning or p_reason
            tier = tier or p_tier
        elif verbosity is None and tok in VERBOSITY_TOKENS:
            verbosity = tok
        elif reasoning is None and tok in REASONING_TOKENS:
            reasoning = tok
        elif tier is None and tok in SERVICE_TIER_TOKENS:
            tier = tok
        else:
            unknown.append(tok)

    if unknown:
        raise ValueError(f"parse_model_name: Unknown model suffix token(s) {unknown} in '{raw}'.")

    params: Dict[str, Any] = {"service_tier": tier or "default"}
    if verbosity is not None:
        params["text"] = {"verbosity": verbosity}
    if reasoning is not None:
        params["reasoning"] = {"effort": reasoning}
    return base, params
