# fiction_forge/config.py

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("fiction_forge")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[CONFIG] {name}={raw!r} is not an integer, using {default}")
        return default


# --- Configuration ---
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
JSONS_DIR = os.getenv("FORGE_JSONS_DIR", "./jsons")
REQUEST_TIMEOUT_SECONDS = _int_env("FORGE_REQUEST_TIMEOUT_SECONDS", 25 * 60)
LLM_TIMEOUT_SECONDS = _int_env("LLM_TIMEOUT_SECONDS", 300)
LLM_RETRIES = _int_env("LLM_RETRIES", 3)
LOG_LEVEL = os.getenv("FORGE_LOG_LEVEL", "DEBUG").upper()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = _int_env("PORT", 8080)
