# fiction_forge/file_saver.py

import logging
import os
import re
from datetime import datetime

from fiction_forge.errors import PersistenceFailure

logger = logging.getLogger("fiction_forge")

MAX_NAME_LENGTH = 50
FALLBACK_NAME = "unnamed"


def sanitize_name(name: str, lower: bool = False) -> str:
    """
    Filesystem-safe path component: whitespace -> "_", anything outside
    [A-Za-z0-9_.-] dropped, optional lower-casing, at most 50 chars.
    Never returns an empty string.
    """
    s = re.sub(r"\s", "_", name or "")
    if lower:
        s = s.lower()
    s = re.sub(r"[^A-Za-z0-9_.-]+", "", s)
    s = s[:MAX_NAME_LENGTH]
    # "." and ".." would walk the directory tree
    if not s.strip("."):
        return FALLBACK_NAME
    return s


def _sanitize_for_filename(s: str) -> str:
    # letters, digits, _ . - only
    s = re.sub(r"[^A-Za-z0-9_.-]", "_", s or "")
    return s if s.strip(".") else FALLBACK_NAME


def new_session_id(series: str, now: datetime | None = None) -> str:
    """`<sanitized series>_<YYYYmmdd_HHMMSS.mmm>`; one per request."""
    now = now or datetime.now()
    return f"{sanitize_name(series, lower=True)}_{now.strftime('%Y%m%d_%H%M%S')}.{now.microsecond // 1000:03d}"


def save_json_artifact(base_dir: str, series: str, kind: str, item_name: str, session_id: str, json_text: str) -> str:
    """
    Writes one artifact to <base>/<series>/<session>/<kind>_<item>.json and
    returns the path. Raises PersistenceFailure on any OS error.
    """
    directory = os.path.join(base_dir, sanitize_name(series, lower=True), _sanitize_for_filename(session_id))
    item = sanitize_name(item_name)
    filename = f"{sanitize_name(kind)}_{item}.json" if kind else f"{item}.json"
    filepath = os.path.join(directory, filename)

    try:
        os.makedirs(directory, mode=0o755, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(json_text)
        os.chmod(filepath, 0o644)
    except OSError as e:
        logger.info(f"[SAVE] Could not write {filepath}: {e}")
        raise PersistenceFailure(f"failed to write {filepath}: {e}") from e

    logger.info(f"[SAVE] Saved {kind or 'artifact'} to {filepath}")
    return filepath
