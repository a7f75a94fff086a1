"""
System prompts for the Claude adapters.

    extract_schedule   scheduling fields (players, date, time, court) from an organizer's chat
    classify_reply     what an invited player's SMS reply means (accept / decline / cancel / ...)
"""

from functools import lru_cache
from pathlib import Path

_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Prompt text for `name` (file stem under this package), whitespace-trimmed."""
    path = _PROMPTS_DIR / f"{name}.txt"
    if not path.is_file():
        raise FileNotFoundError(f"no prompt named {name!r} in {_PROMPTS_DIR}")
    return path.read_text(encoding="utf-8").strip()
