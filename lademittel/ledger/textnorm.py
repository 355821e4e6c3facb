import re
from typing import Optional

_NBSP = "\u00a0"
_THIN = "\u2009"
_NNBSP = "\u202f"

_RE_SOFT_HYPHEN = re.compile("\u00ad")
_RE_SPECIAL_SPACES = re.compile("[{}]".format(re.escape(_NBSP + _THIN + _NNBSP)))
_RE_WS = re.compile(r"\s+")

UNKNOWN_LOCATION = "unknown"


def normalize_text(text: Optional[str]) -> Optional[str]:
    """
    Clean OCR/LLM text: drop soft hyphens, turn exotic spaces into blanks,
    collapse whitespace runs. Empty results become None.
    """
    if text is None:
        return None
    s = _RE_SOFT_HYPHEN.sub("", str(text))
    s = _RE_SPECIAL_SPACES.sub(" ", s)
    s = _RE_WS.sub(" ", s).strip()
    return s or None


def location_key(name: Optional[str]) -> str:
    """Merge key component for a location name; absent names share one bucket."""
    s = normalize_text(name)
    if s is None:
        return UNKNOWN_LOCATION
    return s.lower()
