from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

DE_NBSP = "\u00a0"

# German thousands '.' and decimal ','; "-12" (hyphen or U+2212) for negatives
NUM_CORE = re.compile(
    r"""
    (?P<neg>[\-\u2212])?\s*
    (?P<int>(?:\d{1,3}(?:[ .\u202f\u2009]\d{3})+|\d+))
    (?P<dec>,\d+)?
    """,
    re.VERBOSE,
)


@dataclass
class ParsedNumber:
    value: float
    is_negative: bool


def _to_float_de(intpart: str, decpart: Optional[str]) -> float:
    i = (
        intpart.replace(".", "")
        .replace(" ", "")
        .replace("\u202f", "")
        .replace("\u2009", "")
    )
    d = decpart.replace(",", ".") if decpart else ""
    return float(f"{i}{d}")


def parse_number_de(text: str) -> Optional[ParsedNumber]:
    """
    Parse the first German-formatted number in text ("1.234", "33 Stk.",
    "-5"). Returns None when there is no number.
    """
    if not text:
        return None
    text = text.replace(DE_NBSP, " ").replace("\u202f", " ").replace("\u2009", " ")
    text = re.sub(r"\s+", " ", text)
    m = NUM_CORE.search(text)
    if not m:
        return None
    val = _to_float_de(m.group("int"), m.group("dec"))
    neg = bool(m.group("neg"))
    return ParsedNumber(value=-val if neg else val, is_negative=neg)


def parse_quantity(value: Any) -> Optional[int]:
    """
    Pallet count from whatever the oracle sent: int, float, numeric string.
    Booleans and unparseable values give None. Negative counts are kept;
    rejecting them is the adapters' job.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value))
    if isinstance(value, str):
        parsed = parse_number_de(value)
        if parsed is None:
            return None
        return int(round(parsed.value))
    return None
