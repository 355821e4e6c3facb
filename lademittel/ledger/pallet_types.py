from __future__ import annotations

import re
from typing import Any, Optional

from lademittel.ledger.model import PALLET_TYPES, PalletType, Quality
from lademittel.ledger.textnorm import normalize_text

# Alias rules (order matters: more specific first). The first matching rule
# wins, so "EUR-NT" never falls through to EUR, "CHEP halb" never to CHEP.
PALLET_PATTERNS = [
    (re.compile(r"\beuro?[\s\-_]*nt\b|nicht[\s\-]*tausch|tauschfrei", re.I), "EUR-NT"),
    (re.compile(r"chep[\s\-_]*(halb|1/2)|halbe?[\s\-]*chep", re.I), "CHEP-HALB"),
    (re.compile(r"chep[\s\-_]*(viertel|1/4)|viertel[\s\-]*chep", re.I), "CHEP-VIERTEL"),
    (re.compile(r"chep", re.I), "CHEP"),
    (re.compile(r"einweg", re.I), "Einweg"),
    (re.compile(r"d(ü|ue|u)ss|^dd$|halbpal", re.I), "Düsseldorfer"),
    (re.compile(r"^h1\b|h1[\s\-]*pal", re.I), "H1"),
    (re.compile(r"gitter|^gb$|^gibo$", re.I), "Gitterbox"),
    (re.compile(r"plastik|kunststoff", re.I), "Plastik"),
    (re.compile(r"roll", re.I), "Rollcontainer"),
    (re.compile(r"industrie", re.I), "Industrie"),
    (re.compile(r"eur|^ep$|^epal", re.I), "EUR"),
]

_CANONICAL = {t.lower(): t for t in PALLET_TYPES}

QUALITY_PATTERNS = [
    (re.compile(r"mix|gemischt", re.I), "mixed"),
    (re.compile(r"^a$|a[\s\-]*qual|^klasse\s*a$", re.I), "A"),
    (re.compile(r"^b$|b[\s\-]*qual|^klasse\s*b$", re.I), "B"),
]


def normalize_pallet_type(label: Any) -> PalletType:
    """
    Map a free-text pallet label to the closed PalletType enumeration.
    Total: anything unrecognised (including None and non-strings) is "unknown".
    """
    if not isinstance(label, str):
        return "unknown"
    s = normalize_text(label)
    if s is None:
        return "unknown"
    exact = _CANONICAL.get(s.lower())
    if exact is not None:
        return exact  # type: ignore[return-value]
    for pat, pallet_type in PALLET_PATTERNS:
        if pat.search(s):
            return pallet_type  # type: ignore[return-value]
    return "unknown"


def normalize_quality(label: Any) -> Optional[Quality]:
    if not isinstance(label, str):
        return None
    s = normalize_text(label)
    if s is None:
        return None
    for pat, quality in QUALITY_PATTERNS:
        if pat.search(s):
            return quality  # type: ignore[return-value]
    return None
