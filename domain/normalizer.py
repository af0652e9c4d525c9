# domain/normalizer.py
from __future__ import annotations
import re
from typing import List, Optional

import pycountry

from core.errors import InvalidInput
from domain.models import ALL_ORIGINS

TARIFF_CODE_LENGTH = 10
_NON_DIGITS = re.compile(r"\D")

# Territory codes used by TARIC that are not ISO 3166 countries
TARIC_ONLY_ORIGINS = {"XC", "XK", "XL", "XS"}
# Non-ISO spellings seen on invoices and in EU documents
ORIGIN_ALIASES = {"UK": "GB", "EL": "GR"}


def normalize(raw_code: Optional[str]) -> Optional[str]:
    """
    Canonical 10-digit commodity code: non-digits stripped, then truncated or
    right-padded with zeros. Empty input is returned unchanged ("no code").
    """
    if not raw_code:
        return raw_code
    digits = _NON_DIGITS.sub("", str(raw_code))
    return digits[:TARIFF_CODE_LENGTH].ljust(TARIFF_CODE_LENGTH, "0")


def parent_codes(code: str) -> List[str]:
    """Full line, CN8 + '00', HS6 + '0000' – the order the authority is queried in."""
    code = normalize(code)
    if not code:
        return []
    candidates = [code, code[:8].ljust(10, "0"), code[:6].ljust(10, "0")]
    return list(dict.fromkeys(candidates))


def heading_of(code: str) -> str:
    return (normalize(code) or "")[:4]


def normalize_origin(origin: Optional[str]) -> str:
    """ISO-2 origin country, or 'ALL' when no origin is given. ISO-3 is converted."""
    raw = (origin or "").strip().upper()
    if not raw or raw == ALL_ORIGINS:
        return ALL_ORIGINS
    raw = ORIGIN_ALIASES.get(raw, raw)
    if raw in TARIC_ONLY_ORIGINS:
        return raw
    if len(raw) not in (2, 3) or not raw.isalpha():
        raise InvalidInput(f"Origin country must be an ISO-2 or ISO-3 code, got {origin!r}")
    try:
        country = pycountry.countries.lookup(raw)
    except LookupError:
        raise InvalidInput(f"Unknown origin country {origin!r}") from None
    return country.alpha_2.upper()
