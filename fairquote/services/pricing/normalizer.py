"""
Service key normalization.

Maps free-text line-item labels onto the closed set of canonical service
keys shared by the heuristic table, the catalog and comparison rows.
"""

import re
from typing import Callable

# First match wins; "brake rotor" must resolve before plain "brake".
_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda s: "oil" in s, "oil_change"),
    (lambda s: "brake" in s and "rotor" in s, "rotors"),
    (lambda s: "brake" in s, "brake_pads"),
    (lambda s: "air filter" in s or "engine filter" in s, "air_filter"),
    (lambda s: "cabin" in s or "pollen" in s, "cabin_filter"),
    (lambda s: "coolant" in s or "radiator" in s, "coolant"),
    (lambda s: "tire" in s or "tyre" in s, "tires"),
    (lambda s: "spark" in s, "spark_plugs"),
    (lambda s: "transmission" in s, "transmission_fluid"),
    (lambda s: "battery" in s, "battery"),
    (lambda s: "wiper" in s, "wiper_blades"),
]

CANONICAL_KEYS: frozenset[str] = frozenset(key for _, key in _RULES)

FALLBACK_KEY = "other"

FEE_KEYS: frozenset[str] = frozenset({
    "tax", "subtotal", "total", "grand_total", "shop_supplies",
    "environmental_fee", "hazmat", "fees", "disposal", "misc", "sundries",
})

_FEE_TOKENS = frozenset({"fee", "fees", "tax", "disposal", "subtotal"})

_SLUG_RE = re.compile(r"[^a-z0-9_]+")


def slugify(text: str) -> str:
    return _SLUG_RE.sub("_", text.lower()).strip("_")


def normalize(label: str | None) -> str:
    """
    Normalize a free-text service label to a canonical key.

    Total: every input, including None and blank strings, yields a
    non-empty key. Canonical keys map to themselves.
    """
    text = (label or "").lower()
    for matches, key in _RULES:
        if matches(text):
            return key
    return slugify(text) or FALLBACK_KEY


def is_fee_key(key: str) -> bool:
    """Whether a key names a fee, tax, total or labour line rather than a service."""
    if key in FEE_KEYS:
        return True
    if "labor" in key or "labour" in key:
        return True
    return any(token in _FEE_TOKENS for token in key.split("_"))
