"""Static last-resort price ranges per canonical service key."""

from fairquote.services.pricing.domain import HeuristicRate

# key: (min, avg, max, standard hours)
HEURISTIC_TABLE: dict[str, tuple[float, float, float, float]] = {
    "oil_change": (40, 55, 80, 0.5),
    "brake_pads": (100, 225, 350, 1.5),
    "rotors": (300, 500, 700, 1.8),
    "tires": (600, 800, 1000, 0.7),
    "air_filter": (25, 45, 60, 0.2),
    "cabin_filter": (20, 40, 60, 0.2),
    "coolant": (120, 185, 250, 1.0),
    "spark_plugs": (50, 80, 120, 1.2),
    "transmission_fluid": (130, 185, 250, 1.5),
    "battery": (120, 185, 250, 0.3),
    "wiper_blades": (20, 35, 50, 0.1),
}

DEFAULT_ROW: tuple[float, float, float, float] = (120, 180, 250, 1.0)

# Slug keys with no exact row; checked in order, first match wins
_SUBSTRING_RULES: list[tuple[tuple[tuple[str, ...], ...], str]] = [
    ((("rotor",),), "rotors"),
    ((("brake",),), "brake_pads"),
    ((("tire",), ("tyre",)), "tires"),
    ((("cabin",),), "cabin_filter"),
    ((("air", "filter"),), "air_filter"),
    ((("spark",),), "spark_plugs"),
    ((("transmission",),), "transmission_fluid"),
    ((("coolant",), ("radiator",)), "coolant"),
    ((("battery",),), "battery"),
    ((("wiper",),), "wiper_blades"),
]


def _table_key(key: str) -> str | None:
    if key in HEURISTIC_TABLE:
        return key
    for alternatives, target in _SUBSTRING_RULES:
        if any(all(part in key for part in parts) for parts in alternatives):
            return target
    return None


def heuristic_rate(key: str) -> HeuristicRate:
    """Look up the heuristic row for a key, falling back to the default row."""
    table_key = _table_key(key or "")
    is_known = table_key is not None
    low, avg, high, hours = HEURISTIC_TABLE[table_key] if is_known else DEFAULT_ROW
    return HeuristicRate(
        min=low,
        max=high,
        avg=avg,
        standard_hours=hours,
        is_known=is_known,
    )
