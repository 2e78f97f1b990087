"""
Line-item parsing for OCR or manually typed quote text.

Recognised forms:
    Front brake pads x2 @ 45
    2 x Wiper blades @ 15.50
    Oil change - $59.99
"""

import re

from fairquote.services.pricing.domain import LineItem
from fairquote.services.pricing.normalizer import normalize

_PRICE = r"\$?\s*(?P<price>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"

_PATTERNS = [
    re.compile(
        rf"^(?P<label>.+?)\s+[x×]\s*(?P<qty>\d+)\s*(?:@|at)\s*{_PRICE}\s*$",
        re.IGNORECASE,
    ),
    re.compile(
        rf"^(?P<qty>\d+)\s*[x×]\s+(?P<label>.+?)\s*(?:@|at)\s*{_PRICE}\s*$",
        re.IGNORECASE,
    ),
    re.compile(
        rf"^(?P<label>.*?[a-z].*?)\s*[-:]?\s*{_PRICE}\s*$",
        re.IGNORECASE,
    ),
]

# "Brake pads x2" is a quantity, not a price, unless a separator follows the x
_TRAILING_QTY_MARKER = re.compile(r"\s[x×]$", re.IGNORECASE)
_PRICE_SEPARATORS = set("$-:")


def parse_line_item(text: str) -> LineItem | None:
    """Parse one line of quote text, or None when it carries no price."""
    line = (text or "").strip().strip("-*• \t")
    if not line:
        return None

    for pattern in _PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        label = match.group("label").strip(" -:\t")
        if not label:
            continue
        groups = match.groupdict()
        if not groups.get("qty") and _TRAILING_QTY_MARKER.search(label):
            between = line[match.end("label"):match.start("price")]
            if not _PRICE_SEPARATORS & set(between):
                continue
        quantity = max(1, int(groups["qty"])) if groups.get("qty") else 1
        price = float(match.group("price").replace(",", ""))
        return LineItem(
            label=label,
            quantity=quantity,
            unit_price=price,
            key=normalize(label),
        )
    return None


def parse_quote_text(text: str) -> list[LineItem]:
    """Parse every priced line of a quote document, in order."""
    items = []
    for line in (text or "").splitlines():
        item = parse_line_item(line)
        if item is not None:
            items.append(item)
    return items
