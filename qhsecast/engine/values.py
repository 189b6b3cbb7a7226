"""
Entity value access.

Entities are plain attribute maps with no enforced schema. Values may be
numbers, percentage strings ("72%"), numeric strings, dates or categories.
Unparseable values never raise: factor scoring reads them as 0 and data
quality counts them as missing.
"""

import math
import re
from typing import Any, Mapping, Optional

Entity = Mapping[str, Any]

EMPTY_MARKERS: frozenset[str] = frozenset({"", "N/A"})

# Leading numeric prefix, e.g. "72.5%" → 72.5, "12 days" → 12
_NUMERIC_PREFIX = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_number(value: Any) -> Optional[float]:
    """Parse a raw attribute value into a float, or None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) or math.isinf(number) else number
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        match = _NUMERIC_PREFIX.match(text)
        if not match:
            return None
        number = float(match.group(0))
        return None if math.isnan(number) or math.isinf(number) else number
    return None


def number_or_zero(value: Any) -> float:
    parsed = parse_number(value)
    return 0.0 if parsed is None else parsed


def optional_number(entity: Entity, attribute: str) -> Optional[float]:
    """Numeric attribute value, or None when missing/unparseable."""
    return parse_number(entity.get(attribute))


def is_populated(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value.strip() in EMPTY_MARKERS:
        return False
    return True


def entity_id(entity: Entity) -> Optional[str]:
    """Stable identifier: `id`, falling back to `projectNo`."""
    for key in ("id", "projectNo"):
        value = entity.get(key)
        if is_populated(value):
            return str(value)
    return None
