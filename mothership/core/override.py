"""Validation of manual output overrides.

    ldr_value            - read-only, always rejected
    led_count            - integer 0..12
    servo_speed          - integer 0..180
    isBlinking, ledcolor,
    youAreTheQueen       - booleans

Integers may arrive as JSON numbers or numeric strings ("7"). Values outside
the range are rejected rather than clamped. Unknown keys pass through and are
resolved by the gateway.
"""
import re
from typing import Any, Dict

from mothership.exceptions import ValidationError

READ_ONLY_FIELDS = ("ldr_value",)
INT_FIELDS = {
    "led_count": (0, 12),
    "servo_speed": (0, 180),
}
BOOL_FIELDS = ("isBlinking", "ledcolor", "youAreTheQueen")

_INT_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def parse_int(value: Any):
    """Return value as int, or None when it is not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INT_RE.match(value):
        return int(value)
    return None


def validate_override(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Return the normalised updates or raise ValidationError."""
    if not isinstance(updates, dict):
        raise ValidationError("updates must be an object")
    for field in READ_ONLY_FIELDS:
        if field in updates:
            raise ValidationError(f"{field} is read-only")
    clean = {}
    for key, value in updates.items():
        if key in INT_FIELDS:
            low, high = INT_FIELDS[key]
            number = parse_int(value)
            if number is None or not low <= number <= high:
                raise ValidationError(f"{key} must be int ({low}-{high})")
            clean[key] = number
        elif key in BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be a boolean")
            clean[key] = value
        else:
            clean[key] = value
    return clean
