"""Fleet aggregation: average light, low light flag and queen selection."""
import math
from typing import Any, Optional, Sequence

from mothership.models.hive import FleetSummary, Reading

LOW_LIGHT_THRESHOLD = 200  # Raw LDR scale 0..1023
NO_DATA = "no_data"


def is_reading(value: Any) -> bool:
    """True for int/float values that are not NaN (bool is not a reading)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def format_value(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def compute_summary(readings: Sequence[Reading]) -> FleetSummary:
    """Turn per-Thing readings into a FleetSummary.

    The queen is the first Thing (in input order) holding the strict maximum
    reading, so a later equal value never displaces an earlier one.
    """
    values = [r.ldr_value for r in readings if is_reading(r.ldr_value)]
    avg: Optional[float] = sum(values) / len(values) if values else None
    low_light = avg < LOW_LIGHT_THRESHOLD if avg is not None else None

    queen_thing_id = None
    best = -math.inf
    for reading in readings:
        if is_reading(reading.ldr_value) and reading.ldr_value > best:
            best = reading.ldr_value
            queen_thing_id = reading.thing_id

    if queen_thing_id is None:
        reason = NO_DATA
    else:
        reason = f"queen=max_ldr({format_value(best)})"

    return FleetSummary(
        avg_light=avg,
        low_light=low_light,
        queen_thing_id=queen_thing_id,
        reason=reason,
    )
