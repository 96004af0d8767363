"""
Utility functions for HLMaker.
"""
import math
import time
from typing import Any, Union


def now_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(time.time() * 1000)


def clip(x: float, lo: float, hi: float) -> float:
    """Clip value to [lo, hi] range."""
    return max(lo, min(hi, x))


def sign(x: float) -> float:
    """Return -1.0, 0.0 or 1.0 according to the sign of x."""
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


def parse_float(value: Any, default: float = 0.0) -> float:
    """Parse a numeric field from the wire, falling back to default.

    Venue payloads carry prices and sizes as strings. A malformed or missing
    field becomes the default instead of aborting the event.
    """
    try:
        x = float(value)
    except (ValueError, TypeError):
        return default
    if math.isnan(x) or math.isinf(x):
        return default
    return x


def round_to_tick(p: float, tick: float) -> float:
    """Round price to the nearest tick."""
    return round(p / tick) * tick


def fmt(x: Union[int, float], nd: int = 4) -> str:
    """Format number with specified decimal places."""
    return f"{x:.{nd}f}"
