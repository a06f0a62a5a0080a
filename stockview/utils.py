import math
from typing import Any


def parse_number(raw: Any) -> float:
    """
    Turns raw form input into a non-negative finite number.
    Empty, non-numeric, negative, NaN or infinite input silently becomes 0;
    a bad number in a numeric field is never an error.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return 0.0
        try:
            value = float(text)
        except ValueError:
            return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def parse_price(raw: Any) -> float:
    """Prices keep their fractional part."""
    return parse_number(raw)


def parse_count(raw: Any) -> int:
    """Quantities are whole numbers; fractional input is truncated."""
    return int(parse_number(raw))


def round_half_up(value: float) -> int:
    """Rounds the way slider controls do (2.5 -> 3), not banker's rounding."""
    return int(math.floor(value + 0.5))


def format_number(value: float) -> str:
    """Renders a stored number back into form text (3.0 -> '3', 2.5 -> '2.5')."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
