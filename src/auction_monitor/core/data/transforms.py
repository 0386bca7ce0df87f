import logging
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo

from cores.config import WEI_PER_TOKEN, display_timezone, time_label_format

logger = logging.getLogger(__name__)


def _parse_units(value) -> int:
    """
    Convert an integer-unit amount (wei-like) to int.

    Accepts ints, digit strings, decimal/scientific strings ("1.1e18") and
    floats. Missing or unparseable values become 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value

    text = str(value).strip()
    if not text:
        return 0

    try:
        amount = Decimal(text)
    except InvalidOperation:
        logger.warning(f"unparseable unit amount {value!r}, using 0")
        return 0

    if not amount.is_finite():
        logger.warning(f"non-finite unit amount {value!r}, using 0")
        return 0

    return int(amount.to_integral_value())


def _parse_timestamp(value) -> float:
    """Unix seconds, fractions kept, 0 when missing or unparseable."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, datetime):
        return value.timestamp()
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        logger.warning(f"unparseable timestamp {value!r}, using 0")
        return 0
    if not math.isfinite(seconds):
        logger.warning(f"non-finite timestamp {value!r}, using 0")
        return 0
    return seconds


def units_to_decimal(amount: int, divisor: int = WEI_PER_TOKEN) -> Decimal:
    return Decimal(amount) / Decimal(divisor)


def smart_round(value: float, precision: int = 3, min_decimals: int = 0, max_decimals: int = 3) -> float:
    """
    Round to `precision` significant digits, keeping the number of decimals
    between min_decimals and max_decimals. Integer digits are never dropped.
    """
    if value is None:
        return None
    if value == 0 or not math.isfinite(value):
        return value

    magnitude = math.floor(math.log10(abs(value)))
    decimals = precision - 1 - magnitude
    decimals = max(min_decimals, min(max_decimals, decimals))

    return round(value, decimals)


def format_time_label(time_ms: int, tz: str = display_timezone) -> str:
    """x-axis label for a bucket start, e.g. 02:20"""
    return datetime.fromtimestamp(time_ms / 1000, tz=ZoneInfo(tz)).strftime(
        time_label_format
    )
