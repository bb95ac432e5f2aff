"""
Lenient value coercion.

Persisted documents and form input arrive as loosely typed values:
numbers as strings with spaces or a comma decimal separator, timestamps
with or without an offset, empty strings for "nothing". These helpers
turn such values into the types the models expect and report failure by
returning the caller's fallback instead of raising.

Amounts are limited to ``MAX_AMOUNT`` and whole numbers to
``MAX_WHOLE_NUMBER``. Anything larger is treated as unparseable. Money is
written to JSON as a float, and a float holds every cent up to
``MAX_AMOUNT`` exactly.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, getcontext
from typing import Any, Optional

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("1000000000000")
MAX_WHOLE_NUMBER = 1_000_000_000


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes and convert aware ones to UTC.

    Raises:
        ValueError: If the converted instant falls outside the datetime range.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {value.isoformat()}") from e


def parse_number(value: Any, fallback: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Parse a number leniently.

    Accepts ints, floats, Decimals and strings such as ``" 1 600,50 "``.
    Booleans, empty strings, NaN and infinities yield ``fallback``.

    Examples:
        >>> parse_number("1 600,5")
        Decimal('1600.5')
        >>> parse_number("abc", Decimal("0"))
        Decimal('0')
    """
    if value is None or isinstance(value, bool):
        return fallback

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return fallback
    elif isinstance(value, str):
        normalized = "".join(value.split()).replace(",", ".")
        if not normalized:
            return fallback
        try:
            number = Decimal(normalized)
        except InvalidOperation:
            return fallback
    else:
        return fallback

    if not number.is_finite():
        return fallback
    return number


def parse_int(value: Any, fallback: Optional[int] = None) -> Optional[int]:
    """Parse a whole number leniently, truncating any fractional part."""
    number = parse_number(value)
    if number is None or number.copy_abs() > MAX_WHOLE_NUMBER:
        return fallback
    return int(number)


def round_money(value: Decimal) -> Decimal:
    """Round to cents, halves away from zero. Never loses whole units."""
    value = Decimal(value)
    precision = max(getcontext().prec, value.adjusted() + 3)
    return value.quantize(
        CENT,
        context=Context(prec=precision, rounding=ROUND_HALF_UP),
    )


def parse_money(value: Any, fallback: Optional[Decimal] = None) -> Optional[Decimal]:
    """``parse_number`` followed by cent rounding, limited to ``MAX_AMOUNT``."""
    number = parse_number(value)
    if number is None or number.copy_abs() > MAX_AMOUNT:
        return fallback
    return round_money(number)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    A trailing ``Z`` is accepted. Returns None for anything unparseable,
    including instants that leave the datetime range once moved to UTC.
    """
    if isinstance(value, datetime):
        try:
            return to_utc(value)
        except ValueError:
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def parse_flag(value: Any) -> bool:
    """Read a boolean, accepting ``"true"``/``"false"`` style strings."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)
