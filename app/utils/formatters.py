"""
Formatting helpers for templates and generated labels.
Money is always handled as integer cents; nothing here goes through float.
"""
from datetime import date, datetime
from typing import Optional, Union


def format_cents(value: Union[int, str, None], symbol: str = '$') -> str:
    """
    Format an amount in cents as dollars with thousands separators.

    Args:
        value: Amount in minor currency units
        symbol: Currency symbol prefix

    Returns:
        Formatted string, or "-" when the value is missing/invalid

    Examples:
        format_cents(500) -> "$5.00"
        format_cents(123456) -> "$1,234.56"
        format_cents(-225) -> "-$2.25"
        format_cents(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        cents = int(value)
    except (ValueError, TypeError):
        return "-"

    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(cents), 100)
    return f"{sign}{symbol}{dollars:,}.{remainder:02d}"


def format_percent(value: Union[int, float, None]) -> str:
    """
    Whole-percent label.

    Examples:
        format_percent(15) -> "15%"
        format_percent(12.5) -> "12%"
    """
    if value is None:
        return "-"
    return f"{int(round(value))}%"


def order_datetime(value: Optional[Union[date, datetime]] = None) -> str:
    """
    Long human date used in order emails.

    Examples:
        order_datetime(datetime(2026, 1, 2, 15, 4)) -> "January 2, 2026 at 3:04 PM"
    """
    if value is None:
        value = datetime.now()
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value.strftime('%B')} {value.day}, {value.year} at {hour}:{value.minute:02d} {meridiem}"
