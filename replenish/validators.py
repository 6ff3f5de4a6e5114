"""
Input validation for caller-supplied values.

All validators raise ValidationError with a field name and message.
"""
from datetime import date, datetime
from typing import Any, Tuple

from replenish.exceptions import ValidationError

MAX_RANGE_DAYS = 366


def validate_date_string(value: str, field: str = "date", format: str = "%Y-%m-%d") -> date:
    """
    Validate and parse a date string.

    Raises:
        ValidationError: If date is missing or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(field, f"Invalid date format. Expected {format}", value)


def validate_date_range(
    start_date: str,
    end_date: str,
    max_days: int = MAX_RANGE_DAYS,
) -> Tuple[date, date]:
    """
    Validate an inclusive date range.

    Returns:
        Tuple of (start_date, end_date) as date objects

    Raises:
        ValidationError: If dates are invalid, reversed or the range is too large
    """
    start = validate_date_string(start_date, "from")
    end = validate_date_string(end_date, "to")

    if start > end:
        raise ValidationError(
            "date_range",
            "From date must be before or equal to To date",
            f"{start_date} to {end_date}"
        )

    days_diff = (end - start).days
    if days_diff > max_days:
        raise ValidationError(
            "date_range",
            f"Date range cannot exceed {max_days} days",
            f"{days_diff} days"
        )

    return start, end


def validate_rate(value: Any, field: str = "rate") -> float:
    """Exchange rates must be finite positive numbers."""
    if isinstance(value, bool):
        raise ValidationError(field, "Must be a number", value)
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, "Must be a number", value)
    if not rate > 0 or rate == float("inf"):
        raise ValidationError(field, "Must be a positive number", value)
    return rate
