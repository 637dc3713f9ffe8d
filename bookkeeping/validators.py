"""
Input validation functions for API parameters and record fields.

All validators raise ValidationError on invalid input.
"""

import re
from datetime import date, datetime
from typing import Optional, Tuple

from bookkeeping.exceptions import ValidationError
from bookkeeping.models import ExpenseCategory, ExpenseType, OwnerPayType, ShippingStatus, ShippingType
from bookkeeping.periods import months_between

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

MAX_RANGE_DAYS = 366
MAX_SUMMARY_MONTHS = 36


def validate_month(
    value: Optional[str],
    field: str = "month",
    allow_none: bool = False
) -> Optional[str]:
    """
    Validate a month key (YYYY-MM).

    Returns:
        The month key, stripped

    Raises:
        ValidationError: If the key is missing or malformed
    """
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(field, "Month is required")

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.strip()
    if not MONTH_PATTERN.match(value):
        raise ValidationError(field, "Invalid month format. Expected YYYY-MM", value)

    return value


def validate_month_range(start_month: str, end_month: str) -> Tuple[str, str]:
    """Validate an inclusive month range for summaries."""
    start = validate_month(start_month, "start_month")
    end = validate_month(end_month, "end_month")

    if start > end:
        raise ValidationError(
            "month_range",
            "Start month must be before or equal to end month",
            f"{start} to {end}"
        )

    months = len(months_between(start, end))
    if months > MAX_SUMMARY_MONTHS:
        raise ValidationError(
            "month_range",
            f"Range cannot exceed {MAX_SUMMARY_MONTHS} months",
            f"{months} months"
        )

    return start, end


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_date_range(
    start_date: str,
    end_date: str,
    max_days: int = MAX_RANGE_DAYS
) -> Tuple[date, date]:
    """
    Validate a date range.

    Returns:
        Tuple of (start_date, end_date) as date objects

    Raises:
        ValidationError: If dates are invalid or range is too large
    """
    start = validate_date_string(start_date, "start_date")
    end = validate_date_string(end_date, "end_date")

    if start > end:
        raise ValidationError(
            "date_range",
            "Start date must be before or equal to end date",
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


def validate_category(value: Optional[str], field: str = "category") -> ExpenseCategory:
    """Validate an expense category against the closed set."""
    if not value:
        raise ValidationError(field, "Category is required")
    try:
        return ExpenseCategory(value)
    except ValueError:
        raise ValidationError(
            field,
            f"Must be one of: {', '.join(ExpenseCategory.values())}",
            value
        )


def validate_expense_type(
    value: Optional[str],
    field: str = "expense_type",
    allow_none: bool = True
) -> Optional[ExpenseType]:
    """Validate production/operating; None passes through when allowed."""
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(field, "Expense type is required")

    try:
        return ExpenseType(str(value).lower().strip())
    except ValueError:
        raise ValidationError(field, "Must be one of: operating, production", value)


def validate_shipping_type(value: Optional[str], field: str = "type") -> ShippingType:
    try:
        return ShippingType(value)
    except ValueError:
        raise ValidationError(field, "Must be one of: Company, Uber", value)


def validate_shipping_status(value: Optional[str], field: str = "status") -> ShippingStatus:
    if value is None:
        return ShippingStatus.DELIVERED
    try:
        return ShippingStatus(value)
    except ValueError:
        raise ValidationError(field, "Must be one of: Cancelled, Delivered", value)


def validate_owner_pay_type(value: Optional[str], field: str = "owner_pay_type") -> OwnerPayType:
    try:
        return OwnerPayType(value)
    except ValueError:
        raise ValidationError(field, "Must be one of: fixed, percent", value)


def validate_amount(value, field: str = "amount") -> float:
    """Non-negative finite amount."""
    if value is None or isinstance(value, bool):
        raise ValidationError(field, "Amount is required", value)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, "Must be a number", value)
    if amount != amount or amount in (float("inf"), float("-inf")):
        raise ValidationError(field, "Must be a finite number", value)
    if amount < 0:
        raise ValidationError(field, "Must not be negative", value)
    return amount
