"""Input coercion shared by the service layer.

parse_date_input:  form / JSON date → ``date`` (ValidationError on bad input)
parse_amount:      fee / quote → ``Decimal`` (ValidationError on bad input)
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from practiceflow.core.exceptions import ValidationError

_DAY_FIRST_FORMATS = ("%d.%m.%Y", "%d/%m/%Y", "%d-%m-%Y")

# Numeric(12, 2)
_MAX_AMOUNT = Decimal(10) ** 10
_CENTS = Decimal("0.01")


def parse_date_input(value, field="date"):
    """Parse a date, raising ValidationError on bad input.

    Supports: YYYY-MM-DD, full ISO datetimes, DD.MM.YYYY, DD/MM/YYYY,
    DD-MM-YYYY and date objects.  Empty input returns None.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _DAY_FIRST_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(
        f"Invalid {field}. Use YYYY-MM-DD or DD/MM/YYYY.",
        details={field: "invalid"},
    )


def parse_amount(value, field="amount"):
    """Parse a non-negative money amount below 10**10; empty input returns None."""
    if value in (None, ""):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}", details={field: "invalid"}) from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number", details={field: "invalid"})
    if amount < _MAX_AMOUNT:
        amount = amount.quantize(_CENTS)
    if amount >= _MAX_AMOUNT:
        raise ValidationError(f"{field} is too large", details={field: "too_large"})
    return amount
