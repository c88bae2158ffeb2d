from decimal import Decimal, InvalidOperation

from app.errors import ValidationError


def parse_id(value, field):
    if value is None or value == "":
        raise ValidationError(f"{field} is required", code="missing_fields")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {field}", code="invalid_format") from exc
    if parsed <= 0:
        raise ValidationError(f"Invalid {field}", code="invalid_format")
    return parsed


def parse_amount(value, field="amount"):
    # bool is an int subclass; JSON true must not pass as 1.
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}", code="invalid_format")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid {field}", code="invalid_format") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}", code="invalid_format")
    return amount
