"""
Helper utilities
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app, request

from fixitnow.errors import ValidationError
from .sanitize import sanitize_dict

CENT = Decimal('0.01')


def quantize_money(amount):
    """Round a Decimal to paise, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value, field='amount'):
    """
    Convert a JSON number (or numeric string) to Decimal

    Args:
        value: int, float, str or Decimal
        field (str): Field name used in the error message

    Returns:
        Decimal: The value, exact for ints/strings, via ``str()`` for floats

    Raises:
        ValidationError: value is missing, boolean, non-numeric, NaN or infinite
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', field=field)
    if isinstance(value, float):
        value = str(value)
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f'{field} must be a number', field=field)
    if not number.is_finite():
        raise ValidationError(f'{field} must be a finite number', field=field)
    return number


def config_decimal(key):
    return Decimal(str(current_app.config[key]))


def get_json_body(*raw_keys):
    """Request JSON as a dict with string values HTML-escaped (except ``raw_keys``)."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return {}
    return sanitize_dict(data, raw_keys=raw_keys)


def paginate_query(query, page=1, per_page=20):
    """Helper to paginate SQLAlchemy queries"""
    page = max(1, page)
    per_page = min(current_app.config.get('MAX_ITEMS_PER_PAGE', 100), max(1, per_page))

    paginated = query.paginate(page=page, per_page=per_page, error_out=False)

    return {
        'items': paginated.items,
        'total': paginated.total,
        'page': page,
        'per_page': per_page,
        'pages': paginated.pages,
        'has_next': paginated.has_next,
        'has_prev': paginated.has_prev,
    }

