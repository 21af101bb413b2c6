"""Utilities package"""
from .validators import validate_email, validate_phone, validate_account_number, validate_ifsc
from .helpers import quantize_money, to_decimal, config_decimal, get_json_body, paginate_query
from .sanitize import sanitize_string, sanitize_dict

__all__ = [
    'validate_email',
    'validate_phone',
    'validate_account_number',
    'validate_ifsc',
    'quantize_money',
    'to_decimal',
    'config_decimal',
    'get_json_body',
    'paginate_query',
    'sanitize_string',
    'sanitize_dict',
]
