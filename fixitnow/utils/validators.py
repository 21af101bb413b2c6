"""
Validation utilities
"""
import re


def validate_email(email):
    """
    Validate email format

    Args:
        email (str): Email address to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone):
    """
    Validate an Indian mobile number (10 digits, optional +91 / 0 prefix)

    Args:
        phone (str): Phone number to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not phone:
        return False

    cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)
    pattern = r'^(\+91|0)?[6-9]\d{9}$'
    return bool(re.match(pattern, cleaned))


def validate_account_number(number):
    """Bank account numbers are 8-20 characters."""
    return isinstance(number, str) and 8 <= len(number) <= 20


def validate_ifsc(code):
    """IFSC codes are exactly 11 characters."""
    return isinstance(code, str) and len(code) == 11
