"""
Email normalization for donor matching.

Only the address syntax is checked here; deliverability belongs to the
notification service.
"""

from typing import Optional

from email_validator import EmailNotValidError
from email_validator import validate_email as check_email_syntax


def normalize_email(email: str) -> Optional[str]:
    """
    Lowercase and trim an email address.

    Examples:
        >>> normalize_email("  John@Example.COM ")
        'john@example.com'
        >>> normalize_email("   ") is None
        True
    """
    if email is None:
        return None
    cleaned = str(email).strip().lower()
    return cleaned or None


def validate_email(email: str) -> bool:
    """
    Check that an email address is syntactically valid.

    Examples:
        >>> validate_email("family@example.com")
        True
        >>> validate_email("family@example")
        False
    """
    normalized = normalize_email(email)
    if not normalized:
        return False
    try:
        check_email_syntax(normalized, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
