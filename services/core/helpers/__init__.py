"""
Helper utilities for identity normalization and validation.

Phone numbers and email addresses are the keys donors are matched on, so
both are normalized before any lookup. The phone helper supports pluggable
adapters.
"""

from .email import normalize_email, validate_email
from .phone import DefaultPhoneAdapter, normalize_phone, validate_phone

__all__ = [
    "DefaultPhoneAdapter",
    "normalize_email",
    "normalize_phone",
    "validate_email",
    "validate_phone",
]
