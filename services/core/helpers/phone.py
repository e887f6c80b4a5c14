"""
Phone number normalization for donor identity matching.

Donors are identified by phone number, and spreadsheets write the same
number in many shapes: "050-123-4567", "050 123 4567", "+972 50-123-4567",
"00972501234567". All of them normalize to one canonical digit-only form
("0501234567") so lookups against existing donors match regardless of
formatting.

The implementation uses an adapter pattern so a full numbering-plan library
can be plugged in later without touching callers.
"""

import re
from typing import Optional, Protocol


MIN_DIGITS = 7
MAX_DIGITS = 15

# Digits that must follow a country code for it to be treated as one
_MIN_NATIONAL_DIGITS = 8


class PhoneAdapter(Protocol):
    """Protocol for pluggable phone normalization adapters."""

    def normalize(self, phone: str) -> Optional[str]:
        """Normalize a phone string to canonical digit-only form."""
        ...

    def validate(self, phone: str) -> bool:
        """Check that a phone string normalizes to a plausible number."""
        ...


class DefaultPhoneAdapter:
    """
    Default national-format normalizer.

    Args:
        country_code: Home country calling code, digits only (e.g. "972")
        trunk_prefix: National trunk prefix written before local numbers (e.g. "0")
    """

    def __init__(self, country_code: str = "972", trunk_prefix: str = "0"):
        self.country_code = re.sub(r"\D", "", country_code or "")
        self.trunk_prefix = trunk_prefix or ""

    def normalize(self, phone: str) -> Optional[str]:
        """
        Normalize a phone string to national digit-only form.

        Rules:
        1. Keep digits only (separators, spaces, brackets and "+" are dropped)
        2. Drop an international dialing prefix ("00")
        3. If the number starts with the home country code, either written
           explicitly ("+972", "00972") or followed by a full national
           number, replace the country code with the trunk prefix

        Examples:
            >>> adapter = DefaultPhoneAdapter("972", "0")
            >>> adapter.normalize("050-123-4567")
            '0501234567'
            >>> adapter.normalize("+972 50 123 4567")
            '0501234567'
            >>> adapter.normalize("972501234567")
            '0501234567'
            >>> adapter.normalize("n/a") is None
            True
        """
        if phone is None:
            return None

        raw = str(phone).strip()
        digits = re.sub(r"\D", "", raw)
        if not digits:
            return None

        international = raw.startswith("+")
        if digits.startswith("00"):
            digits = digits[2:]
            international = True

        cc = self.country_code
        if cc and digits.startswith(cc):
            national = digits[len(cc):]
            if international or len(national) >= _MIN_NATIONAL_DIGITS:
                if self.trunk_prefix and not national.startswith(self.trunk_prefix):
                    national = self.trunk_prefix + national
                return national or None

        return digits

    def validate(self, phone: str) -> bool:
        """
        Validate that a phone normalizes to a plausible length.

        Examples:
            >>> adapter = DefaultPhoneAdapter()
            >>> adapter.validate("050-123-4567")
            True
            >>> adapter.validate("12")
            False
        """
        normalized = self.normalize(phone)
        if not normalized:
            return False
        return MIN_DIGITS <= len(normalized) <= MAX_DIGITS


_adapter: PhoneAdapter = DefaultPhoneAdapter()


def set_adapter(adapter: PhoneAdapter) -> None:
    """
    Set a custom phone adapter (e.g., one backed by a numbering-plan library).

    Args:
        adapter: Custom adapter implementing PhoneAdapter protocol
    """
    global _adapter
    _adapter = adapter


def get_adapter() -> PhoneAdapter:
    """Return the adapter used by the module-level helpers."""
    return _adapter


def normalize_phone(phone: str) -> Optional[str]:
    """
    Normalize a phone string using the configured adapter.

    Examples:
        >>> normalize_phone("050 123 4567")
        '0501234567'
    """
    return _adapter.normalize(phone)


def validate_phone(phone: str) -> bool:
    """Validate a phone string using the configured adapter."""
    return _adapter.validate(phone)
