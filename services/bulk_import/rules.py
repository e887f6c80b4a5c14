"""
Per-domain import rules.

The validator and committer run one generic pipeline; everything that
differs between donors, pledges, yahrzeits and donations lives in a small
DomainRules implementation:

- ``required_fields``: canonical fields that must be non-blank
- ``resolve``: find the donor a row refers to (or duplicates)
- ``classify``: value checks, returning field errors plus the values the
  record will be persisted with
- ``persist``: the store write for one approved record
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from services.core.helpers.email import normalize_email, validate_email
from services.core.helpers.phone import PhoneAdapter

from .models import (
    CandidateRecord,
    DonorRef,
    FieldError,
    MergeConflict,
    RecordRef,
    UnknownDomainError,
)
from .settings import BulkImportSettings, get_settings

PLEDGE_FREQUENCIES = ("monthly", "quarterly", "yearly", "one-time")
DONATION_TYPES = ("Regular", "Nedarim", "Aliyot", "Yahrzeit", "Other")
PAYMENT_METHODS = ("Cash", "Check", "Transfer", "CreditCard", "Zelle", "Other")

PLEDGE_STATUS = "active"
DONATION_STATUS = "Succeeded"
UNKNOWN_DONOR_NAME = "Unknown"

_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S")
_CURRENCY_CHARS = re.compile(r"[\s,₪$€£]")

# Donor columns compared when reviewing a merge
_DONOR_REVIEW_FIELDS = ("name", "first_name", "last_name", "email", "address_city", "notes")


# ============================================================================
# Value parsing
# ============================================================================

def is_blank(value: Any) -> bool:
    """True for None and whitespace-only strings."""
    return value is None or not str(value).strip()


def clean(value: Any) -> Optional[str]:
    """Trim a raw cell, mapping blanks to None."""
    if is_blank(value):
        return None
    return str(value).strip()


def parse_amount(raw: Any) -> Optional[Decimal]:
    """
    Parse a money amount written in a spreadsheet cell.

    Thousands separators, spaces and currency symbols are ignored.

    Examples:
        >>> parse_amount("1,000")
        Decimal('1000')
        >>> parse_amount("₪ 250.50")
        Decimal('250.50')
        >>> parse_amount("abc") is None
        True
    """
    text = clean(raw)
    if text is None:
        return None
    try:
        value = Decimal(_CURRENCY_CHARS.sub("", text))
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def parse_date(raw: Any) -> Optional[date]:
    """
    Parse an ISO date cell.

    Accepts "2024-09-30" as well as the "2024-09-30 00:00:00" form that
    spreadsheet exports produce for date-typed cells.

    Examples:
        >>> parse_date("2024-09-30")
        datetime.date(2024, 9, 30)
        >>> parse_date("30/09/2024") is None
        True
    """
    text = clean(raw)
    if text is None:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _enum_key(value: str) -> str:
    return re.sub(r"[\W_]+", "", value.lower())


def parse_choice(raw: Any, choices: Tuple[str, ...]) -> Optional[str]:
    """
    Match a cell against an enumeration, ignoring case, spaces and dashes.

    Examples:
        >>> parse_choice("Credit Card", PAYMENT_METHODS)
        'CreditCard'
        >>> parse_choice("one time", PLEDGE_FREQUENCIES)
        'one-time'
    """
    text = clean(raw)
    if text is None:
        return None
    key = _enum_key(text)
    for choice in choices:
        if _enum_key(choice) == key:
            return choice
    return None


def derive_donor_name(first_name: Optional[str], last_name: Optional[str],
                      display_name: Optional[str]) -> Optional[str]:
    """Display name, else "first last", else None."""
    if display_name:
        return display_name
    parts = [p for p in (first_name, last_name) if p]
    return " ".join(parts) or None


# ============================================================================
# Rules
# ============================================================================

class DomainRules:
    """
    Base class for domain rules.

    ``parent_required`` is True for dependent records (a donor must already
    exist). For the donor domain a match is a duplicate, routed to review.
    """

    domain: str = ""
    required_fields: Tuple[str, ...] = ("phone",)
    parent_required: bool = True

    def __init__(self, config: Optional[BulkImportSettings] = None):
        self.config = config or get_settings()

    def missing_fields(self, candidate: CandidateRecord) -> List[FieldError]:
        """One FieldError per required field left blank."""
        return [
            FieldError(name, "required field is missing")
            for name in self.required_fields
            if is_blank(candidate.get(name))
        ]

    def resolve(
        self,
        store,
        organization_id: str,
        candidate: CandidateRecord,
        phone: str,
    ) -> Tuple[Optional[DonorRef], Optional[str]]:
        """Find the donor a row belongs to. Returns (donor, match reason)."""
        donor = store.find_donor_by_normalized_phone(organization_id, phone)
        if donor is not None:
            return donor, "phone"
        return None, None

    def classify(
        self,
        candidate: CandidateRecord,
        phone: str,
        donor: Optional[DonorRef],
        phone_adapter: PhoneAdapter,
    ) -> Tuple[List[FieldError], Dict[str, Any]]:
        """Return (field errors, values to persist)."""
        raise NotImplementedError

    def link_failure_reason(self, candidate: CandidateRecord, phone: str) -> str:
        return f"no donor found for phone {phone}"

    def conflicts(self, existing: DonorRef, values: Dict[str, Any]) -> List[MergeConflict]:
        return []

    def persist(self, record, store) -> Tuple[str, RecordRef]:
        """Write one approved record. Returns (disposition, written ref)."""
        raise NotImplementedError


class DonorRules(DomainRules):
    """Donors: create new ones, route phone/email matches to merge review."""

    domain = "donor"
    required_fields = ("phone",)
    parent_required = False

    def resolve(self, store, organization_id, candidate, phone):
        donor, reason = super().resolve(store, organization_id, candidate, phone)
        if donor is not None or not self.config.match_donors_by_email:
            return donor, reason

        email = normalize_email(candidate.email)
        if email and validate_email(email):
            donor = store.find_donor_by_email(organization_id, email)
            if donor is not None:
                return donor, "email"
        return None, None

    def classify(self, candidate, phone, donor, phone_adapter):
        errors: List[FieldError] = []

        email = normalize_email(candidate.email)
        if email and not validate_email(email):
            errors.append(FieldError("email", f"invalid email address '{candidate.email}'"))

        first_name = clean(candidate.first_name)
        last_name = clean(candidate.last_name)
        name = derive_donor_name(first_name, last_name, clean(candidate.display_name))
        if donor is None and name is None:
            name = UNKNOWN_DONOR_NAME

        values = {
            "phone": phone,
            "name": name,
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "address_city": clean(candidate.address_city),
            "notes": clean(candidate.notes),
        }
        return errors, values

    def conflicts(self, existing, values):
        found = []
        for name in _DONOR_REVIEW_FIELDS:
            incoming = values.get(name)
            current = existing.fields.get(name)
            if is_blank(incoming) or is_blank(current):
                continue
            if str(current).strip() != str(incoming).strip():
                found.append(MergeConflict(name, current, incoming))
        return found

    def persist(self, record, store):
        context = record.context
        existing = getattr(record, "existing", None)

        if existing is not None:
            # Incoming non-empty values overwrite; blanks never clear a field
            updates = {k: v for k, v in context.values.items() if not is_blank(v)}
            ref = store.merge_donor(context.organization_id, existing, updates)
            return "merged", RecordRef(ref.id, "donor")

        ref = store.insert_donor(context.organization_id, dict(context.values))
        return "added", RecordRef(ref.id, "donor")


class PledgeRules(DomainRules):
    """Pledges: donor must exist, positive amount, known frequency."""

    domain = "pledge"
    required_fields = ("phone", "totalAmount")

    def classify(self, candidate, phone, donor, phone_adapter):
        errors: List[FieldError] = []

        amount = parse_amount(candidate.total_amount)
        if amount is None:
            errors.append(FieldError("totalAmount", f"'{candidate.total_amount}' is not a number"))
        elif amount <= 0:
            errors.append(FieldError("totalAmount", "amount must be positive"))

        start_date = date.today()
        if not is_blank(candidate.start_date):
            start_date = parse_date(candidate.start_date)
            if start_date is None:
                errors.append(FieldError("startDate", f"'{candidate.start_date}' is not a valid date (YYYY-MM-DD)"))

        frequency = self.config.default_pledge_frequency
        if not is_blank(candidate.frequency):
            frequency = parse_choice(candidate.frequency, PLEDGE_FREQUENCIES)
            if frequency is None:
                errors.append(FieldError(
                    "frequency",
                    f"'{candidate.frequency}' is not one of: {', '.join(PLEDGE_FREQUENCIES)}",
                ))

        values = {
            "total_amount": amount,
            "start_date": start_date,
            "frequency": frequency,
            "notes": clean(candidate.notes),
            "status": PLEDGE_STATUS,
        }
        return errors, values

    def persist(self, record, store):
        context = record.context
        ref = store.insert_pledge(
            context.organization_id, {"donor_id": context.donor_id, **context.values}
        )
        return "added", ref


class YahrzeitRules(DomainRules):
    """Yahrzeits: donor must exist, secular date must be an ISO date."""

    domain = "yahrzeit"
    required_fields = ("phone", "deceasedName", "hebrewDate", "secularDate")

    def classify(self, candidate, phone, donor, phone_adapter):
        errors: List[FieldError] = []

        secular_date = parse_date(candidate.secular_date)
        if secular_date is None:
            errors.append(FieldError("secularDate", f"'{candidate.secular_date}' is not a valid date (YYYY-MM-DD)"))

        contact_email = normalize_email(candidate.contact_email)
        if contact_email and not validate_email(contact_email):
            errors.append(FieldError("contactEmail", f"invalid email address '{candidate.contact_email}'"))

        contact_phone = None
        if not is_blank(candidate.contact_phone):
            if phone_adapter.validate(candidate.contact_phone):
                contact_phone = phone_adapter.normalize(candidate.contact_phone)
            else:
                errors.append(FieldError("contactPhone", f"invalid phone number '{candidate.contact_phone}'"))

        values = {
            "deceased_name": clean(candidate.deceased_name),
            "hebrew_date": clean(candidate.hebrew_date),
            "secular_date": secular_date,
            "relationship": clean(candidate.relationship),
            "notes": clean(candidate.notes),
            "contact_email": contact_email,
            "contact_phone": contact_phone,
        }
        return errors, values

    def persist(self, record, store):
        context = record.context
        ref = store.insert_yahrzeit(
            context.organization_id, {"donor_id": context.donor_id, **context.values}
        )
        return "added", ref


class DonationRules(DomainRules):
    """Donations: donor must exist, positive amount, known type and method."""

    domain = "donation"
    required_fields = ("phone", "amount")

    def classify(self, candidate, phone, donor, phone_adapter):
        errors: List[FieldError] = []

        amount = parse_amount(candidate.amount)
        if amount is None:
            errors.append(FieldError("amount", f"'{candidate.amount}' is not a number"))
        elif amount <= 0:
            errors.append(FieldError("amount", "amount must be positive"))

        donation_date = date.today()
        if not is_blank(candidate.date):
            donation_date = parse_date(candidate.date)
            if donation_date is None:
                errors.append(FieldError("date", f"'{candidate.date}' is not a valid date (YYYY-MM-DD)"))

        donation_type = self.config.default_donation_type
        if not is_blank(candidate.type):
            donation_type = parse_choice(candidate.type, DONATION_TYPES)
            if donation_type is None:
                errors.append(FieldError("type", f"'{candidate.type}' is not one of: {', '.join(DONATION_TYPES)}"))

        payment_method = self.config.default_payment_method
        if not is_blank(candidate.payment_method):
            payment_method = parse_choice(candidate.payment_method, PAYMENT_METHODS)
            if payment_method is None:
                errors.append(FieldError(
                    "paymentMethod",
                    f"'{candidate.payment_method}' is not one of: {', '.join(PAYMENT_METHODS)}",
                ))

        values = {
            "amount": amount,
            "date": donation_date,
            "type": donation_type,
            "designation": clean(candidate.designation),
            "payment_method": payment_method,
            "notes": clean(candidate.notes),
            "status": DONATION_STATUS,
        }
        return errors, values

    def persist(self, record, store):
        context = record.context
        ref = store.insert_donation(
            context.organization_id, {"donor_id": context.donor_id, **context.values}
        )
        return "added", ref


RULES = {
    "donor": DonorRules,
    "pledge": PledgeRules,
    "yahrzeit": YahrzeitRules,
    "donation": DonationRules,
}


def get_rules(domain: str, config: Optional[BulkImportSettings] = None) -> DomainRules:
    """
    Return the rules for an import domain.

    Raises:
        UnknownDomainError: If the domain is not supported
    """
    key = (domain or "").strip().lower()
    if key not in RULES:
        raise UnknownDomainError(
            f"Unknown import domain '{domain}'. Expected one of: {', '.join(RULES)}"
        )
    return RULES[key](config)
