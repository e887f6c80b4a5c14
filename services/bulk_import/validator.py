"""
Validator/Linker: classifies mapped candidates into four buckets.

Per record, in input order:
1. Required-field check (short-circuits on failure)
2. Phone normalization
3. Entity resolution against the store (donor by phone, then email)
4. Value checks and classification

A donor row whose phone, or whose matched existing donor, was already
taken by an earlier row of the same file is an error.

Every candidate lands in exactly one of valid, to_merge, link_failed or
errors. Nothing is written to the store; a store failure propagates so
the caller can retry the whole step.
"""

from typing import Optional, Sequence

from services.core.helpers.phone import DefaultPhoneAdapter, PhoneAdapter
from services.core.log_config import get_logger

from .models import (
    CandidateRecord,
    FieldError,
    InvalidRecord,
    LinkFailure,
    MergeCandidate,
    ResolvedContext,
    ValidationResult,
    ValidRecord,
)
from .rules import get_rules
from .settings import BulkImportSettings, get_settings

logger = get_logger(__name__)


def default_phone_adapter(config: Optional[BulkImportSettings] = None) -> PhoneAdapter:
    """Phone adapter built from the configured country code and trunk prefix."""
    config = config or get_settings()
    return DefaultPhoneAdapter(config.default_country_code, config.trunk_prefix)


def validate(
    candidates: Sequence[CandidateRecord],
    domain: str,
    store,
    organization_id: str,
    phone_adapter: Optional[PhoneAdapter] = None,
    config: Optional[BulkImportSettings] = None,
) -> ValidationResult:
    """
    Validate and link candidate records for one organization.

    Args:
        candidates: Mapped records (from map_rows)
        domain: "donor", "pledge", "yahrzeit" or "donation"
        store: ImportStore used for read-only lookups
        organization_id: Tenant every lookup is scoped to
        phone_adapter: Phone normalizer (default from settings)
        config: Settings override

    Returns:
        ValidationResult partitioning the candidates

    Raises:
        UnknownDomainError: If domain is not supported
        ValueError: If organization_id is empty
        StoreError: If the store cannot be queried
    """
    if not organization_id:
        raise ValueError("organization_id is required")

    config = config or get_settings()
    rules = get_rules(domain, config)
    adapter = phone_adapter or default_phone_adapter(config)

    result = ValidationResult(domain=rules.domain)
    seen_phones = {}
    claimed_donors = {}

    for candidate in candidates:
        missing = rules.missing_fields(candidate)
        if missing:
            result.errors.append(InvalidRecord(candidate, missing))
            continue

        phone = adapter.normalize(candidate.phone) if adapter.validate(candidate.phone) else None
        if phone is None:
            result.errors.append(InvalidRecord(
                candidate, [FieldError("phone", f"invalid phone number '{candidate.phone}'")]
            ))
            continue

        donor, reason = rules.resolve(store, organization_id, candidate, phone)

        if rules.parent_required and donor is None:
            result.link_failed.append(LinkFailure(candidate, rules.link_failure_reason(candidate, phone)))
            continue

        errors, values = rules.classify(candidate, phone, donor, adapter)

        if not rules.parent_required and phone in seen_phones:
            errors.append(FieldError(
                "phone", f"duplicate of row {seen_phones[phone] + 1} in this file"
            ))
        elif not rules.parent_required and donor is not None and donor.id in claimed_donors:
            errors.append(FieldError(
                "phone", f"matches the same donor as row {claimed_donors[donor.id] + 1} in this file"
            ))

        if errors:
            result.errors.append(InvalidRecord(candidate, errors))
            continue

        seen_phones.setdefault(phone, candidate.row_index)
        if donor is not None:
            claimed_donors.setdefault(donor.id, candidate.row_index)

        context = ResolvedContext(
            organization_id=organization_id,
            domain=rules.domain,
            normalized_phone=phone,
            donor_id=donor.id if donor is not None else None,
            match_reason=reason,
            values=values,
        )

        if rules.parent_required or donor is None:
            result.valid.append(ValidRecord(candidate, context))
        else:
            result.to_merge.append(
                MergeCandidate(candidate, donor, context, rules.conflicts(donor, values))
            )

    logger.info(
        "Validation completed",
        domain=rules.domain,
        organization_id=organization_id,
        total=len(candidates),
        **result.counts(),
    )

    return result
