"""
Typed records flowing through the bulk import pipeline.

Candidate records are what the Field Mapper produces from spreadsheet rows.
Every candidate remembers its position in the mapped input (``row_index``)
so validation buckets, commit outcomes and the result CSV can all be
traced back to the row the operator uploaded.

All result types are created fresh per import session; nothing here is
persisted.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Literal, Optional


UNMAPPED = "unmapped"

Disposition = Literal["added", "merged", "skipped"]
MatchReason = Literal["phone", "email"]


# ============================================================================
# Candidate records
# ============================================================================

@dataclass
class CandidateRecord:
    """
    Base class for mapped rows.

    ``FIELDS`` maps the canonical (camelCase) field names used in column
    mappings to the dataclass attribute names.
    """
    row_index: int = 0
    source_line: Optional[int] = None

    FIELDS: ClassVar[Dict[str, str]] = {}

    @classmethod
    def canonical_fields(cls) -> List[str]:
        """Canonical field names in display order."""
        return list(cls.FIELDS)

    def get(self, canonical: str) -> Optional[str]:
        """Return the raw value of a canonical field (None when unmapped)."""
        attr = self.FIELDS.get(canonical)
        if attr is None:
            raise KeyError(f"Unknown field '{canonical}' for {type(self).__name__}")
        return getattr(self, attr)

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Canonical field name -> raw value."""
        return {name: getattr(self, attr) for name, attr in self.FIELDS.items()}

    @property
    def row_number(self) -> int:
        """1-based position in the uploaded data rows."""
        return self.row_index + 1


@dataclass
class DonorInput(CandidateRecord):
    """A donor row after column mapping."""
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    address_city: Optional[str] = None
    notes: Optional[str] = None

    FIELDS: ClassVar[Dict[str, str]] = {
        "phone": "phone",
        "firstName": "first_name",
        "lastName": "last_name",
        "displayName": "display_name",
        "email": "email",
        "addressCity": "address_city",
        "notes": "notes",
    }


@dataclass
class PledgeInput(CandidateRecord):
    """A pledge row after column mapping."""
    phone: Optional[str] = None
    total_amount: Optional[str] = None
    start_date: Optional[str] = None
    frequency: Optional[str] = None
    notes: Optional[str] = None

    FIELDS: ClassVar[Dict[str, str]] = {
        "phone": "phone",
        "totalAmount": "total_amount",
        "startDate": "start_date",
        "frequency": "frequency",
        "notes": "notes",
    }


@dataclass
class YahrzeitInput(CandidateRecord):
    """A memorial-date (yahrzeit) row after column mapping."""
    phone: Optional[str] = None
    deceased_name: Optional[str] = None
    hebrew_date: Optional[str] = None
    secular_date: Optional[str] = None
    relationship: Optional[str] = None
    notes: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    FIELDS: ClassVar[Dict[str, str]] = {
        "phone": "phone",
        "deceasedName": "deceased_name",
        "hebrewDate": "hebrew_date",
        "secularDate": "secular_date",
        "relationship": "relationship",
        "notes": "notes",
        "contactEmail": "contact_email",
        "contactPhone": "contact_phone",
    }


@dataclass
class DonationInput(CandidateRecord):
    """A donation row after column mapping."""
    phone: Optional[str] = None
    amount: Optional[str] = None
    date: Optional[str] = None
    type: Optional[str] = None
    designation: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    FIELDS: ClassVar[Dict[str, str]] = {
        "phone": "phone",
        "amount": "amount",
        "date": "date",
        "type": "type",
        "designation": "designation",
        "paymentMethod": "payment_method",
        "notes": "notes",
    }


# ============================================================================
# Store references
# ============================================================================

@dataclass
class DonorRef:
    """
    An existing donor as seen by the store.

    ``fields`` carries the stored column values (snake_case) so merge
    conflicts can be reviewed field by field.
    """
    id: str
    phone: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RecordRef:
    """Reference to a row written by the store."""
    id: str
    kind: str


# ============================================================================
# Validation
# ============================================================================

@dataclass(frozen=True)
class FieldError:
    """A required field is missing or a value failed format/type checks."""
    field: str
    message: str


@dataclass
class ResolvedContext:
    """
    Everything a record will be persisted with, fixed at validation time.

    The committer reuses this unchanged; it never re-resolves links.
    """
    organization_id: str
    domain: str
    normalized_phone: str
    donor_id: Optional[str] = None
    match_reason: Optional[MatchReason] = None
    values: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MergeConflict:
    """A field where the existing donor and the incoming row disagree."""
    field: str
    existing: Any
    incoming: Any


@dataclass
class ValidRecord:
    """A record ready to be created."""
    candidate: CandidateRecord
    context: ResolvedContext

    @property
    def row_index(self) -> int:
        return self.candidate.row_index


@dataclass
class MergeCandidate:
    """A record matching an existing donor, pending the operator's decision."""
    candidate: CandidateRecord
    existing: DonorRef
    context: ResolvedContext
    conflicts: List[MergeConflict] = field(default_factory=list)

    @property
    def row_index(self) -> int:
        return self.candidate.row_index


@dataclass
class LinkFailure:
    """A dependent record whose parent donor could not be resolved."""
    candidate: CandidateRecord
    reason: str

    @property
    def row_index(self) -> int:
        return self.candidate.row_index


@dataclass
class InvalidRecord:
    """A malformed record with every field error found."""
    candidate: CandidateRecord
    errors: List[FieldError] = field(default_factory=list)

    @property
    def row_index(self) -> int:
        return self.candidate.row_index

    @property
    def message(self) -> str:
        return "; ".join(f"{e.field}: {e.message}" for e in self.errors)


@dataclass
class ValidationResult:
    """
    Four disjoint buckets that together partition the validated input.

    Row order inside each bucket follows input order.
    """
    domain: str
    valid: List[ValidRecord] = field(default_factory=list)
    to_merge: List[MergeCandidate] = field(default_factory=list)
    link_failed: List[LinkFailure] = field(default_factory=list)
    errors: List[InvalidRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.to_merge) + len(self.link_failed) + len(self.errors)

    def bucket_of(self) -> Dict[int, str]:
        """row_index -> bucket name, for UI round-tripping."""
        assignment: Dict[int, str] = {}
        for name in ("valid", "to_merge", "link_failed", "errors"):
            for entry in getattr(self, name):
                assignment[entry.row_index] = name
        return assignment

    def counts(self) -> Dict[str, int]:
        return {
            "valid": len(self.valid),
            "to_merge": len(self.to_merge),
            "link_failed": len(self.link_failed),
            "errors": len(self.errors),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "domain": self.domain,
            "total": self.total,
            **self.counts(),
            "link_failures": [
                {"row": f.candidate.row_number, "reason": f.reason}
                for f in self.link_failed
            ],
            "row_errors": [
                {
                    "row": e.candidate.row_number,
                    "errors": [{"field": fe.field, "message": fe.message} for fe in e.errors],
                }
                for e in self.errors
            ],
        }


# ============================================================================
# Simulation and commit
# ============================================================================

@dataclass(frozen=True)
class SimulationResult:
    """Would-be effect of a commit. Derived, never persisted."""
    to_add: int
    to_create: int = 0
    to_merge: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"to_add": self.to_add, "to_create": self.to_create, "to_merge": self.to_merge}


@dataclass(frozen=True)
class CommitProgress:
    """Running tally reported after every committed record."""
    processed: int
    added: int
    skipped: int
    merged: int = 0


@dataclass
class RowOutcome:
    """Final disposition of one committed record."""
    row_index: int
    disposition: Disposition
    phone: Optional[str] = None
    record_id: Optional[str] = None
    error: Optional[str] = None
    source_line: Optional[int] = None

    @property
    def row_number(self) -> int:
        return self.row_index + 1


@dataclass
class CommitResult:
    """Final tally of a commit run plus the downloadable per-row log."""
    added: int = 0
    merged: int = 0
    skipped: int = 0
    outcomes: List[RowOutcome] = field(default_factory=list)
    result_csv: bytes = b""

    @property
    def processed(self) -> int:
        return self.added + self.merged + self.skipped

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization (CSV omitted)."""
        return {
            "processed": self.processed,
            "added": self.added,
            "merged": self.merged,
            "skipped": self.skipped,
            "errors": [
                {"row": o.row_number, "error": o.error}
                for o in self.outcomes
                if o.disposition == "skipped"
            ],
        }


# ============================================================================
# Domains
# ============================================================================

class UnknownDomainError(ValueError):
    """Import domain is not one of the supported record kinds."""
    pass


CANDIDATE_TYPES: Dict[str, type] = {
    "donor": DonorInput,
    "pledge": PledgeInput,
    "yahrzeit": YahrzeitInput,
    "donation": DonationInput,
}


def candidate_type(domain: str) -> type:
    """Return the candidate record class for an import domain."""
    key = (domain or "").strip().lower()
    try:
        return CANDIDATE_TYPES[key]
    except KeyError:
        raise UnknownDomainError(
            f"Unknown import domain '{domain}'. Expected one of: {', '.join(CANDIDATE_TYPES)}"
        ) from None
