"""
Field mapper: applies an operator's column mapping to parsed rows.

A ColumnMapping maps each canonical field name ("phone", "totalAmount",
...) to a source header, or to "unmapped". Mapping copies values and does
nothing else; a required field left unmapped simply arrives empty and is
reported by the validator.

The alias table below powers ``suggest_mapping``, which pre-fills the
mapping form from whatever headers the uploaded file has.
"""

import re
from typing import Dict, List, Mapping, Optional, Sequence

from services.core.log_config import get_logger

from .models import UNMAPPED, CandidateRecord, candidate_type

logger = get_logger(__name__)

ColumnMapping = Mapping[str, str]


# Maps canonical field name to header spellings seen in operator files.
# Compared after normalize_header_key(), so case, spaces and punctuation
# do not matter. The canonical name itself always matches.
FIELD_ALIASES: Dict[str, List[str]] = {
    "phone": [
        "phone number", "phone no", "mobile", "cell", "cellphone",
        "telephone", "tel", "טלפון", "נייד", "מספר טלפון",
    ],
    "firstName": ["first name", "first", "given name", "שם פרטי"],
    "lastName": ["last name", "last", "surname", "family name", "שם משפחה"],
    "displayName": ["display name", "name", "full name", "donor name", "שם", "שם מלא"],
    "email": ["e-mail", "email address", "mail", "אימייל", "דוא\"ל", "מייל"],
    "addressCity": ["city", "town", "address city", "עיר"],
    "notes": ["note", "comments", "comment", "remarks", "הערות"],
    "totalAmount": ["total amount", "amount", "total", "pledge amount", "סכום", "סכום כולל"],
    "startDate": ["start date", "start", "pledge date", "תאריך התחלה"],
    "frequency": ["interval", "תדירות"],
    "deceasedName": ["deceased name", "deceased", "name of deceased", "נפטר", "שם הנפטר"],
    "hebrewDate": ["hebrew date", "תאריך עברי"],
    "secularDate": ["secular date", "gregorian date", "date of passing", "תאריך לועזי"],
    "relationship": ["relation", "קרבה"],
    "contactEmail": ["contact email", "family email"],
    "contactPhone": ["contact phone", "family phone"],
    "amount": ["donation amount", "sum", "סכום"],
    "date": ["donation date", "תאריך"],
    "type": ["donation type", "סוג"],
    "designation": ["purpose", "fund", "ייעוד"],
    "paymentMethod": ["payment method", "method", "payment", "אמצעי תשלום"],
}


def normalize_header_key(header: str) -> str:
    """
    Normalize a header for alias comparison.

    Rules:
    - lowercase
    - drop everything that is not a letter or digit (any script)

    Examples:
        >>> normalize_header_key("  Phone-Number ")
        'phonenumber'
        >>> normalize_header_key("Total_Amount")
        'totalamount'
    """
    if not header:
        return ""
    return re.sub(r"[\W_]+", "", str(header).lower())


def suggest_mapping(headers: Sequence[str], domain: str) -> Dict[str, str]:
    """
    Propose a ColumnMapping for a domain from the uploaded headers.

    Each header is used for at most one field; fields are filled in the
    domain's display order. Fields with no matching header are "unmapped".

    Example:
        >>> suggest_mapping(["Phone", "Total Amount", "Memo"], "pledge")["totalAmount"]
        'Total Amount'
    """
    record_type = candidate_type(domain)
    by_key: Dict[str, str] = {}
    for header in headers:
        by_key.setdefault(normalize_header_key(header), header)

    used = set()
    mapping: Dict[str, str] = {}

    for canonical in record_type.canonical_fields():
        candidates = [canonical] + FIELD_ALIASES.get(canonical, [])
        chosen = UNMAPPED
        for alias in candidates:
            header = by_key.get(normalize_header_key(alias))
            if header is not None and header not in used:
                chosen = header
                used.add(header)
                break
        mapping[canonical] = chosen

    return mapping


def map_rows(
    rows: Sequence[Mapping[str, str]],
    mapping: ColumnMapping,
    domain: str,
    line_numbers: Optional[Sequence[int]] = None,
) -> List[CandidateRecord]:
    """
    Apply a column mapping to parsed rows.

    Pure and total: every row yields exactly one candidate, in input order.
    For each canonical field whose mapping entry is a header (not
    "unmapped"), the row's cell is copied verbatim; everything else stays
    None. Mapping entries for fields the domain does not have are ignored.

    Args:
        rows: Parsed rows (header -> cell)
        mapping: Canonical field -> source header or "unmapped"
        domain: "donor", "pledge", "yahrzeit" or "donation"
        line_numbers: Sheet line of each row, parallel to rows (optional)

    Returns:
        Candidate records with row_index set to the row's position
    """
    record_type = candidate_type(domain)
    fields = record_type.FIELDS

    active = {
        fields[canonical]: header
        for canonical, header in mapping.items()
        if canonical in fields and header and header != UNMAPPED
    }

    ignored = sorted(set(mapping) - set(fields))
    if ignored:
        logger.debug("Ignoring mapping entries for unknown fields", domain=domain, fields=ignored)

    candidates: List[CandidateRecord] = []
    for index, row in enumerate(rows):
        values = {attr: row.get(header) for attr, header in active.items()}
        source_line = line_numbers[index] if line_numbers and index < len(line_numbers) else None
        candidates.append(record_type(row_index=index, source_line=source_line, **values))

    return candidates


def map_parse_result(parsed, mapping: ColumnMapping, domain: str) -> List[CandidateRecord]:
    """Map every row of a ParseResult, carrying its sheet line numbers."""
    return map_rows(parsed.rows, mapping, domain, line_numbers=parsed.line_numbers)
