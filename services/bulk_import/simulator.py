"""
Dry-run simulation of a commit.

Read-only: computes what a commit would do from the validator's buckets
without touching storage.
"""

import io
from typing import Any, Dict, List, Sequence

import pandas as pd

from .models import MergeCandidate, SimulationResult, ValidRecord

PREVIEW_COLUMNS = ["Row", "Action", "Phone", "Name", "Amount", "Existing ID"]


def simulate(valid: Sequence[ValidRecord], to_merge: Sequence[MergeCandidate]) -> SimulationResult:
    """
    Count the records a commit would create or merge.

    Both new and merged records produce a persisted row, so
    ``to_add == len(valid) + len(to_merge)``.

    Example:
        >>> simulate([], []).to_add
        0
    """
    return SimulationResult(
        to_add=len(valid) + len(to_merge),
        to_create=len(valid),
        to_merge=len(to_merge),
    )


def _preview_row(record, action: str) -> Dict[str, Any]:
    values = record.context.values
    amount = values.get("total_amount", values.get("amount"))
    name = values.get("name") or values.get("deceased_name") or ""
    existing = getattr(record, "existing", None)

    return {
        "Row": record.candidate.row_number,
        "Action": action,
        "Phone": record.context.normalized_phone,
        "Name": name,
        "Amount": "" if amount is None else str(amount),
        "Existing ID": existing.id if existing is not None else "",
    }


def preview_rows(valid: Sequence[ValidRecord], to_merge: Sequence[MergeCandidate]) -> List[Dict[str, Any]]:
    """
    One preview line per record a commit would write, in input order.

    Action is "ADD" for new records and "MERGE" for matches of an existing
    donor (with its id).
    """
    rows = [(r.row_index, _preview_row(r, "ADD")) for r in valid]
    rows += [(r.row_index, _preview_row(r, "MERGE")) for r in to_merge]
    rows.sort(key=lambda item: item[0])
    return [row for _, row in rows]


def preview_csv(valid: Sequence[ValidRecord], to_merge: Sequence[MergeCandidate]) -> bytes:
    """Preview rows as UTF-8 CSV (with BOM so spreadsheet apps show Hebrew)."""
    df = pd.DataFrame(preview_rows(valid, to_merge), columns=PREVIEW_COLUMNS)
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue().encode("utf-8-sig")
