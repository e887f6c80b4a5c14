"""
Result export and import session reports.

``to_csv`` serializes the committer's per-row outcomes into the CSV the
operator downloads after a commit. ``ImportReport`` summarizes a whole
session (parse warnings, bucket counts, simulation, commit tally) and is
saved as JSON to the reports directory with a timestamped filename.
"""

import io
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .models import CommitResult, RowOutcome, SimulationResult, ValidationResult
from .settings import get_settings

RESULT_COLUMNS = ["Row", "Line", "Status", "Phone", "Record ID", "Error"]


def to_csv(outcomes: Sequence[RowOutcome]) -> bytes:
    """
    Serialize commit outcomes to a UTF-8 CSV blob.

    Columns are fixed: Row (1-based position in the approved records'
    source file), Line (sheet line when known), Status (ADDED, MERGED or
    SKIPPED), Phone, Record ID and Error. One line per outcome in commit
    order; a header row is always written.
    """
    records = [
        {
            "Row": o.row_number,
            "Line": "" if o.source_line is None else o.source_line,
            "Status": o.disposition.upper(),
            "Phone": o.phone or "",
            "Record ID": o.record_id or "",
            "Error": o.error or "",
        }
        for o in outcomes
    ]
    df = pd.DataFrame(records, columns=RESULT_COLUMNS)
    buffer = io.StringIO()
    df.to_csv(buffer, index=False, lineterminator="\n")
    # BOM so spreadsheet apps open Hebrew text correctly
    return buffer.getvalue().encode("utf-8-sig")


@dataclass
class ImportReport:
    """Complete import session report."""
    timestamp: datetime
    organization_id: str
    domain: str
    status: str  # "ok", "partial", "error", "dry_run"
    source: Optional[str] = None
    rows_parsed: int = 0
    warnings: List[str] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    simulation: Optional[SimulationResult] = None
    commit: Optional[CommitResult] = None
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "organization_id": self.organization_id,
            "domain": self.domain,
            "status": self.status,
            "source": self.source,
            "rows_parsed": self.rows_parsed,
            "warnings": self.warnings,
            "validation": self.validation.to_dict() if self.validation else None,
            "simulation": self.simulation.to_dict() if self.simulation else None,
            "commit": self.commit.to_dict() if self.commit else None,
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert report to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def create_report(
    organization_id: str,
    domain: str,
    source: Optional[str] = None,
    rows_parsed: int = 0,
    warnings: Optional[Sequence[str]] = None,
    validation: Optional[ValidationResult] = None,
    simulation: Optional[SimulationResult] = None,
    commit: Optional[CommitResult] = None,
    started_at: Optional[datetime] = None,
    errors: Optional[List[str]] = None,
) -> ImportReport:
    """
    Create an import report from stage results.

    Status:
    - "error": a fatal error stopped the session
    - "dry_run": validated and simulated, nothing committed
    - "partial": committed, but some rows were skipped
    - "ok": committed without skipped rows
    """
    now = datetime.now(timezone.utc)
    all_errors = list(errors or [])

    if all_errors:
        status = "error"
    elif commit is None:
        status = "dry_run"
    elif commit.skipped:
        status = "partial"
    else:
        status = "ok"

    duration = (now - started_at).total_seconds() if started_at else 0.0

    return ImportReport(
        timestamp=now,
        organization_id=organization_id,
        domain=domain,
        status=status,
        source=source,
        rows_parsed=rows_parsed,
        warnings=list(warnings or []),
        validation=validation,
        simulation=simulation,
        commit=commit,
        duration_seconds=duration,
        errors=all_errors,
    )


def save_report(
    report: ImportReport,
    reports_dir: Optional[Path] = None,
) -> Path:
    """
    Save report to a JSON file.

    File is named YYYY-MM-DD_HHmmss_<domain>.json. When the report carries
    a commit, its result CSV is written next to it with the same stem.

    Returns:
        Path to saved report file
    """
    if reports_dir is None:
        reports_dir = Path(get_settings().reports_dir)
    reports_dir = Path(reports_dir)

    reports_dir.mkdir(parents=True, exist_ok=True)

    stem = f"{report.timestamp.strftime('%Y-%m-%d_%H%M%S')}_{report.domain}"
    filepath = reports_dir / f"{stem}.json"

    with open(filepath, "w", encoding="utf-8") as f:
        f.write(report.to_json())

    if report.commit is not None:
        (reports_dir / f"{stem}.csv").write_bytes(report.commit.result_csv)

    return filepath
