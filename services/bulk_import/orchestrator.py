"""
End-to-end import runner.

Chains the pipeline stages for non-interactive use (CLI, scheduled jobs):

    load -> parse -> map -> validate -> simulate -> [commit] -> report

Without ``commit_records`` the run stops after simulation (dry run).
Fatal stage errors are recorded in the report instead of raised.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from services.core.log_config import get_logger, import_context

from .committer import ProgressCallback, commit
from .fetcher import FetchError, load_source
from .mapping import map_parse_result, suggest_mapping
from .models import UNMAPPED, UnknownDomainError, ValidationResult
from .parser import ParseError, parse
from .report import ImportReport, create_report, save_report
from .simulator import simulate
from .store import StoreError
from .validator import validate

logger = get_logger(__name__)


def build_mapping(headers, domain: str, overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Suggested mapping for the headers, with explicit overrides applied.

    An override may name a header or "unmapped".
    """
    mapping = suggest_mapping(headers, domain)
    for field_name, header in (overrides or {}).items():
        mapping[field_name] = header or UNMAPPED
    return mapping


def approved_records(validation: ValidationResult, include_merges: bool = True) -> List:
    """Records a commit would write, in input order."""
    records = list(validation.valid)
    if include_merges:
        records += validation.to_merge
    return sorted(records, key=lambda r: r.row_index)


def run_import(
    source: str,
    domain: str,
    organization_id: str,
    store,
    mapping: Optional[Mapping[str, str]] = None,
    commit_records: bool = False,
    include_merges: bool = True,
    on_progress: Optional[ProgressCallback] = None,
    reports_dir: Optional[Path] = None,
    save: bool = True,
) -> ImportReport:
    """
    Run the import pipeline for one file.

    Args:
        source: Local path or http(s) URL of the spreadsheet
        domain: "donor", "pledge", "yahrzeit" or "donation"
        organization_id: Tenant the rows belong to
        store: ImportStore for lookups and writes
        mapping: Explicit field -> header entries (others are suggested)
        commit_records: Write approved records (otherwise dry run)
        include_merges: Also commit donor rows matching existing donors
        on_progress: Commit progress observer
        reports_dir: Where to save the report (default from settings)
        save: Save the JSON report (and result CSV)

    Returns:
        ImportReport for the session
    """
    started_at = datetime.now(timezone.utc)
    stages = {"rows_parsed": 0, "warnings": []}

    with import_context(organization_id=organization_id, domain=domain, source=source):
        try:
            content, file_format = load_source(source)
            parsed = parse(content, file_format)
            stages.update(rows_parsed=len(parsed.rows), warnings=list(parsed.warnings))

            column_mapping = build_mapping(parsed.headers, domain, mapping)
            logger.info("Column mapping", mapping=column_mapping)

            candidates = map_parse_result(parsed, column_mapping, domain)
            validation = validate(candidates, domain, store, organization_id)
            stages["validation"] = validation

            simulation = simulate(validation.valid, validation.to_merge)
            stages["simulation"] = simulation

            if commit_records:
                records = approved_records(validation, include_merges)
                stages["commit"] = commit(records, domain, store, on_progress=on_progress)

        except (FetchError, ParseError, StoreError, UnknownDomainError) as e:
            logger.error("Import failed", error=str(e), error_type=type(e).__name__)
            stages["errors"] = [str(e)]

        report = create_report(
            organization_id=organization_id,
            domain=domain,
            source=source,
            started_at=started_at,
            **stages,
        )

        if save:
            path = save_report(report, reports_dir)
            logger.info("Report saved", path=str(path), status=report.status)

    return report
