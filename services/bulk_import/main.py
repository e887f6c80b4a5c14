"""
Command line interface for the bulk import engine.

Examples:
  python -m services.bulk_import template donor --output donors.xlsx
  python -m services.bulk_import run donors.csv --domain donor --org ORG_ID
  python -m services.bulk_import run pledges.xlsx --domain pledge --org ORG_ID \\
      --map totalAmount="Sum" --commit
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from services.core import __version__
from services.core.db.connector import get_engine
from services.core.log_config import configure_logging, get_logger
from services.core.settings import settings as core_settings

from .models import CANDIDATE_TYPES
from .orchestrator import run_import
from .store import SqlImportStore
from .templates import TEMPLATE_FORMATS, build_template

logger = get_logger(__name__)


def parse_mapping_args(pairs: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse repeated ``field=Header`` arguments.

    Raises:
        ValueError: If a pair has no "=" or an empty field name
    """
    mapping: Dict[str, str] = {}
    for pair in pairs or []:
        field_name, sep, header = pair.partition("=")
        if not sep or not field_name.strip():
            raise ValueError(f"Invalid mapping '{pair}'. Expected field=Header")
        mapping[field_name.strip()] = header.strip()
    return mapping


def cmd_template(args) -> int:
    """Write a sample template file for a domain."""
    output = Path(args.output or f"{args.domain}_template.{args.format}")
    output.write_bytes(build_template(args.domain, args.format))
    logger.info("Template written", domain=args.domain, path=str(output))
    return 0


def cmd_run(args) -> int:
    """Run (or dry-run) an import."""
    mapping = parse_mapping_args(args.map)

    config = core_settings()
    dsn = args.database_url or config.database_url
    if not dsn:
        logger.error("No database configured. Set DATABASE_URL or pass --database-url")
        return 1

    store = SqlImportStore(get_engine(dsn))

    def on_progress(progress):
        logger.debug(
            "Commit progress",
            processed=progress.processed,
            added=progress.added,
            merged=progress.merged,
            skipped=progress.skipped,
        )

    report = run_import(
        args.source,
        args.domain,
        args.org,
        store,
        mapping=mapping,
        commit_records=args.commit,
        include_merges=not args.skip_merges,
        on_progress=on_progress,
        reports_dir=Path(args.reports_dir) if args.reports_dir else None,
    )

    if args.result_csv and report.commit is not None:
        Path(args.result_csv).write_bytes(report.commit.result_csv)

    print(report.to_json())
    return 1 if report.status == "error" else 0


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Donor bulk import and reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration"
    )

    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Override log format from configuration"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"donorbook-import {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    template = subparsers.add_parser("template", help="Write a sample import file")
    template.add_argument("domain", choices=list(CANDIDATE_TYPES))
    template.add_argument("--format", choices=list(TEMPLATE_FORMATS), default="xlsx")
    template.add_argument("--output", help="Output path (default: <domain>_template.<format>)")
    template.set_defaults(func=cmd_template)

    run = subparsers.add_parser("run", help="Validate and optionally commit an import file")
    run.add_argument("source", help="Path or http(s) URL of a .csv/.xlsx file")
    run.add_argument("--domain", choices=list(CANDIDATE_TYPES), required=True)
    run.add_argument("--org", required=True, help="Organization id the rows belong to")
    run.add_argument(
        "--map",
        action="append",
        metavar="FIELD=HEADER",
        help="Map a field to a column (repeatable; unmapped fields are suggested)"
    )
    run.add_argument("--commit", action="store_true", help="Write records (default: dry run)")
    run.add_argument("--skip-merges", action="store_true", help="Do not commit rows matching existing donors")
    run.add_argument("--database-url", help="Override DATABASE_URL")
    run.add_argument("--reports-dir", help="Directory for the JSON report")
    run.add_argument("--result-csv", help="Also write the per-row result CSV here")
    run.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI application.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.log_level or args.log_format:
        configure_logging(args.log_level, args.log_format)

    try:
        return args.func(args)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except ValueError as e:
        logger.error("Invalid arguments", error=str(e), error_type=type(e).__name__)
        return 1
    except Exception as e:
        logger.error(
            "Import failed with unexpected error",
            error=str(e),
            error_type=type(e).__name__
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
