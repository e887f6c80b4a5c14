"""
Donor bulk import and reconciliation engine.

Pipeline stages, each usable on its own:

    parse -> map_rows -> validate -> simulate -> commit -> to_csv

See ``orchestrator.run_import`` for the chained, non-interactive form.
"""

from .committer import commit
from .mapping import map_rows, suggest_mapping
from .parser import ParseError, parse
from .report import to_csv
from .simulator import simulate
from .validator import validate

__version__ = "0.1.0"

__all__ = [
    "ParseError",
    "commit",
    "map_rows",
    "parse",
    "simulate",
    "suggest_mapping",
    "to_csv",
    "validate",
]
