"""
Entry point for running the import engine as a module.

Usage:
    python -m services.bulk_import template donor
    python -m services.bulk_import run donors.csv --domain donor --org ORG_ID
"""

from .main import main

if __name__ == "__main__":
    exit(main())
