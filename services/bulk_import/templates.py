"""
Downloadable import templates.

One sample row per domain, with headers that ``suggest_mapping`` maps
automatically, so an operator filling in a template never has to map
columns by hand.
"""

import io
from typing import Dict, List

import pandas as pd

from .models import candidate_type

TEMPLATE_ROWS: Dict[str, Dict[str, str]] = {
    "donor": {
        "Phone": "0501234567",
        "First Name": "John",
        "Last Name": "Doe",
        "Display Name": "John Doe",
        "Email": "john@example.com",
        "City": "Tel Aviv",
        "Notes": "",
    },
    "pledge": {
        "Phone": "0501234567",
        "Total Amount": "1000",
        "Start Date": "2025-01-01",
        "Frequency": "monthly",
        "Notes": "",
    },
    "yahrzeit": {
        "Phone": "0501234567",
        "Deceased Name": "Sarah Doe",
        "Hebrew Date": "15 Tishrei 5784",
        "Secular Date": "2024-09-30",
        "Relationship": "Mother",
        "Notes": "",
        "Contact Email": "",
        "Contact Phone": "",
    },
    "donation": {
        "Phone": "0501234567",
        "Amount": "180",
        "Date": "2025-01-01",
        "Type": "Regular",
        "Designation": "General",
        "Payment Method": "Cash",
        "Notes": "",
    },
}

TEMPLATE_FORMATS = ("xlsx", "csv")


def template_headers(domain: str) -> List[str]:
    """Header row of a domain's template."""
    candidate_type(domain)
    return list(TEMPLATE_ROWS[domain.strip().lower()])


def build_template(domain: str, file_format: str = "xlsx") -> bytes:
    """
    Build a one-row sample file for a domain.

    Args:
        domain: "donor", "pledge", "yahrzeit" or "donation"
        file_format: "xlsx" (default) or "csv"

    Returns:
        File content as bytes

    Raises:
        UnknownDomainError: If domain is not supported
        ValueError: If file_format is not xlsx/csv
    """
    headers = template_headers(domain)
    sample = TEMPLATE_ROWS[domain.strip().lower()]
    df = pd.DataFrame([sample], columns=headers)

    fmt = (file_format or "").lower().lstrip(".")
    if fmt == "csv":
        return df.to_csv(index=False).encode("utf-8-sig")
    if fmt == "xlsx":
        buffer = io.BytesIO()
        df.to_excel(buffer, index=False, sheet_name=domain.strip().lower(), engine="openpyxl")
        return buffer.getvalue()

    raise ValueError(f"Unsupported template format: {file_format!r}. Expected one of {TEMPLATE_FORMATS}")
