"""Tests for downloadable import templates."""

import pytest

from services.bulk_import.mapping import suggest_mapping
from services.bulk_import.models import UNMAPPED, UnknownDomainError
from services.bulk_import.parser import parse
from services.bulk_import.templates import build_template, template_headers

DOMAINS = ["donor", "pledge", "yahrzeit", "donation"]


class TestBuildTemplate:
    """Templates parse back and map automatically."""

    @pytest.mark.parametrize("domain", DOMAINS)
    @pytest.mark.parametrize("file_format", ["xlsx", "csv"])
    def test_parses_with_one_sample_row(self, domain, file_format):
        parsed = parse(build_template(domain, file_format), file_format)

        assert list(parsed.headers) == template_headers(domain)
        assert len(parsed.rows) == 1
        assert parsed.rows[0]["Phone"] == "0501234567"

    @pytest.mark.parametrize("domain", DOMAINS)
    def test_headers_map_to_every_field(self, domain):
        mapping = suggest_mapping(template_headers(domain), domain)

        assert UNMAPPED not in mapping.values()

    def test_pledge_sample(self):
        row = parse(build_template("pledge", "csv"), "csv").rows[0]

        assert row["Total Amount"] == "1000"
        assert row["Start Date"] == "2025-01-01"
        assert row["Frequency"] == "monthly"

    def test_unknown_domain(self):
        with pytest.raises(UnknownDomainError):
            build_template("campaign")

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unsupported template format"):
            build_template("donor", "pdf")
