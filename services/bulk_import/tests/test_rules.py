"""Tests for domain rules and value parsing."""

from datetime import date
from decimal import Decimal

import pytest

from services.bulk_import.models import DonorInput, DonorRef, UnknownDomainError
from services.bulk_import.rules import (
    DonationRules,
    DonorRules,
    PledgeRules,
    YahrzeitRules,
    derive_donor_name,
    get_rules,
    parse_amount,
    parse_choice,
    parse_date,
    PAYMENT_METHODS,
    PLEDGE_FREQUENCIES,
)
from services.core.helpers.phone import DefaultPhoneAdapter


class TestParseAmount:
    """Tests for amount parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1000", Decimal("1000")),
            ("1,000", Decimal("1000")),
            ("1,234.50", Decimal("1234.50")),
            ("₪ 250", Decimal("250")),
            ("$18", Decimal("18")),
            (" 36 ", Decimal("36")),
            ("-5", Decimal("-5")),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", None, "1.2.3", "NaN", "Infinity"])
    def test_invalid(self, raw):
        assert parse_amount(raw) is None


class TestParseDate:
    """Tests for ISO date parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2024-09-30", date(2024, 9, 30)),
            ("2024-09-30 00:00:00", date(2024, 9, 30)),
            ("2024-09-30T10:15:00", date(2024, 9, 30)),
            (" 2025-01-01 ", date(2025, 1, 1)),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_date(raw) == expected

    @pytest.mark.parametrize("raw", ["not-a-date", "30/09/2024", "2024-13-01", "", None])
    def test_invalid(self, raw):
        assert parse_date(raw) is None


class TestParseChoice:
    """Tests for enumeration matching."""

    @pytest.mark.parametrize(
        "raw,choices,expected",
        [
            ("Monthly", PLEDGE_FREQUENCIES, "monthly"),
            ("one time", PLEDGE_FREQUENCIES, "one-time"),
            ("ONE-TIME", PLEDGE_FREQUENCIES, "one-time"),
            ("credit card", PAYMENT_METHODS, "CreditCard"),
            ("zelle", PAYMENT_METHODS, "Zelle"),
            ("weekly", PLEDGE_FREQUENCIES, None),
            ("", PAYMENT_METHODS, None),
        ],
    )
    def test_match(self, raw, choices, expected):
        assert parse_choice(raw, choices) == expected


class TestDeriveDonorName:
    """Tests for donor name derivation."""

    def test_display_name_wins(self):
        assert derive_donor_name("Dana", "Levi", "The Levi Family") == "The Levi Family"

    def test_first_and_last(self):
        assert derive_donor_name("Dana", "Levi", None) == "Dana Levi"

    def test_first_only(self):
        assert derive_donor_name("Dana", None, None) == "Dana"

    def test_nothing(self):
        assert derive_donor_name(None, None, None) is None


class TestGetRules:
    """Tests for the rules registry."""

    @pytest.mark.parametrize(
        "domain,rules_type",
        [
            ("donor", DonorRules),
            ("pledge", PledgeRules),
            ("yahrzeit", YahrzeitRules),
            ("donation", DonationRules),
            (" Pledge ", PledgeRules),
        ],
    )
    def test_known(self, domain, rules_type, config):
        assert isinstance(get_rules(domain, config), rules_type)

    def test_unknown(self, config):
        with pytest.raises(UnknownDomainError):
            get_rules("campaign", config)

    def test_required_fields(self, config):
        assert get_rules("donor", config).required_fields == ("phone",)
        assert get_rules("pledge", config).required_fields == ("phone", "totalAmount")
        assert get_rules("yahrzeit", config).required_fields == (
            "phone", "deceasedName", "hebrewDate", "secularDate",
        )
        assert get_rules("donation", config).required_fields == ("phone", "amount")


class TestDonorRules:
    """Tests for donor classification and merge review."""

    def test_new_donor_without_name_is_unknown(self, config):
        rules = DonorRules(config)
        errors, values = rules.classify(DonorInput(phone="0501234567"), "0501234567", None, DefaultPhoneAdapter())

        assert errors == []
        assert values["name"] == "Unknown"

    def test_matched_donor_without_name_keeps_existing(self, config):
        rules = DonorRules(config)
        existing = DonorRef(id="d1", phone="0501234567", name="Dana Levi")

        _, values = rules.classify(DonorInput(phone="0501234567"), "0501234567", existing, DefaultPhoneAdapter())

        assert values["name"] is None

    def test_invalid_email(self, config):
        rules = DonorRules(config)
        candidate = DonorInput(phone="0501234567", email="not-an-email")

        errors, _ = rules.classify(candidate, "0501234567", None, DefaultPhoneAdapter())

        assert [e.field for e in errors] == ["email"]

    def test_email_normalized(self, config):
        rules = DonorRules(config)
        candidate = DonorInput(phone="0501234567", email=" Dana@Example.COM ")

        _, values = rules.classify(candidate, "0501234567", None, DefaultPhoneAdapter())

        assert values["email"] == "dana@example.com"

    def test_conflicts_only_for_differing_non_empty_values(self, config):
        rules = DonorRules(config)
        existing = DonorRef(
            id="d1",
            fields={"name": "Dana Levi", "email": "dana@example.com", "address_city": "", "notes": "VIP"},
        )
        values = {"name": "Dana Cohen", "email": "dana@example.com", "address_city": "Haifa", "notes": None}

        conflicts = rules.conflicts(existing, values)

        assert [(c.field, c.existing, c.incoming) for c in conflicts] == [("name", "Dana Levi", "Dana Cohen")]
