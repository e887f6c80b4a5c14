"""
Pytest fixtures for bulk_import tests.

``FakeStore`` is an in-memory ImportStore recording every write, so the
pipeline can be exercised without PostgreSQL.
"""

import pytest

from services.bulk_import.models import DonorRef, RecordRef
from services.bulk_import.settings import BulkImportSettings

ORG_ID = "org-1"
OTHER_ORG_ID = "org-2"


class FakeStore:
    """In-memory ImportStore keyed by organization."""

    def __init__(self):
        self.donors = {}
        self.writes = []
        self.lookups = 0
        self.fail_on = set()
        self._next_id = 0

    def _new_id(self, prefix):
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def _check_failure(self, kind, fields):
        if (kind, fields.get("phone")) in self.fail_on or kind in self.fail_on:
            raise RuntimeError(f"{kind} write rejected")

    def add_donor(self, organization_id, phone, email=None, name="Existing Donor", **fields):
        donor = DonorRef(
            id=self._new_id("donor"),
            phone=phone,
            email=email,
            name=name,
            fields={"phone": phone, "email": email, "name": name, **fields},
        )
        self.donors.setdefault(organization_id, []).append(donor)
        return donor

    def find_donor_by_normalized_phone(self, organization_id, phone):
        self.lookups += 1
        for donor in self.donors.get(organization_id, []):
            if donor.phone == phone:
                return donor
        return None

    def find_donor_by_email(self, organization_id, email):
        self.lookups += 1
        for donor in self.donors.get(organization_id, []):
            if donor.email and donor.email == email:
                return donor
        return None

    def insert_donor(self, organization_id, fields):
        self._check_failure("donor", fields)
        donor = self.add_donor(
            organization_id, fields.get("phone"), fields.get("email"), fields.get("name"),
        )
        donor.fields.update(fields)
        self.writes.append(("insert_donor", organization_id, dict(fields)))
        return donor

    def merge_donor(self, organization_id, existing, fields):
        self._check_failure("merge", fields)
        existing.fields.update(fields)
        existing.phone = fields.get("phone") or existing.phone
        existing.email = fields.get("email") or existing.email
        existing.name = fields.get("name") or existing.name
        self.writes.append(("merge_donor", organization_id, dict(fields)))
        return existing

    def _insert(self, kind, organization_id, fields):
        self._check_failure(kind, fields)
        self.writes.append((f"insert_{kind}", organization_id, dict(fields)))
        return RecordRef(self._new_id(kind), kind)

    def insert_pledge(self, organization_id, fields):
        return self._insert("pledge", organization_id, fields)

    def insert_yahrzeit(self, organization_id, fields):
        return self._insert("yahrzeit", organization_id, fields)

    def insert_donation(self, organization_id, fields):
        return self._insert("donation", organization_id, fields)


class UnreachableStore(FakeStore):
    """Store whose lookups fail as if the database were down."""

    def find_donor_by_normalized_phone(self, organization_id, phone):
        raise ConnectionError("database unreachable")


@pytest.fixture
def store():
    """Empty in-memory store."""
    return FakeStore()


@pytest.fixture
def store_with_donor(store):
    """Store holding one donor (0501234567 / dana@example.com) in ORG_ID."""
    store.add_donor(
        ORG_ID, "0501234567", email="dana@example.com", name="Dana Levi",
        first_name="Dana", last_name="Levi", address_city="Haifa",
    )
    return store


@pytest.fixture
def config():
    """Settings isolated from the environment."""
    return BulkImportSettings(_env_file=None)
