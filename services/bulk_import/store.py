"""
Storage collaborator for the import engine.

``ImportStore`` is the interface the validator (lookups) and committer
(writes) depend on. ``SqlImportStore`` implements it over the host
application's PostgreSQL tables (donors, pledges, yahrzeits, donations)
with SQLAlchemy Core.

Every statement is filtered by organization_id and runs inside a
transaction scoped to the tenant (see ``set_tenant``). Each write has its
own transaction, so one failed record never rolls back another.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from services.core.db.connector import set_tenant
from services.core.helpers.email import normalize_email
from services.core.helpers.phone import DefaultPhoneAdapter, PhoneAdapter
from services.core.log_config import get_logger

from .models import DonorRef, RecordRef
from .settings import get_settings

logger = get_logger(__name__)

DONOR_COLUMNS = ("phone", "name", "first_name", "last_name", "email", "address_city", "notes")
PLEDGE_COLUMNS = ("donor_id", "total_amount", "start_date", "frequency", "notes", "status")
YAHRZEIT_COLUMNS = (
    "donor_id", "deceased_name", "hebrew_date", "secular_date",
    "relationship", "notes", "contact_email", "contact_phone",
)
DONATION_COLUMNS = (
    "donor_id", "amount", "date", "type", "designation", "payment_method", "notes", "status",
)


class StoreError(Exception):
    """The store could not be queried or written."""
    pass


class ImportStore(Protocol):
    """Lookups and writes the engine needs, all scoped to one organization."""

    def find_donor_by_normalized_phone(self, organization_id: str, phone: str) -> Optional[DonorRef]:
        ...

    def find_donor_by_email(self, organization_id: str, email: str) -> Optional[DonorRef]:
        ...

    def insert_donor(self, organization_id: str, fields: Dict[str, Any]) -> DonorRef:
        ...

    def merge_donor(self, organization_id: str, existing: DonorRef, fields: Dict[str, Any]) -> DonorRef:
        ...

    def insert_pledge(self, organization_id: str, fields: Dict[str, Any]) -> RecordRef:
        ...

    def insert_yahrzeit(self, organization_id: str, fields: Dict[str, Any]) -> RecordRef:
        ...

    def insert_donation(self, organization_id: str, fields: Dict[str, Any]) -> RecordRef:
        ...


class _DonorIndex:
    """An organization's donors keyed by normalized phone and email."""

    def __init__(self):
        self.by_phone: Dict[str, DonorRef] = {}
        self.by_email: Dict[str, DonorRef] = {}

    def add(self, donor: DonorRef) -> None:
        if donor.phone:
            self.by_phone.setdefault(donor.phone, donor)
        if donor.email:
            self.by_email.setdefault(donor.email, donor)

    def remove(self, donor: DonorRef) -> None:
        for key, entries in ((donor.phone, self.by_phone), (donor.email, self.by_email)):
            if key and key in entries and entries[key].id == donor.id:
                del entries[key]


class SqlImportStore:
    """
    ImportStore backed by PostgreSQL.

    Donor lookups load the organization's donors once and answer from
    memory; writes keep that index current.

    Example:
        >>> store = SqlImportStore(get_engine(dsn))
        >>> store.find_donor_by_normalized_phone("org-1", "0501234567")
    """

    def __init__(self, engine: Engine, phone_adapter: Optional[PhoneAdapter] = None):
        config = get_settings()
        self.engine = engine
        self.phone_adapter = phone_adapter or DefaultPhoneAdapter(
            config.default_country_code, config.trunk_prefix
        )
        self._indexes: Dict[str, _DonorIndex] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _donor_from_row(self, row) -> DonorRef:
        fields = {name: getattr(row, name) for name in DONOR_COLUMNS}
        return DonorRef(
            id=str(row.id),
            phone=self.phone_adapter.normalize(row.phone) if row.phone else None,
            email=normalize_email(row.email),
            name=row.name,
            fields=fields,
        )

    def _load_index(self, organization_id: str) -> _DonorIndex:
        index = self._indexes.get(organization_id)
        if index is not None:
            return index

        query = text(f"""
            SELECT id, {", ".join(DONOR_COLUMNS)}
            FROM donors
            WHERE organization_id = :organization_id
            ORDER BY created_at, id
        """)

        try:
            with self.engine.begin() as conn:
                set_tenant(conn, organization_id)
                rows = conn.execute(query, {"organization_id": organization_id}).fetchall()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not load donors: {e}") from e

        index = _DonorIndex()
        for row in rows:
            index.add(self._donor_from_row(row))

        self._indexes[organization_id] = index
        logger.debug("Loaded donor index", organization_id=organization_id, donors=len(rows))
        return index

    def find_donor_by_normalized_phone(self, organization_id: str, phone: str) -> Optional[DonorRef]:
        return self._load_index(organization_id).by_phone.get(phone)

    def find_donor_by_email(self, organization_id: str, email: str) -> Optional[DonorRef]:
        return self._load_index(organization_id).by_email.get(normalize_email(email))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self, table: str, columns, organization_id: str, fields: Dict[str, Any]) -> str:
        record_id = str(uuid.uuid4())
        params = {name: fields.get(name) for name in columns}
        params.update(
            id=record_id,
            organization_id=organization_id,
            created_at=datetime.now(timezone.utc),
        )

        names = ["id", "organization_id", *columns, "created_at"]
        query = text(
            f"INSERT INTO {table} ({', '.join(names)}) "
            f"VALUES ({', '.join(':' + n for n in names)})"
        )

        try:
            with self.engine.begin() as conn:
                set_tenant(conn, organization_id)
                conn.execute(query, params)
        except SQLAlchemyError as e:
            raise StoreError(f"Insert into {table} failed: {e}") from e

        return record_id

    def insert_donor(self, organization_id: str, fields: Dict[str, Any]) -> DonorRef:
        record_id = self._insert("donors", DONOR_COLUMNS, organization_id, fields)
        donor = DonorRef(
            id=record_id,
            phone=fields.get("phone"),
            email=normalize_email(fields.get("email")),
            name=fields.get("name"),
            fields={name: fields.get(name) for name in DONOR_COLUMNS},
        )
        if organization_id in self._indexes:
            self._indexes[organization_id].add(donor)
        return donor

    def merge_donor(self, organization_id: str, existing: DonorRef, fields: Dict[str, Any]) -> DonorRef:
        updates = {name: fields[name] for name in DONOR_COLUMNS if name in fields}
        if not updates:
            return existing

        assignments = ", ".join(f"{name} = :{name}" for name in updates)
        query = text(f"""
            UPDATE donors
            SET {assignments}, updated_at = :updated_at
            WHERE id = :id AND organization_id = :organization_id
        """)
        params = {
            **updates,
            "updated_at": datetime.now(timezone.utc),
            "id": existing.id,
            "organization_id": organization_id,
        }

        try:
            with self.engine.begin() as conn:
                set_tenant(conn, organization_id)
                result = conn.execute(query, params)
        except SQLAlchemyError as e:
            raise StoreError(f"Update of donor {existing.id} failed: {e}") from e

        if result.rowcount == 0:
            raise StoreError(f"Donor {existing.id} no longer exists")

        index = self._indexes.get(organization_id)
        if index is not None:
            index.remove(existing)

        existing.fields.update(updates)
        existing.name = existing.fields.get("name")
        existing.email = normalize_email(existing.fields.get("email"))
        if existing.fields.get("phone"):
            existing.phone = self.phone_adapter.normalize(existing.fields["phone"])

        if index is not None:
            index.add(existing)
        return existing

    def insert_pledge(self, organization_id: str, fields: Dict[str, Any]) -> RecordRef:
        return RecordRef(self._insert("pledges", PLEDGE_COLUMNS, organization_id, fields), "pledge")

    def insert_yahrzeit(self, organization_id: str, fields: Dict[str, Any]) -> RecordRef:
        return RecordRef(self._insert("yahrzeits", YAHRZEIT_COLUMNS, organization_id, fields), "yahrzeit")

    def insert_donation(self, organization_id: str, fields: Dict[str, Any]) -> RecordRef:
        return RecordRef(self._insert("donations", DONATION_COLUMNS, organization_id, fields), "donation")
