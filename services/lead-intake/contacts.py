"""Contact construction, review routing and storage.

A contact's needs_review flag is always derived from its field values and
field_confidence_scores (keyed by camelCase attribute name).
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from uuid import UUID, uuid4

from psycopg.types.json import Jsonb
from pydantic.alias_generators import to_camel

from confidence import (
    CONFIDENCE_THRESHOLD,
    confidence_level,
    contact_needs_review,
    scores_need_review,
)
from db import DatabaseManager
from models import (
    FIELD_NAMES,
    AIParsingResponse,
    Contact,
    ContactUpdate,
    ManualContactRequest,
    ReviewField,
    ReviewForm,
)

logger = logging.getLogger(__name__)

VERIFIED_CONFIDENCE = 1.0


class ContactNotFound(Exception):
    """No contact with the given id."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def score_key(field_name: str) -> str:
    return to_camel(field_name)


def contact_from_parsing(
    event_id: UUID,
    response: AIParsingResponse,
    image_url: str | None = None,
) -> Contact:
    """Build a new contact row from an extraction result."""
    parsed = response.parsed_data
    now = _now()
    return Contact(
        id=uuid4(),
        event_id=event_id,
        **{name: field.value for name, field in parsed.items()},
        image_url=image_url,
        ocr_confidence=round(response.overall_confidence, 2),
        needs_review=contact_needs_review(parsed),
        raw_ocr_data=response.raw_text,
        field_confidence_scores={score_key(name): field.confidence for name, field in parsed.items()},
        created_at=now,
        updated_at=now,
    )


def manual_contact(request: ManualContactRequest) -> Contact:
    """Contact typed in by hand. Every provided field counts as verified."""
    values = request.model_dump(exclude={"event_id"})
    now = _now()
    contact = Contact(
        id=uuid4(),
        event_id=request.event_id,
        **values,
        field_confidence_scores={
            score_key(name): VERIFIED_CONFIDENCE
            for name in FIELD_NAMES
            if values.get(name) is not None
        },
        created_at=now,
        updated_at=now,
    )
    return contact.model_copy(update={"needs_review": recompute_needs_review(contact)})


def recompute_needs_review(contact: Contact) -> bool:
    values = {score_key(name): getattr(contact, name) for name in FIELD_NAMES}
    return scores_need_review(values, contact.field_confidence_scores)


def has_required_fields(contact: Contact) -> bool:
    """First and last name, or an email."""
    return bool(contact.first_name and contact.last_name) or bool(contact.email)


def apply_review(contact: Contact, updates: ContactUpdate) -> Contact:
    """Apply manual corrections and re-derive needs_review.

    Touched fields become verified. Once the required fields are present the
    whole record is verified, which clears needs_review.
    """
    changes = updates.model_dump(exclude_unset=True)
    reviewed = contact.model_copy(update=changes)

    scores = dict(contact.field_confidence_scores)
    verified = FIELD_NAMES if has_required_fields(reviewed) else [n for n in changes if n in FIELD_NAMES]
    for name in verified:
        scores[score_key(name)] = VERIFIED_CONFIDENCE

    reviewed = reviewed.model_copy(update={"field_confidence_scores": scores, "updated_at": _now()})
    return reviewed.model_copy(update={"needs_review": recompute_needs_review(reviewed)})


def review_form(contact: Contact) -> ReviewForm:
    """Per-field flags use the same rule as flag_low_confidence, so unset fields are flagged."""
    fields = []
    for name in FIELD_NAMES:
        key = score_key(name)
        value = getattr(contact, name)
        confidence = contact.field_confidence_scores.get(key, 0.0)
        fields.append(ReviewField(
            name=key,
            value=value,
            confidence=confidence,
            level=confidence_level(confidence),
            needs_review=confidence < CONFIDENCE_THRESHOLD,
        ))
    return ReviewForm(
        contact_id=contact.id,
        event_id=contact.event_id,
        needs_review=contact.needs_review,
        fields=fields,
    )


class ContactRepository(ABC):
    @abstractmethod
    async def add(self, contact: Contact) -> Contact: ...

    @abstractmethod
    async def get(self, contact_id: UUID) -> Contact | None: ...

    @abstractmethod
    async def update(self, contact: Contact) -> Contact:
        """Persist every column of an existing contact. Raises ContactNotFound."""

    @abstractmethod
    async def delete(self, contact_id: UUID) -> bool: ...

    @abstractmethod
    async def list_needing_review(self, event_id: UUID | None = None) -> list[Contact]:
        """Review queue, oldest first."""

    @abstractmethod
    async def list_by_event(self, event_id: UUID) -> list[Contact]: ...

    async def health_check(self) -> bool:
        return True


class InMemoryContactRepository(ContactRepository):
    """Process-local store for development and tests."""

    def __init__(self):
        self._contacts: dict[UUID, Contact] = {}

    async def add(self, contact: Contact) -> Contact:
        self._contacts[contact.id] = contact
        return contact

    async def get(self, contact_id: UUID) -> Contact | None:
        return self._contacts.get(contact_id)

    async def update(self, contact: Contact) -> Contact:
        if contact.id not in self._contacts:
            raise ContactNotFound(str(contact.id))
        self._contacts[contact.id] = contact
        return contact

    async def delete(self, contact_id: UUID) -> bool:
        return self._contacts.pop(contact_id, None) is not None

    async def list_needing_review(self, event_id: UUID | None = None) -> list[Contact]:
        return self._sorted(
            c for c in self._contacts.values()
            if c.needs_review and (event_id is None or c.event_id == event_id)
        )

    async def list_by_event(self, event_id: UUID) -> list[Contact]:
        return self._sorted(c for c in self._contacts.values() if c.event_id == event_id)

    @staticmethod
    def _sorted(contacts) -> list[Contact]:
        return sorted(contacts, key=lambda c: c.created_at)


_COLUMNS = (
    "id", "event_id", *FIELD_NAMES, "website", "notes", "image_url",
    "ocr_confidence", "needs_review", "raw_ocr_data", "field_confidence_scores",
    "created_at", "updated_at",
)
_INSERT_SQL = (
    f"INSERT INTO contacts ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join(f'%({c})s' for c in _COLUMNS)}) RETURNING *"
)
_UPDATE_SQL = (
    "UPDATE contacts SET "
    + ", ".join(f"{c} = %({c})s" for c in _COLUMNS if c not in ("id", "created_at"))
    + " WHERE id = %(id)s RETURNING *"
)


class PostgresContactRepository(ContactRepository):
    def __init__(self, db: DatabaseManager):
        self._db = db

    async def add(self, contact: Contact) -> Contact:
        rows = await self._db.fetch_all(_INSERT_SQL, _params(contact))
        logger.info("Inserted contact %s (needs_review=%s)", contact.id, contact.needs_review)
        return _from_row(rows[0])

    async def get(self, contact_id: UUID) -> Contact | None:
        rows = await self._db.fetch_all("SELECT * FROM contacts WHERE id = %(id)s", {"id": contact_id})
        return _from_row(rows[0]) if rows else None

    async def update(self, contact: Contact) -> Contact:
        rows = await self._db.fetch_all(_UPDATE_SQL, _params(contact))
        if not rows:
            raise ContactNotFound(str(contact.id))
        return _from_row(rows[0])

    async def delete(self, contact_id: UUID) -> bool:
        rows = await self._db.fetch_all(
            "DELETE FROM contacts WHERE id = %(id)s RETURNING id", {"id": contact_id}
        )
        return bool(rows)

    async def list_needing_review(self, event_id: UUID | None = None) -> list[Contact]:
        if event_id is None:
            rows = await self._db.fetch_all(
                "SELECT * FROM contacts WHERE needs_review ORDER BY created_at"
            )
        else:
            rows = await self._db.fetch_all(
                "SELECT * FROM contacts WHERE needs_review AND event_id = %(event_id)s "
                "ORDER BY created_at",
                {"event_id": event_id},
            )
        return [_from_row(r) for r in rows]

    async def list_by_event(self, event_id: UUID) -> list[Contact]:
        rows = await self._db.fetch_all(
            "SELECT * FROM contacts WHERE event_id = %(event_id)s ORDER BY created_at",
            {"event_id": event_id},
        )
        return [_from_row(r) for r in rows]

    async def health_check(self) -> bool:
        return await self._db.health_check()


def _params(contact: Contact) -> dict:
    params = contact.model_dump()
    params["field_confidence_scores"] = Jsonb(contact.field_confidence_scores)
    return params


def _from_row(row: dict) -> Contact:
    row = dict(row)
    if row.get("ocr_confidence") is not None:
        row["ocr_confidence"] = float(row["ocr_confidence"])
    row["field_confidence_scores"] = row.get("field_confidence_scores") or {}
    return Contact.model_validate(row)
