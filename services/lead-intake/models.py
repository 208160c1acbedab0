"""Pydantic models for parsed business cards, contacts and API payloads.

Attributes are snake_case; JSON on the wire is camelCase.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictStr
from pydantic.alias_generators import to_camel

FIELD_NAMES: tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "company",
    "title",
    "industry",
    "address",
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactField(CamelModel):
    """One extracted attribute. Types are not coerced: "0.9" is not a confidence."""

    model_config = ConfigDict(frozen=True)

    value: StrictStr | None
    confidence: StrictFloat = Field(ge=0.0, le=1.0)
    needs_review: StrictBool


def empty_field() -> ContactField:
    return ContactField(value=None, confidence=0.0, needs_review=True)


class ParsedContactData(CamelModel):
    """One ContactField per extractable attribute.

    The first six are required in model output; industry and address are
    optional and default to an empty field.
    """

    model_config = ConfigDict(frozen=True)

    first_name: ContactField
    last_name: ContactField
    email: ContactField
    phone: ContactField
    company: ContactField
    title: ContactField
    industry: ContactField = Field(default_factory=empty_field)
    address: ContactField = Field(default_factory=empty_field)

    def items(self) -> list[tuple[str, ContactField]]:
        return [(name, getattr(self, name)) for name in FIELD_NAMES]

    @classmethod
    def empty(cls) -> "ParsedContactData":
        return cls(**{name: empty_field() for name in FIELD_NAMES})


class LLMParsingPayload(CamelModel):
    """Shape the model is instructed to return. Extra keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    parsed_data: ParsedContactData
    processing_notes: str | None = None


class AIParsingResponse(CamelModel):
    parsed_data: ParsedContactData
    raw_text: str
    overall_confidence: float = Field(ge=0.0, le=1.0)
    processing_notes: str | None = None


class BatchSummary(CamelModel):
    total: int
    needs_review: int
    failed: int


# --- Request payloads ---


class ParseRequest(CamelModel):
    ocr_text: str | None = None


class BatchParseRequest(CamelModel):
    ocr_texts: list[str] | None = None


class ContactFromOCRRequest(CamelModel):
    event_id: UUID | None = None
    ocr_text: str | None = None
    image_url: str | None = None


class ContactValues(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    title: str | None = None
    industry: str | None = None
    address: str | None = None
    website: str | None = None
    notes: str | None = None
    image_url: str | None = None


class ManualContactRequest(ContactValues):
    event_id: UUID | None = None


class ContactUpdate(ContactValues):
    """Review corrections. Server-managed columns in the body are ignored."""

    model_config = ConfigDict(extra="ignore")


# --- Persisted entity ---


class Contact(CamelModel):
    id: UUID
    event_id: UUID
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    title: str | None = None
    industry: str | None = None
    address: str | None = None
    website: str | None = None
    notes: str | None = None
    image_url: str | None = None
    ocr_confidence: float | None = None
    needs_review: bool = False
    raw_ocr_data: str | None = None
    field_confidence_scores: dict[str, float] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


ConfidenceLevel = Literal["high", "medium", "low"]


class ReviewField(CamelModel):
    name: str
    value: str | None
    confidence: float
    level: ConfidenceLevel
    needs_review: bool


class ReviewForm(CamelModel):
    """Pre-filled manual correction form for one contact."""

    contact_id: UUID
    event_id: UUID
    needs_review: bool
    fields: list[ReviewField]
