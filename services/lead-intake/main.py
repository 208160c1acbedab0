"""FastAPI lead intake service: business-card parsing and contact review.

OCR text arrives from the client; the LLM splits it into scored contact
fields; low-confidence contacts land in the review queue.
Privacy: OCR text and contact values are never logged, only sizes and ids.
"""

import logging
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from batch import BatchProcessor, summarize
from confidence import CONFIDENCE_THRESHOLD, HIGH_CONFIDENCE
from config import settings
from contacts import (
    ContactNotFound,
    ContactRepository,
    InMemoryContactRepository,
    PostgresContactRepository,
    apply_review,
    contact_from_parsing,
    manual_contact,
    review_form,
)
from db import DatabaseManager
from extraction import ExtractionFailed, FieldExtractor
from llm_client import LLMClient
from models import (
    BatchParseRequest,
    ContactFromOCRRequest,
    ContactUpdate,
    ManualContactRequest,
    ParsedContactData,
    ParseRequest,
)
from prompts import SAMPLE_CARD_TEXT
from retry import RetryPolicy

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

LLM_UNAVAILABLE = "AI parsing is not available - OPENAI_API_KEY not configured"
MANUAL_ENTRY_MESSAGE = (
    "We could not read this business card automatically. "
    "Please enter the contact details manually."
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the LLM client and contact store once and hang them on app.state."""
    llm_client: LLMClient | None = None
    db: DatabaseManager | None = None

    app.state.extractor = None
    app.state.batch = None

    if not settings.OPENAI_API_KEY:
        logger.info("LLM not configured (OPENAI_API_KEY is empty) - AI parsing disabled")
    else:
        llm_client = LLMClient()
        extractor = FieldExtractor(llm_client, RetryPolicy.from_settings())
        app.state.extractor = extractor
        app.state.batch = BatchProcessor(extractor)
        logger.info("AI parsing enabled (model=%s)", llm_client.model)

        # Startup probe (log only)
        health = await llm_client.health()
        if health.get("status") == "reachable":
            logger.info("LLM API reachable: %s", health)
        else:
            logger.warning("LLM API not reachable at startup: %s", health)

    if settings.DATABASE_URL:
        db = DatabaseManager()
        await db.connect()
        await db.ensure_schema()
        app.state.repository = PostgresContactRepository(db)
    else:
        logger.info("DATABASE_URL is empty - using in-memory contact store")
        app.state.repository = InMemoryContactRepository()

    yield

    if llm_client is not None:
        await llm_client.close()
    if db is not None:
        await db.disconnect()


app = FastAPI(title="Lead Intake", version="1.0.0", lifespan=lifespan)


def get_extractor(request: Request) -> FieldExtractor | None:
    return getattr(request.app.state, "extractor", None)


def get_batch_processor(request: Request) -> BatchProcessor | None:
    return getattr(request.app.state, "batch", None)


def get_repository(request: Request) -> ContactRepository:
    return request.app.state.repository


def _error(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    content = {"error": error}
    if message is not None:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)


# --- OCR parsing ---


@app.post("/api/ocr/parse")
async def parse_ocr_text(
    body: ParseRequest,
    extractor: FieldExtractor | None = Depends(get_extractor),
):
    """Parse one OCR text into scored contact fields."""
    if not body.ocr_text or not body.ocr_text.strip():
        return _error(400, "Invalid request: ocrText is required and must be a string")
    if extractor is None:
        return _error(503, LLM_UNAVAILABLE)

    try:
        result = await extractor.parse(body.ocr_text)
    except ExtractionFailed as e:
        return _error(502, "Failed to parse business card text", str(e))

    return {"success": True, "data": result}


@app.post("/api/ocr/parse-batch")
async def parse_ocr_batch(
    body: BatchParseRequest,
    batch: BatchProcessor | None = Depends(get_batch_processor),
):
    """Parse many OCR texts; failed items come back as zero-confidence records."""
    if not body.ocr_texts:
        return _error(400, "Invalid request: ocrTexts must be a non-empty array")
    if len(body.ocr_texts) > settings.MAX_BATCH_ITEMS:
        return _error(400, f"Batch size too large. Maximum {settings.MAX_BATCH_ITEMS} items per batch")
    if batch is None:
        return _error(503, LLM_UNAVAILABLE)

    logger.info("Batch parse: %d items", len(body.ocr_texts))
    results = await batch.parse_all(body.ocr_texts)
    return {"success": True, "data": results, "summary": summarize(results)}


@app.post("/api/ocr/test")
async def parse_sample_card(extractor: FieldExtractor | None = Depends(get_extractor)):
    """Parse a built-in sample card to check the LLM round trip."""
    if extractor is None:
        return _error(503, LLM_UNAVAILABLE)

    try:
        result = await extractor.parse(SAMPLE_CARD_TEXT)
    except ExtractionFailed as e:
        return _error(502, "OCR test failed", str(e))

    return {"success": True, "testInput": SAMPLE_CARD_TEXT, "result": result}


@app.get("/api/ocr/settings")
async def ocr_settings():
    """Thresholds clients use for confidence badges and batch sizing."""
    return {
        "confidenceThreshold": CONFIDENCE_THRESHOLD,
        "highConfidence": HIGH_CONFIDENCE,
        "batchSize": settings.BATCH_SIZE,
        "maxBatchItems": settings.MAX_BATCH_ITEMS,
    }


# --- Contacts and review queue ---


@app.post("/api/contacts/ocr")
async def create_contact_from_ocr(
    body: ContactFromOCRRequest,
    extractor: FieldExtractor | None = Depends(get_extractor),
    repository: ContactRepository = Depends(get_repository),
):
    """Parse OCR text and store the contact, or hand back an empty form."""
    if body.event_id is None or not body.ocr_text or not body.ocr_text.strip():
        return _error(400, "Missing required fields: eventId and ocrText")
    if extractor is None:
        return _error(503, LLM_UNAVAILABLE)

    try:
        result = await extractor.parse(body.ocr_text)
    except ExtractionFailed as e:
        logger.warning("Routing card for event %s to manual entry: %s", body.event_id, e)
        return {
            "lowConfidence": True,
            "parsedData": ParsedContactData.empty(),
            "overallConfidence": 0.0,
            "message": MANUAL_ENTRY_MESSAGE,
        }

    contact = await repository.add(contact_from_parsing(body.event_id, result, body.image_url))
    logger.info("Created contact %s from OCR (needs_review=%s)", contact.id, contact.needs_review)

    return {
        "success": True,
        "contact": contact,
        "parsedData": result.parsed_data,
        "overallConfidence": result.overall_confidence,
    }


@app.post("/api/contacts", status_code=201)
async def create_contact(
    body: ManualContactRequest,
    repository: ContactRepository = Depends(get_repository),
):
    """Store a contact entered by hand."""
    if body.event_id is None:
        return _error(400, "Missing required field: eventId")

    contact = await repository.add(manual_contact(body))
    logger.info("Created manual contact %s", contact.id)
    return contact


@app.get("/api/contacts/needs-review")
async def list_contacts_needing_review(
    event_id: UUID | None = Query(default=None, alias="eventId"),
    repository: ContactRepository = Depends(get_repository),
):
    contacts = await repository.list_needing_review(event_id)
    return {"success": True, "contacts": contacts, "count": len(contacts)}


@app.get("/api/contacts/event/{event_id}")
async def list_contacts_by_event(
    event_id: UUID,
    repository: ContactRepository = Depends(get_repository),
):
    contacts = await repository.list_by_event(event_id)
    return {
        "success": True,
        "contacts": contacts,
        "count": len(contacts),
        "needsReview": sum(1 for c in contacts if c.needs_review),
    }


@app.get("/api/contacts/{contact_id}")
async def get_contact(
    contact_id: UUID,
    repository: ContactRepository = Depends(get_repository),
):
    contact = await repository.get(contact_id)
    if contact is None:
        return _error(404, "Contact not found")
    return contact


@app.get("/api/contacts/{contact_id}/review-form")
async def get_review_form(
    contact_id: UUID,
    repository: ContactRepository = Depends(get_repository),
):
    """Extracted values with confidence badges for the correction form."""
    contact = await repository.get(contact_id)
    if contact is None:
        return _error(404, "Contact not found")
    return review_form(contact)


@app.patch("/api/contacts/{contact_id}")
async def update_contact_after_review(
    contact_id: UUID,
    body: ContactUpdate,
    repository: ContactRepository = Depends(get_repository),
):
    """Save manual corrections; needs_review is re-derived."""
    contact = await repository.get(contact_id)
    if contact is None:
        return _error(404, "Contact not found")

    try:
        updated = await repository.update(apply_review(contact, body))
    except ContactNotFound:
        return _error(404, "Contact not found")

    logger.info("Reviewed contact %s (needs_review=%s)", updated.id, updated.needs_review)
    return updated


@app.delete("/api/contacts/{contact_id}")
async def delete_contact(
    contact_id: UUID,
    repository: ContactRepository = Depends(get_repository),
):
    if not await repository.delete(contact_id):
        return _error(404, "Contact not found")
    return {"success": True, "message": "Contact deleted successfully"}


@app.get("/health")
async def health(
    extractor: FieldExtractor | None = Depends(get_extractor),
    repository: ContactRepository = Depends(get_repository),
):
    """Return service status, LLM availability and store health."""
    return {
        "status": "healthy",
        "llm_available": extractor is not None,
        "database": "postgres" if isinstance(repository, PostgresContactRepository) else "memory",
        "database_ok": await repository.health_check(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
