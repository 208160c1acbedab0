"""Business-card field extraction: prompt the LLM, validate JSON, score.

Each attempt is one chat completion. Transport failures and malformed model
output are both retried under the RetryPolicy; after the last attempt the
caller gets ExtractionFailed.
"""

import json
import logging

from pydantic import ValidationError

from confidence import flag_low_confidence, overall_confidence
from llm_client import LLMClient, LLMServiceError, LLMServiceUnavailable
from models import AIParsingResponse, LLMParsingPayload, ParsedContactData
from prompts import BUSINESS_CARD_PROMPT, user_message
from retry import RetryError, RetryPolicy

logger = logging.getLogger(__name__)


class MalformedResponseError(Exception):
    """Model output was empty, not JSON, or did not match the field shape."""


class ExtractionFailed(Exception):
    """Every extraction attempt failed."""

    def __init__(self, attempts: int, last_error: BaseException | None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to parse business card after {attempts} attempts: {last_error}"
        )


RETRYABLE_ERRORS = (LLMServiceUnavailable, LLMServiceError, MalformedResponseError)


def validate_payload(content: str) -> LLMParsingPayload:
    """Parse and validate raw model output.

    Raises MalformedResponseError on empty content, invalid JSON, or a
    missing/ill-typed field.
    """
    if not content or not content.strip():
        raise MalformedResponseError("No response from model")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Model response is not a JSON object")

    try:
        return LLMParsingPayload.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Invalid response format from model ({e.error_count()} errors)"
        ) from e


def build_response(
    parsed: ParsedContactData,
    raw_text: str,
    notes: str | None = None,
) -> AIParsingResponse:
    """Apply thresholding and compute overall confidence locally."""
    flagged = flag_low_confidence(parsed)
    return AIParsingResponse(
        parsed_data=flagged,
        raw_text=raw_text,
        overall_confidence=overall_confidence(flagged),
        processing_notes=notes,
    )


def fallback_response(raw_text: str, error: BaseException | str) -> AIParsingResponse:
    """All-null, zero-confidence, fully flagged record for a failed item."""
    return AIParsingResponse(
        parsed_data=ParsedContactData.empty(),
        raw_text=raw_text,
        overall_confidence=0.0,
        processing_notes=f"Failed to parse: {error or 'Unknown error'}",
    )


class FieldExtractor:
    def __init__(self, llm_client: LLMClient, retry_policy: RetryPolicy | None = None):
        self._llm = llm_client
        self._retry = retry_policy or RetryPolicy.from_settings()

    async def parse(self, ocr_text: str) -> AIParsingResponse:
        """Extract contact fields from OCR text.

        Raises ValueError on blank input and ExtractionFailed once the retry
        policy is exhausted.
        """
        if not ocr_text or not ocr_text.strip():
            raise ValueError("ocr_text must be a non-empty string")

        logger.info("Parsing OCR text: %d chars", len(ocr_text))

        try:
            payload = await self._retry.call(
                self._attempt, ocr_text, retry_on=RETRYABLE_ERRORS
            )
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            last_error = e.last_attempt.exception()
            logger.error("Extraction failed after %d attempts: %s", attempts, last_error)
            raise ExtractionFailed(attempts, last_error) from last_error

        response = build_response(payload.parsed_data, ocr_text, payload.processing_notes)
        logger.info("Extraction completed: overall confidence %.2f", response.overall_confidence)
        return response

    async def _attempt(self, ocr_text: str) -> LLMParsingPayload:
        content = await self._llm.complete_json(BUSINESS_CARD_PROMPT, user_message(ocr_text))
        return validate_payload(content)
