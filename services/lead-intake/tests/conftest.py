"""Shared test fixtures for lead intake tests."""

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from retry import RetryPolicy  # noqa: E402


def field(value, confidence, needs_review=False) -> dict:
    return {"value": value, "confidence": confidence, "needsReview": needs_review}


def card_payload(**overrides) -> dict:
    """LLM payload for a clean standard card; overrides replace whole fields."""
    parsed = {
        "firstName": field("John", 0.95),
        "lastName": field("Smith", 0.95),
        "email": field("john.smith@acme.com", 0.98),
        "phone": field("+1 (555) 123-4567", 0.92),
        "company": field("Acme Corporation", 0.93),
        "title": field("Senior Software Engineer", 0.91),
        "industry": field("Technology", 0.8),
        "address": field(None, 0.0),
    }
    parsed.update(overrides)
    return {"parsedData": parsed, "processingNotes": "Standard layout"}


@pytest.fixture
def standard_card_text() -> str:
    return (
        "John Smith\nSenior Software Engineer\nAcme Corporation\n"
        "john.smith@acme.com\n+1 (555) 123-4567"
    )


@pytest.fixture
def standard_card_content() -> str:
    """Mock LLM message content for a clean business card."""
    return json.dumps(card_payload())


@pytest.fixture
def name_and_email_content() -> str:
    """Only a name and email were readable."""
    return json.dumps({
        "parsedData": {
            "firstName": field("Sarah", 0.95),
            "lastName": field("Chen", 0.93),
            "email": field("sarah@example.com", 0.98),
            "phone": field(None, 0.0),
            "company": field(None, 0.0),
            "title": field(None, 0.0),
            "industry": field(None, 0.0),
            "address": field(None, 0.0),
        },
    })


@pytest.fixture
def low_phone_content() -> str:
    """Name and email clear, phone smudged."""
    return json.dumps({
        "parsedData": {
            "firstName": field("Sarah", 0.95),
            "lastName": field("Chen", 0.93),
            "email": field("sarah@example.com", 0.98),
            "phone": field("555-98?6", 0.45),
            "company": field(None, 0.0),
            "title": field(None, 0.0),
        },
    })


@pytest.fixture
def sleep_log() -> list[float]:
    return []


@pytest.fixture
def fast_retry(sleep_log: list[float]) -> RetryPolicy:
    """Production backoff schedule, but sleeps are recorded instead of awaited."""

    async def record_sleep(seconds: float) -> None:
        sleep_log.append(seconds)

    return RetryPolicy(max_attempts=3, initial_delay=1.0, backoff=2.0, sleep=record_sleep)


@pytest.fixture
def mock_llm() -> AsyncMock:
    mock = AsyncMock()
    mock.model = "test-model"
    return mock
