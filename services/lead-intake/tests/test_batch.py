"""Tests for rate-limited batch extraction."""

import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from batch import BatchProcessor, summarize
from conftest import card_payload, field
from extraction import ExtractionFailed, FieldExtractor, build_response, validate_payload


class StubExtractor:
    """Returns a parsed card named after the input; fails for chosen inputs."""

    def __init__(self, failing: set[str] = frozenset(), delay: float = 0.0):
        self.failing = failing
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls: list[str] = []

    async def parse(self, text: str):
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if text in self.failing:
                raise ExtractionFailed(3, RuntimeError(f"LLM down for {text}"))
            payload = validate_payload(json.dumps(card_payload(firstName=field(text, 0.9))))
            return build_response(payload.parsed_data, text)
        finally:
            self.in_flight -= 1


@pytest.fixture
def batch_sleeps() -> list[float]:
    return []


def make_processor(extractor, batch_sleeps: list[float], batch_size: int = 5) -> BatchProcessor:
    async def record_sleep(seconds: float) -> None:
        batch_sleeps.append(seconds)

    return BatchProcessor(extractor, batch_size=batch_size, delay_seconds=1.0, sleep=record_sleep)


class TestParseAll:
    @pytest.mark.asyncio
    async def test_seven_items_with_one_failure(self, batch_sleeps):
        texts = [f"card-{i}" for i in range(7)]
        extractor = StubExtractor(failing={"card-2"})

        results = await make_processor(extractor, batch_sleeps).parse_all(texts)

        assert len(results) == 7
        assert [r.raw_text for r in results] == texts
        assert results[2].overall_confidence == 0
        assert results[2].parsed_data.first_name.value is None
        assert results[2].processing_notes.startswith("Failed to parse:")
        for i in (0, 1, 3, 4, 5, 6):
            assert results[i].parsed_data.first_name.value == f"card-{i}"
            assert results[i].overall_confidence > 0

    @pytest.mark.asyncio
    async def test_delay_only_between_chunks(self, batch_sleeps):
        extractor = StubExtractor()
        await make_processor(extractor, batch_sleeps).parse_all([f"c{i}" for i in range(12)])
        # chunks of 5, 5, 2
        assert batch_sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_single_chunk_no_delay(self, batch_sleeps):
        await make_processor(StubExtractor(), batch_sleeps).parse_all(["a", "b", "c", "d", "e"])
        assert batch_sleeps == []

    @pytest.mark.asyncio
    async def test_chunk_runs_concurrently_and_is_bounded(self, batch_sleeps):
        extractor = StubExtractor(delay=0.01)
        await make_processor(extractor, batch_sleeps).parse_all([f"c{i}" for i in range(11)])
        assert extractor.max_in_flight == 5

    @pytest.mark.asyncio
    async def test_all_failures(self, batch_sleeps):
        texts = ["x", "y", "z"]
        results = await make_processor(StubExtractor(failing=set(texts)), batch_sleeps).parse_all(texts)
        assert [r.overall_confidence for r in results] == [0, 0, 0]

    @pytest.mark.asyncio
    async def test_empty_input(self, batch_sleeps):
        assert await make_processor(StubExtractor(), batch_sleeps).parse_all([]) == []

    @pytest.mark.asyncio
    async def test_blank_text_becomes_fallback(self, mock_llm, fast_retry, batch_sleeps, standard_card_content):
        mock_llm.complete_json.return_value = standard_card_content
        processor = make_processor(FieldExtractor(mock_llm, fast_retry), batch_sleeps)

        results = await processor.parse_all(["John Smith", "   "])

        assert results[0].parsed_data.first_name.value == "John"
        assert results[1].overall_confidence == 0
        assert mock_llm.complete_json.await_count == 1

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            BatchProcessor(StubExtractor(), batch_size=0)


class TestSummarize:
    @pytest.mark.asyncio
    async def test_counts(self, batch_sleeps):
        extractor = StubExtractor(failing={"bad"})
        results = await make_processor(extractor, batch_sleeps).parse_all(["good", "bad"])

        low = validate_payload(json.dumps(card_payload(phone=field("555", 0.4))))
        results.append(build_response(low.parsed_data, "smudged"))

        summary = summarize(results)
        assert summary.total == 3
        assert summary.failed == 1
        assert summary.needs_review == 1
