"""Rate-limited batch extraction.

Texts are processed in fixed-size chunks; each chunk runs concurrently and
chunks are separated by a fixed delay. A failing item becomes a fallback
record so the output always lines up with the input.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from confidence import contact_needs_review
from config import settings
from extraction import FieldExtractor, fallback_response
from models import AIParsingResponse, BatchSummary

logger = logging.getLogger(__name__)


class BatchProcessor:
    def __init__(
        self,
        extractor: FieldExtractor,
        batch_size: int | None = None,
        delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._extractor = extractor
        self.batch_size = batch_size if batch_size is not None else settings.BATCH_SIZE
        self.delay_seconds = delay_seconds if delay_seconds is not None else settings.BATCH_DELAY_SECONDS
        self._sleep = sleep

        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

    async def parse_all(self, ocr_texts: list[str]) -> list[AIParsingResponse]:
        """Return one response per input text, in input order."""
        results: list[AIParsingResponse] = []

        for start in range(0, len(ocr_texts), self.batch_size):
            chunk = ocr_texts[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self._extractor.parse(text) for text in chunk),
                return_exceptions=True,
            )

            for offset, (text, outcome) in enumerate(zip(chunk, outcomes)):
                if isinstance(outcome, BaseException):
                    logger.error("Batch item %d failed: %s", start + offset, outcome)
                    results.append(fallback_response(text, outcome))
                else:
                    results.append(outcome)

            if start + self.batch_size < len(ocr_texts):
                await self._sleep(self.delay_seconds)

        return results


def summarize(results: list[AIParsingResponse]) -> BatchSummary:
    """Counts for the batch endpoint. Failed items are the zero-confidence ones."""
    return BatchSummary(
        total=len(results),
        needs_review=sum(1 for r in results if contact_needs_review(r.parsed_data)),
        failed=sum(1 for r in results if r.overall_confidence == 0),
    )
