"""
Generation Orchestrator — batch of titles → persisted questions + ledger.

Pipeline per title:
  1. Sanitize      — trim, reject empty / over-long titles (never reaches the LLM)
  2. Stagger       — inside a batch, every title after the first waits GENERATION_DELAY
  3. Generate      — LLM call through the retry policy (3 attempts)
  4. Parse         — raw text → Question fields (ParseError is terminal, no retry)
  5. Materialize   — fresh id + sanitized title + created_at, full validation
  6. Persist       — store.save_question()
  7. Record        — ledger.completed / ledger.failed + "<title>: <reason>"

Titles run MAX_CONCURRENT_GENERATIONS at a time. Batches are strictly sequential:
batch i+1 starts only after every title of batch i has finished, with a pause of
2 × GENERATION_DELAY in between. Once the batch-level checks pass, generate()
never raises — every per-title failure lands in the ledger.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from database.crud import StoreError
from generation.errors import ParseError, ServiceError, ValidationError
from generation.question_generator import generate_question_fields
from generation.question_parser import build_question
from generation.retry import Retry, fixed_delay
from generation.schemas import MAX_TITLE_LENGTH, GenerationLedger

log = logging.getLogger("generation.pipeline")

# ─── Config ────────────────────────────────────────────────────────────────────
MAX_QUESTIONS_PER_GENERATION = 20
MAX_CONCURRENT_GENERATIONS = int(os.getenv("MAX_CONCURRENT_GENERATIONS", "3"))
GENERATION_DELAY_SECONDS = float(os.getenv("GENERATION_DELAY_SECONDS", "1.0"))
GENERATION_ATTEMPTS = 3

EMPTY_TITLE_PLACEHOLDER = "<empty title>"


# ─── Input validation ──────────────────────────────────────────────────────────

def validate_titles(titles, max_batch: int = MAX_QUESTIONS_PER_GENERATION) -> None:
    """Batch-level checks. Raised to the caller, never counted in the ledger."""
    if not isinstance(titles, (list, tuple)):
        raise ValidationError("titles must be a list of strings", field="titles")
    if len(titles) == 0:
        raise ValidationError("At least one question title is required", field="titles")
    if len(titles) > max_batch:
        raise ValidationError(f"Maximum {max_batch} questions can be generated at once", field="titles")


def sanitize_title(title) -> str:
    if not isinstance(title, str):
        raise ValidationError("Title is required", field="title")
    sanitized = title.strip()
    if not sanitized:
        raise ValidationError("Title cannot be empty", field="title")
    if len(sanitized) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title cannot exceed {MAX_TITLE_LENGTH} characters", field="title")
    return sanitized


def _label(raw_title) -> str:
    """How a rejected title is named in the ledger."""
    if isinstance(raw_title, str) and raw_title.strip():
        return raw_title.strip()
    if raw_title is None or isinstance(raw_title, str):
        return EMPTY_TITLE_PLACEHOLDER
    return str(raw_title)


# ─── Ledger accumulation ───────────────────────────────────────────────────────

@dataclass
class _LedgerBuilder:
    # Only touched from the event loop between awaits, so no lock is needed
    total: int
    completed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def success(self) -> None:
        self.completed += 1

    def failure(self, title: str, reason: str) -> None:
        self.failed += 1
        self.errors.append(f"{title}: {reason}")

    def freeze(self) -> GenerationLedger:
        return GenerationLedger(
            total=self.total,
            completed=self.completed,
            failed=self.failed,
            errors=tuple(self.errors),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ─── Orchestrator ──────────────────────────────────────────────────────────────

class GenerationOrchestrator:
    """
    Args:
        client:  anything with `async generate(prompt) -> str`
        store:   anything with `save_question(question)` raising StoreError on failure
        retry:   policy for the LLM call (default: 3 attempts, 1s apart)
        concurrency:   titles in flight at once (batch size)
        request_delay: stagger inside a batch, seconds
        batch_delay:   pause between batches (default 2 × request_delay)
    """

    def __init__(
        self,
        client,
        store,
        retry: Optional[Retry] = None,
        concurrency: int = MAX_CONCURRENT_GENERATIONS,
        request_delay: float = GENERATION_DELAY_SECONDS,
        batch_delay: Optional[float] = None,
        max_batch: int = MAX_QUESTIONS_PER_GENERATION,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.client = client
        self.store = store
        self.sleep = sleep
        self.retry = retry or Retry(attempts=GENERATION_ATTEMPTS, delay=fixed_delay(request_delay), sleep=sleep)
        self.concurrency = concurrency
        self.request_delay = request_delay
        self.batch_delay = request_delay * 2 if batch_delay is None else batch_delay
        self.max_batch = max_batch
        self.clock = clock
        self.id_factory = id_factory

    async def generate(self, titles: List[str], max_batch: Optional[int] = None) -> GenerationLedger:
        validate_titles(titles, max_batch or self.max_batch)
        titles = list(titles)
        ledger = _LedgerBuilder(total=len(titles))

        batches = [titles[i: i + self.concurrency] for i in range(0, len(titles), self.concurrency)]
        log.info(f"[GENERATE] {len(titles)} title(s) in {len(batches)} batch(es) of ≤{self.concurrency}")

        for index, batch in enumerate(batches):
            await asyncio.gather(*(
                self._process_title(title, position, ledger)
                for position, title in enumerate(batch)
            ))
            log.info(f"[GENERATE] batch {index + 1}/{len(batches)} done — "
                     f"completed={ledger.completed} failed={ledger.failed}")
            if index < len(batches) - 1:
                await self.sleep(self.batch_delay)

        result = ledger.freeze()
        log.info(f"[GENERATE] finished: {result.completed}/{result.total} succeeded ({result.outcome.value})")
        return result

    async def _process_title(self, raw_title, position: int, ledger: _LedgerBuilder) -> None:
        try:
            title = sanitize_title(raw_title)
        except ValidationError as e:
            ledger.failure(_label(raw_title), str(e))
            return

        try:
            if position > 0:
                await self.sleep(self.request_delay)

            fields = await generate_question_fields(self.client, title, self.retry)
            question = build_question(
                fields,
                question_id=self.id_factory(),
                title=title,
                created_at=self.clock(),
            )
            self.store.save_question(question)
        except (ServiceError, ParseError, StoreError) as e:
            log.warning(f"[GENERATE] '{title}' failed: {e}")
            ledger.failure(title, str(e))
            return
        except Exception as e:
            log.exception(f"[GENERATE] '{title}' failed unexpectedly")
            ledger.failure(title, f"Unexpected error: {e}")
            return

        ledger.success()
        log.info(f"[GENERATE] '{title}' stored as {question.id}")
