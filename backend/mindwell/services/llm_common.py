"""
Shared helpers for LLM SDK calls: run the blocking call in a threadpool to avoid
blocking the event loop. Timeout and retry for transient errors (429, 5xx).
"""
from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from typing import TypeVar

from starlette.concurrency import run_in_threadpool

from mindwell.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retry up to 3 times with exponential backoff (1s, 2s) for these status patterns
RETRYABLE_STATUS_PATTERN = re.compile(r"\b(429|5\d{2})\b")
MAX_ATTEMPTS = 3


def _is_retryable_error(exc: BaseException) -> bool:
    """True if the exception looks like 429 or 5xx."""
    msg = (getattr(exc, "message", None) or str(exc)) if exc else ""
    return bool(RETRYABLE_STATUS_PATTERN.search(msg))


def strip_code_fence(text: str) -> str:
    """Unwrap a response wrapped in ```json ... ```."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1].rsplit("```", 1)[0].strip()
    return text


async def run_llm_call(call: Callable[[], T]) -> T:
    """
    Run a blocking SDK call in a thread pool with timeout.
    Retries with exponential backoff on 429/5xx-like errors and on timeout.
    """
    timeout = settings.advisory_request_timeout_seconds or 30
    last_exc: BaseException | None = None
    for attempt in range(MAX_ATTEMPTS):
        try:
            return await asyncio.wait_for(run_in_threadpool(call), timeout=float(timeout))
        except asyncio.TimeoutError as e:
            logger.warning("LLM request timed out after %ss (attempt %d)", timeout, attempt + 1)
            last_exc = e
            if attempt == MAX_ATTEMPTS - 1:
                raise
            await asyncio.sleep(2 ** attempt)
        except Exception as e:
            last_exc = e
            if attempt < MAX_ATTEMPTS - 1 and _is_retryable_error(e):
                delay = 2 ** attempt
                logger.warning("LLM request failed (attempt %d), retrying in %ss: %s", attempt + 1, delay, e)
                await asyncio.sleep(delay)
            else:
                raise
    if last_exc is not None:
        raise last_exc
    raise RuntimeError("run_llm_call: unexpected exit")
