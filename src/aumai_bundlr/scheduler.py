"""Bounded-concurrency batch uploads with per-item retry."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import Any

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from aumai_bundlr.errors import is_funds_exhausted
from aumai_bundlr.models import BatchOutcome, ItemOutcome, UploadConfig

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5

UploadFn = Callable[[Any], Awaitable[Any]]
ResultProcessor = Callable[[ItemOutcome], Any]
ProgressFn = Callable[[str], Any]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class _BatchState:
    """Accumulators and abort token owned by a single run."""

    def __init__(self) -> None:
        self.errors: list[Exception] = []
        self.results: list[Any] = []
        self.aborted = asyncio.Event()
        self._lock = asyncio.Lock()

    async def add_error(self, exc: Exception) -> None:
        async with self._lock:
            self.errors.append(exc)

    async def add_result(self, result: Any) -> int:
        async with self._lock:
            self.results.append(result)
            return len(self.results)


class ConcurrentUploader:
    """Run one upload per item, at most ``concurrency`` at a time.

    Each item gets ``retry_attempts`` tries with exponential backoff between
    ``min_backoff`` and ``max_backoff`` seconds.  A funds-exhausted failure
    is never retried and stops the batch: no further items are started,
    though uploads already in flight are allowed to finish.

    Failures never propagate out of :meth:`run`; they are returned in
    :attr:`BatchOutcome.errors`.
    """

    def __init__(self, upload: UploadFn, config: UploadConfig | None = None) -> None:
        self._upload = upload
        self._config = config or UploadConfig()

    async def run(
        self,
        items: Sequence[Any],
        concurrency: int | None = None,
        *,
        result_processor: ResultProcessor | None = None,
        progress: ProgressFn | None = None,
    ) -> BatchOutcome:
        """Upload every item and collect errors and results.

        Args:
            items: Payloads, taken in input order.
            concurrency: Worker limit.  Defaults to the configured value;
                anything below 1 falls back to 5.
            result_processor: Replaces the default :class:`ItemOutcome` for
                each success.  Sync or async; a failure counts as a failed
                attempt for that item.
            progress: Called with ``"Processed N Items"`` each time the
                number of successful items reaches a multiple of the
                concurrency.  Sync or async; its failures are logged only.
        """
        limit = self._config.concurrency if concurrency is None else concurrency
        if limit < 1:
            limit = DEFAULT_CONCURRENCY

        state = _BatchState()
        pending = iter(enumerate(items))
        workers = [
            asyncio.create_task(
                self._worker(pending, state, limit, result_processor, progress)
            )
            for _ in range(limit)
        ]
        await asyncio.gather(*workers)

        logger.info(
            "Batch finished: %d uploaded, %d failed%s",
            len(state.results),
            len(state.errors),
            " (aborted)" if state.aborted.is_set() else "",
        )
        return BatchOutcome(errors=state.errors, results=state.results)

    async def _worker(
        self,
        pending: Iterator[tuple[int, Any]],
        state: _BatchState,
        limit: int,
        result_processor: ResultProcessor | None,
        progress: ProgressFn | None,
    ) -> None:
        while not state.aborted.is_set():
            try:
                i, item = next(pending)
            except StopIteration:
                return

            try:
                result = await self._attempt(item, i, result_processor)
            except Exception as exc:
                await state.add_error(exc)
                if is_funds_exhausted(exc):
                    logger.error("Out of funds at item %d; stopping batch", i)
                    state.aborted.set()
                continue

            completed = await state.add_result(result)
            if progress is not None and completed % limit == 0:
                await self._report(progress, f"Processed {completed} Items")

    async def _attempt(
        self, item: Any, i: int, result_processor: ResultProcessor | None
    ) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._config.retry_attempts),
            wait=wait_exponential(
                multiplier=self._config.min_backoff,
                min=self._config.min_backoff,
                max=self._config.max_backoff,
            ),
            retry=retry_if_exception(lambda exc: not is_funds_exhausted(exc)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                res = await self._upload(item)
                outcome = ItemOutcome(item=item, res=res, i=i)
                if result_processor is not None:
                    outcome = await _maybe_await(result_processor(outcome))
        return outcome

    @staticmethod
    async def _report(progress: ProgressFn, message: str) -> None:
        try:
            await _maybe_await(progress(message))
        except Exception:
            logger.warning("Progress callback failed", exc_info=True)


__all__ = ["DEFAULT_CONCURRENCY", "ConcurrentUploader"]
