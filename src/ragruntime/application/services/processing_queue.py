from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, Generic, TypeVar

from ragruntime.application.services.rate_limiter import RateLimiter
from ragruntime.core.errors import ConfigurationError, ProviderCallError
from ragruntime.domain.models.batch import BatchError, BatchProcessResult, BatchProgress

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Worker = Callable[[Any], Awaitable[Any]]
BatchWorker = Callable[[list[Any]], Awaitable[Sequence[Any]]]


@dataclass(slots=True)
class QueueOptions:
    concurrency: int = 4
    batch_size: int | None = None
    on_progress: Callable[[BatchProgress], None] | None = None
    rate_limiter: RateLimiter | None = None
    cancel_event: asyncio.Event | None = None
    max_retries: int = 0
    retry_delay: float = 1.0


def validate_queue_options(options: QueueOptions) -> None:
    if options.concurrency < 1:
        raise ConfigurationError("concurrency must be at least 1")
    if options.batch_size is not None and options.batch_size < 1:
        raise ConfigurationError("batch_size must be at least 1")
    if options.max_retries < 0:
        raise ConfigurationError("max_retries must not be negative")
    if options.retry_delay < 0:
        raise ConfigurationError("retry_delay must not be negative")


async def batch_process(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    options: QueueOptions | None = None,
    *,
    batch_worker: Callable[[list[T]], Awaitable[Sequence[R]]] | None = None,
) -> BatchProcessResult[R]:
    """Run ``worker`` over ``items`` with bounded concurrency.

    Failures are isolated per item and reported as ``BatchError`` entries;
    successes come back in input order regardless of completion order. With
    ``options.batch_size`` the items are processed in sequential groups, and a
    group is first offered to ``batch_worker`` as a single call. If that call
    fails, every item of the group goes through ``worker`` on its own.
    """
    options = options or QueueOptions()
    validate_queue_options(options)
    run = _BatchRun(list(items), worker, options, batch_worker)
    return await run.execute()


class _BatchRun:
    def __init__(
        self,
        items: list[Any],
        worker: Worker,
        options: QueueOptions,
        batch_worker: BatchWorker | None,
    ) -> None:
        self.items = items
        self.worker = worker
        self.batch_worker = batch_worker
        self.options = options
        self.progress = BatchProgress(total=len(items))
        self.outcomes: dict[int, Any] = {}
        self.errors: list[BatchError] = []
        self.semaphore = asyncio.Semaphore(options.concurrency)

    async def execute(self) -> BatchProcessResult[Any]:
        batch_size = self.options.batch_size
        if batch_size is None:
            await self._run_items(range(len(self.items)))
        else:
            for offset in range(0, len(self.items), batch_size):
                if self._cancelled():
                    break
                indices = range(offset, min(offset + batch_size, len(self.items)))
                if self.batch_worker is not None and len(indices) > 1:
                    if await self._run_group(indices):
                        continue
                await self._run_items(indices)

        if self._cancelled():
            logger.info(
                "Batch cancelled after %d/%d items",
                self.progress.completed,
                self.progress.total,
            )
        return BatchProcessResult(
            results=[self.outcomes[index] for index in sorted(self.outcomes)],
            errors=sorted(self.errors, key=lambda err: err.item_index),
            progress=replace(self.progress),
        )

    async def _run_items(self, indices: range) -> None:
        await asyncio.gather(*(self._run_item(index) for index in indices))

    async def _run_item(self, index: int) -> None:
        async with self.semaphore:
            if self._cancelled():
                return
            self.progress.in_flight += 1
            try:
                result = await self._call(self.worker, self.items[index])
            except Exception as exc:
                self._record_failure(index, exc)
            else:
                self._record_success(index, result)

    async def _run_group(self, indices: range) -> bool:
        group = [self.items[index] for index in indices]
        async with self.semaphore:
            if self._cancelled():
                return True
            self.progress.in_flight += len(group)
            try:
                if self.options.rate_limiter is not None:
                    await self.options.rate_limiter.acquire()
                results = list(await self.batch_worker(group))
                if len(results) != len(group):
                    raise ProviderCallError(
                        f"Batch call returned {len(results)} results for {len(group)} inputs"
                    )
            except Exception as exc:
                self.progress.in_flight -= len(group)
                logger.warning(
                    "Batch call for items %d-%d failed (%s); retrying items individually",
                    indices[0],
                    indices[-1],
                    exc,
                )
                return False
            for index, result in zip(indices, results):
                self._record_success(index, result)
        return True

    async def _call(self, fn: Worker, item: Any) -> Any:
        attempt = 0
        while True:
            if self.options.rate_limiter is not None:
                await self.options.rate_limiter.acquire()
            try:
                return await fn(item)
            except Exception as exc:
                if attempt >= self.options.max_retries or not getattr(exc, "retryable", True):
                    raise
                delay = self.options.retry_delay * (2**attempt)
                attempt += 1
                logger.debug("Retrying item after error (%s), attempt %d in %.2fs", exc, attempt, delay)
                await asyncio.sleep(delay)

    def _record_success(self, index: int, result: Any) -> None:
        self.outcomes[index] = result
        self.progress.completed += 1
        self.progress.in_flight -= 1
        self._emit()

    def _record_failure(self, index: int, exc: Exception) -> None:
        logger.warning("Item %d failed: %s", index, exc)
        self.errors.append(BatchError(item_index=index, input=self.items[index], error=exc))
        self.progress.completed += 1
        self.progress.failed += 1
        self.progress.in_flight -= 1
        self._emit()

    def _emit(self) -> None:
        if self.options.on_progress is None:
            return
        self.options.on_progress(replace(self.progress))

    def _cancelled(self) -> bool:
        return self.options.cancel_event is not None and self.options.cancel_event.is_set()


class ProcessingQueue(Generic[T, R]):
    """Incremental queue: items are added one at a time and awaited individually.

    Unlike :func:`batch_process`, a failing item raises to the caller awaiting it.
    """

    def __init__(self, processor: Callable[[T], Awaitable[R]], concurrency: int = 1) -> None:
        if concurrency < 1:
            raise ConfigurationError("concurrency must be at least 1")
        self._processor = processor
        self._semaphore = asyncio.Semaphore(concurrency)
        self._pending = 0
        self._active = 0

    @property
    def size(self) -> int:
        return self._pending

    @property
    def active_count(self) -> int:
        return self._active

    async def add(self, item: T) -> R:
        self._pending += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._pending -= 1
        self._active += 1
        try:
            return await self._processor(item)
        finally:
            self._active -= 1
            self._semaphore.release()

    async def add_batch(self, items: Sequence[T]) -> list[R]:
        return list(await asyncio.gather(*(self.add(item) for item in items)))
