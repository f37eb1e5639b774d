"""Batch processing of many invoices with bounded concurrency.

Each file runs the synchronous pipeline in a worker thread. At most
`concurrency` files are in flight; one file failing never affects the
others. Results arrive in completion order, not input order.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from pathlib import Path
from types import TracebackType

from pydantic import BaseModel, ConfigDict

from invoice_reader.extraction.schema import InvoiceRecord
from invoice_reader.pipeline.service import InvoiceReader
from invoice_reader.shared.config import Settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str | Path], None]
ErrorCallback = Callable[[str | Path, Exception], None]


class ConcurrencyLimiter:
    """Admission control for coroutines: at most `limit` holders at once.

    Waiters are admitted in FIFO order; a cancelled waiter gives its place
    (or an already granted slot) back.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {limit}")
        self.limit = limit
        self.running = 0
        self._semaphore = asyncio.Semaphore(limit)

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self._semaphore.acquire()
        self.running += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.running -= 1
        self._semaphore.release()


class BatchOutcome(BaseModel):
    """Outcome of one file in a batch: a record or an error.

    Attributes:
        path: Input path as given
        record: Extracted record on success
        error: Failure (usually InvoiceProcessingError)
        elapsed_ms: Time from admission to completion
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str | Path
    record: InvoiceRecord | None = None
    error: Exception | None = None
    elapsed_ms: int

    @property
    def ok(self) -> bool:
        return self.error is None


async def iter_outcomes(
    paths: Sequence[str | Path],
    process: Callable[[str | Path], Awaitable[InvoiceRecord]],
    concurrency: int,
) -> AsyncIterator[BatchOutcome]:
    """Process files concurrently and yield outcomes as they complete.

    Closing the generator early cancels everything still pending.

    Args:
        paths: Files to process
        process: Coroutine function processing one file
        concurrency: Maximum number of files in flight

    Yields:
        BatchOutcome per file, in completion order
    """
    limiter = ConcurrencyLimiter(concurrency)

    async def _run(path: str | Path) -> BatchOutcome:
        async with limiter:
            start_time = time.perf_counter()
            try:
                record = await process(path)
            except Exception as e:
                return BatchOutcome(
                    path=path,
                    error=e,
                    elapsed_ms=int((time.perf_counter() - start_time) * 1000),
                )
            return BatchOutcome(
                path=path,
                record=record,
                elapsed_ms=int((time.perf_counter() - start_time) * 1000),
            )

    tasks = [asyncio.ensure_future(_run(path)) for path in paths]
    try:
        for next_done in asyncio.as_completed(tasks):
            yield await next_done
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()


def _notify(callback: Callable[..., None], *args: object) -> None:
    """Invoke a user callback; its failures are logged, never propagated."""
    try:
        callback(*args)
    except Exception as e:
        logger.warning(f"Batch callback {getattr(callback, '__name__', callback)!r} failed: {e}")


async def read_many_invoices(
    paths: Sequence[str | Path],
    reader: InvoiceReader | None = None,
    settings: Settings | None = None,
    concurrency: int | None = None,
    on_progress: ProgressCallback | None = None,
    on_error: ErrorCallback | None = None,
    use_cache: bool = True,
) -> list[InvoiceRecord]:
    """Process many invoices concurrently.

    Args:
        paths: Files to process
        reader: Reader to use (a temporary one is created and closed if omitted)
        settings: Settings for the temporary reader
        concurrency: Files in flight (defaults to settings.concurrency)
        on_progress: Called as (completed, total, path) after every file
        on_error: Called as (path, error) for every failed file, before on_progress
        use_cache: Consult and update the result cache

    Returns:
        Records of the files that succeeded, in completion order
    """
    owns_reader = reader is None
    active_reader = reader if reader is not None else InvoiceReader(settings)
    limit = concurrency if concurrency is not None else active_reader.settings.concurrency

    async def _process(path: str | Path) -> InvoiceRecord:
        return await asyncio.to_thread(active_reader.read_invoice, path, use_cache)

    results: list[InvoiceRecord] = []
    completed = 0
    total = len(paths)

    try:
        async for outcome in iter_outcomes(paths, _process, limit):
            completed += 1
            if outcome.error is not None:
                if on_error:
                    _notify(on_error, outcome.path, outcome.error)
            elif outcome.record is not None:
                results.append(outcome.record)
            if on_progress:
                _notify(on_progress, completed, total, outcome.path)
    finally:
        if owns_reader:
            active_reader.close()

    logger.info(f"Batch finished: {len(results)}/{total} invoices processed successfully")
    return results


async def read_invoices_in_batches(
    paths: Sequence[str | Path],
    batch_size: int = 10,
    reader: InvoiceReader | None = None,
    settings: Settings | None = None,
    use_cache: bool = True,
) -> list[InvoiceRecord]:
    """Process invoices in consecutive fixed-size chunks, logging progress.

    Args:
        paths: Files to process
        batch_size: Files per chunk
        reader: Reader shared by all chunks (created and closed if omitted)
        settings: Settings for the temporary reader
        use_cache: Consult and update the result cache

    Returns:
        Records of all files that succeeded
    """
    if batch_size < 1:
        raise ValueError(f"Batch size must be at least 1, got {batch_size}")

    owns_reader = reader is None
    active_reader = reader if reader is not None else InvoiceReader(settings)
    batch_count = (len(paths) + batch_size - 1) // batch_size

    def _log_progress(completed: int, total: int, path: str | Path) -> None:
        logger.info(f"  [{completed}/{total}] {path}")

    def _log_error(path: str | Path, error: Exception) -> None:
        logger.error(f"  Failed {path}: {error}")

    results: list[InvoiceRecord] = []
    try:
        for index in range(0, len(paths), batch_size):
            logger.info(f"Processing batch {index // batch_size + 1}/{batch_count}")
            results.extend(
                await read_many_invoices(
                    paths[index : index + batch_size],
                    reader=active_reader,
                    on_progress=_log_progress,
                    on_error=_log_error,
                    use_cache=use_cache,
                )
            )
    finally:
        if owns_reader:
            active_reader.close()

    return results


def process_invoices(
    paths: Sequence[str | Path],
    *,
    concurrency: int | None = None,
    on_progress: ProgressCallback | None = None,
    on_error: ErrorCallback | None = None,
    settings: Settings | None = None,
    use_cache: bool = True,
) -> list[InvoiceRecord]:
    """Synchronous entry point for batch processing.

    Must not be called from inside a running event loop; use
    read_many_invoices there instead.
    """
    with InvoiceReader(settings) as reader:
        return asyncio.run(
            read_many_invoices(
                paths,
                reader=reader,
                concurrency=concurrency,
                on_progress=on_progress,
                on_error=on_error,
                use_cache=use_cache,
            )
        )
