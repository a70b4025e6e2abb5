# g2a_integration/batch/batch_operations.py
"""
Chunked, bounded-concurrency batch execution with partial-failure reporting.

Items are split into chunks of ``chunk_size``. At most ``max_concurrency``
chunks run at once; items inside a chunk run one after another. Every
failure is reported with the item's position in the original input, and
successes are returned in input order whatever order chunks finish in.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Sequence, Tuple, TypeVar

from g2a_integration.exceptions import BatchPartialFailureError
from g2a_integration.utils.enhanced_logging import get_logger

TIn = TypeVar('TIn')
TOut = TypeVar('TOut')

Processor = Callable[[TIn, int], Awaitable[TOut]]


@dataclass
class BatchFailure:
    index: int
    error: BaseException

    def to_dict(self) -> dict:
        return {"index": self.index, "error": str(self.error), "type": type(self.error).__name__}


@dataclass
class BatchResult(Generic[TOut]):
    successes: List[TOut] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)
    total_processed: int = 0
    duration_ms: float = 0.0

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def failed_indices(self) -> List[int]:
        return [failure.index for failure in self.failures]

    def to_dict(self) -> dict:
        return {
            "total_processed": self.total_processed,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "failures": [failure.to_dict() for failure in self.failures],
            "duration_ms": round(self.duration_ms, 2),
        }


def chunk(items: Sequence[Any], size: int) -> List[List[Any]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def remap_failures(failures: List[BatchFailure], positions: Sequence[int]) -> List[BatchFailure]:
    """Translate failure indices from a sub-list back to positions in the input it was taken from."""
    return [BatchFailure(index=positions[failure.index], error=failure.error) for failure in failures]


class BatchOperations:
    """
    Generic batch executor.

    With ``continue_on_error=False`` the first failure stops its chunk and
    prevents chunks that have not started yet from running; chunks already
    in flight finish their current item. Items never attempted are counted
    in neither successes nor failures.
    """

    def __init__(self, chunk_size: int = 10, max_concurrency: int = 3, continue_on_error: bool = True):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.chunk_size = chunk_size
        self.max_concurrency = max_concurrency
        self.continue_on_error = continue_on_error
        self.logger = get_logger("batch.operations")

    async def execute(self, items: Sequence[TIn], processor: Processor, operation_name: str) -> BatchResult:
        start_time = time.perf_counter()
        chunks = chunk(items, self.chunk_size)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        aborted = asyncio.Event()
        successes: List[Tuple[int, Any]] = []
        failures: List[BatchFailure] = []
        completed_chunks = 0

        self.logger.info(
            f"Starting batch operation: {operation_name}",
            total_items=len(items),
            chunk_size=self.chunk_size,
            max_concurrency=self.max_concurrency
        )

        async def run_chunk(chunk_index: int, chunk_items: List[Any]):
            nonlocal completed_chunks
            async with semaphore:
                if aborted.is_set():
                    return
                for offset, item in enumerate(chunk_items):
                    global_index = chunk_index * self.chunk_size + offset
                    try:
                        successes.append((global_index, await processor(item, global_index)))
                    except Exception as e:
                        failures.append(BatchFailure(index=global_index, error=e))
                        self.logger.debug(
                            f"Batch item failed: {operation_name}",
                            index=global_index,
                            error=str(e)
                        )
                        if not self.continue_on_error:
                            aborted.set()
                            return
                completed_chunks += 1
                self.logger.debug(
                    f"Batch progress: {operation_name}",
                    completed_chunks=completed_chunks,
                    total_chunks=len(chunks),
                    success_count=len(successes),
                    failure_count=len(failures)
                )

        await asyncio.gather(*(run_chunk(i, c) for i, c in enumerate(chunks)))

        successes.sort(key=lambda pair: pair[0])
        failures.sort(key=lambda failure: failure.index)
        result = BatchResult(
            successes=[value for _, value in successes],
            failures=failures,
            total_processed=len(successes) + len(failures),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

        log = self.logger.warning if failures else self.logger.info
        log(
            f"Batch operation completed: {operation_name}",
            total_items=len(items),
            total_processed=result.total_processed,
            success_count=result.success_count,
            failure_count=result.failure_count,
            aborted=aborted.is_set(),
            duration_ms=round(result.duration_ms, 2)
        )
        return result

    async def execute_strict(self, items: Sequence[TIn], processor: Processor, operation_name: str) -> List[Any]:
        """All-or-nothing variant: raises BatchPartialFailureError if any item failed."""
        result = await self.execute(items, processor, operation_name)
        if result.failures:
            raise BatchPartialFailureError(result.success_count, result.failure_count, result.failures)
        return result.successes
