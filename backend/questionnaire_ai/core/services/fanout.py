from __future__ import annotations
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class FailurePolicy(str, Enum):
    FAIL_FAST = "fail_fast"        # first error cancels siblings and propagates
    COLLECT_ALL = "collect_all"    # every item settles; errors are returned per slot


@dataclass(frozen=True)
class Outcome(Generic[R]):
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def fan_out(
    items: Sequence[T],
    worker: Callable[[int, T], Awaitable[R]],
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    max_concurrency: int | None = None,
) -> List[Outcome[R]]:
    """
    Run ``worker(index, item)`` for every item concurrently and join.

    Results keep input order. Under FAIL_FAST the first exception cancels
    the remaining work and is re-raised; under COLLECT_ALL each slot carries
    either a value or the exception it raised.
    """
    if not items:
        return []

    sem = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def _run(i: int, item: T) -> R:
        if sem is None:
            return await worker(i, item)
        async with sem:
            return await worker(i, item)

    tasks = [asyncio.ensure_future(_run(i, item)) for i, item in enumerate(items)]

    if policy is FailurePolicy.FAIL_FAST:
        try:
            values = await asyncio.gather(*tasks)
        except BaseException:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [Outcome(value=v) for v in values]

    settled: List[Any] = await asyncio.gather(*tasks, return_exceptions=True)
    outcomes: List[Outcome[R]] = []
    for res in settled:
        if isinstance(res, Exception):
            outcomes.append(Outcome(error=res))
        elif isinstance(res, BaseException):
            raise res
        else:
            outcomes.append(Outcome(value=res))
    return outcomes
