import asyncio
from dataclasses import dataclass, field
from typing import (
    Awaitable,
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterable,
    Optional,
    TypeVar,
)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run blocking function in default executor.

    Central helper to reduce scattered asyncio.to_thread calls and make future
    switching to a custom ThreadPool simpler.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


class CancellationToken:
    """Cooperative cancel flag for one resolution/aggregation session.

    Work already issued is allowed to finish; workers only stop claiming
    new items once the flag is set.
    """

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class BoundedMapResult(Generic[K, V]):
    results: Dict[K, V] = field(default_factory=dict)
    errors: Dict[K, Exception] = field(default_factory=dict)
    cancelled: bool = False


async def bounded_map(
    items: Iterable[K],
    fn: Callable[[K], Awaitable[V]],
    concurrency: int,
    cancel: Optional[CancellationToken] = None,
) -> BoundedMapResult[K, V]:
    """Apply ``fn`` to every item with at most ``concurrency`` calls outstanding.

    ``concurrency`` workers share one cursor. Claiming the next index and
    awaiting ``fn`` are separate steps on a single event loop, so the
    cursor needs no lock. A failing item lands in ``errors`` and never
    stops the other workers. Duplicate items are processed once.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    work = list(dict.fromkeys(items))
    out: BoundedMapResult[K, V] = BoundedMapResult()
    if not work:
        return out

    cursor = 0

    def is_cancelled() -> bool:
        return cancel is not None and cancel.cancelled

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(work) and not is_cancelled():
            item = work[cursor]
            cursor += 1
            try:
                value = await fn(item)
            except Exception as e:
                if not is_cancelled():
                    out.errors[item] = e
                continue
            if not is_cancelled():
                out.results[item] = value

    await asyncio.gather(*(worker() for _ in range(concurrency)))
    out.cancelled = is_cancelled()
    return out
