from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator


@dataclass(slots=True)
class Stopwatch:
    key: str
    start_ns: int
    elapsed_ms: float | None = None
    pending: asyncio.Task | None = None


@asynccontextmanager
async def timed(target: Any, key: str) -> AsyncIterator[Stopwatch]:
    """Emit ``target.timer(key, <elapsed ms>)`` when the block exits.

    ``target`` is a MetricsClient or NamespaceProxy. The timer is sent even
    when the block raises; the send itself is not awaited.
    """
    watch = Stopwatch(key=key, start_ns=time.monotonic_ns())
    try:
        yield watch
    finally:
        watch.elapsed_ms = (time.monotonic_ns() - watch.start_ns) / 1_000_000
        watch.pending = target.timer(key, round(watch.elapsed_ms, 3))
