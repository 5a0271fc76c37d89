"""Sequential and batched update strategies, and the clock around them.

The apply functions only issue store calls; ``timed`` measures them. Altered
records are built before the clock starts so only the store calls are timed.
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

from lib.moray_client import StoreClient

from .config import DEFAULT_BATCH_SIZE
from .mutations import MutationValue, alter_objects

SEQUENTIAL = "sequential"
BATCH = "batch"


@dataclass
class StrategyTiming:
    strategy: str
    calls: int
    elapsed_ms: float


class Stopwatch:
    def __init__(self) -> None:
        self.start: float | None = None
        self.end: float | None = None

    @property
    def elapsed_ms(self) -> float:
        if self.start is None:
            return 0.0
        end = self.end if self.end is not None else time.perf_counter()
        return (end - self.start) * 1000.0


@contextlib.contextmanager
def timed() -> Iterator[Stopwatch]:
    """Time the body. The stopwatch is stopped even when the body raises."""
    watch = Stopwatch()
    watch.start = time.perf_counter()
    try:
        yield watch
    finally:
        watch.end = time.perf_counter()


def chunked(items: Iterable, size: int) -> Iterator[list]:
    """Yield consecutive lists of *size* items; the last may be shorter."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    chunk: list = []
    for item in items:
        chunk.append(item)
        if len(chunk) == size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def apply_sequential(client: StoreClient, bucket: str, updates: Mapping[str, dict]) -> int:
    """One update call per object, in order. Returns the number of calls."""
    calls = 0
    for key, fields in updates.items():
        client.update_object(bucket, key, fields)
        calls += 1
    return calls


def apply_batched(
    client: StoreClient,
    bucket: str,
    updates: Mapping[str, dict],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """One batch call per *batch_size* objects, in order. Returns the number of calls."""
    calls = 0
    for group in chunked(updates.items(), batch_size):
        client.batch_update(bucket, group)
        calls += 1
    return calls


class UpdateRunner:
    """Applies a mutation to a fixed object set with either strategy."""

    def __init__(self, client: StoreClient, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def update_sequential(self, objects: Mapping[str, dict], value: MutationValue) -> StrategyTiming:
        updates = alter_objects(objects, value)
        with timed() as watch:
            calls = apply_sequential(self.client, self.bucket, updates)
        return StrategyTiming(SEQUENTIAL, calls, watch.elapsed_ms)

    def update_batched(
        self,
        objects: Mapping[str, dict],
        value: MutationValue,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> StrategyTiming:
        updates = alter_objects(objects, value)
        with timed() as watch:
            calls = apply_batched(self.client, self.bucket, updates, batch_size)
        return StrategyTiming(BATCH, calls, watch.elapsed_ms)
