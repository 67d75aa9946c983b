"""Pure helpers for splitting a unit of work into consecutive sub-batches."""

from __future__ import annotations

from typing import Iterator, Sequence, TypeVar

T = TypeVar("T")


def partition_sizes(total: int, batch_size: int) -> list[int]:
    """Sizes of the consecutive sub-batches of ``total`` items.

    >>> partition_sizes(10, 4)
    [4, 4, 2]
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    if total < 0:
        raise ValueError(f"total must not be negative, got {total}")
    full, rest = divmod(total, batch_size)
    return [batch_size] * full + ([rest] if rest else [])


def chunked(items: Sequence[T], batch_size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of ``items`` following ``partition_sizes``."""
    start = 0
    for size in partition_sizes(len(items), batch_size):
        yield items[start:start + size]
        start += size
