"""Library for iterators used in taskcal.

These iterators are used to produce a single chronological view over the
occurrences of many tasks. Each task contributes an iterable that is already
sorted and the iterables are merged with a heap. Items with equal sort keys
are returned in the order of the iterables that produced them, which keeps
expansion output deterministic for tasks scheduled at the same time.
"""

from __future__ import annotations

import heapq
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Generic, TypeVar, cast

__all__ = [
    "SortableItem",
    "SortableItemValue",
    "MergedIterable",
    "sorted_items",
]

T = TypeVar("T")
K = TypeVar("K")


class SortableItem(Generic[K, T], ABC):
    """A SortableItem is used to sort an item by an arbitrary key.

    This object is used as a holder of the actual occurrence such that the
    sort key used is independent of the occurrence to avoid extra comparisons
    of a large object.
    """

    def __init__(self, key: K) -> None:
        """Initialize SortableItem."""
        self._key = key

    @property
    def key(self) -> K:
        """Return the sort key."""
        return self._key

    @property
    @abstractmethod
    def item(self) -> T:
        """Return the underlying item."""

    def __lt__(self, other: Any) -> bool:
        """Compare sortable items together."""
        if not isinstance(other, SortableItem):
            return NotImplemented
        return cast(bool, self._key < other.key)

    def __eq__(self, other: Any) -> bool:
        """Items with equal keys compare equal so ties fall through to order."""
        if not isinstance(other, SortableItem):
            return NotImplemented
        return cast(bool, self._key == other.key)

    __hash__ = None  # type: ignore[assignment]


class SortableItemValue(SortableItem[K, T]):
    """Concrete value implementation of SortableItem."""

    def __init__(self, key: K, value: T) -> None:
        """Initialize SortableItemValue."""
        super().__init__(key)
        self._value = value

    @property
    def item(self) -> T:
        """Return the underlying item."""
        return self._value


class MergedIterator(Iterator[T]):
    """An iterator with a merged sorted view of the underlying sorted iterators."""

    def __init__(self, iters: list[Iterator[T]]):
        """Initialize MergedIterator."""
        self._iters = iters
        self._heap: list[tuple[T, int]] | None = None

    def __iter__(self) -> Iterator[T]:
        """Return this iterator."""
        return self

    def _make_heap(self) -> None:
        self._heap = []
        for iter_index, iterator in enumerate(self._iters):
            try:
                next_item = next(iterator)
            except StopIteration:
                pass
            else:
                heapq.heappush(self._heap, (next_item, iter_index))

    def __next__(self) -> T:
        """Produce the next item from the merged set."""

        if self._heap is None:
            self._make_heap()

        if not self._heap:
            raise StopIteration()

        (item, iter_index) = heapq.heappop(self._heap)
        iterator = self._iters[iter_index]
        try:
            next_item = next(iterator)
        except StopIteration:
            pass  # Iterator not added back to heap
        else:
            heapq.heappush(self._heap, (next_item, iter_index))
        return item


class MergedIterable(Iterable[T]):
    """An iterator that merges results from underlying sorted iterables."""

    def __init__(self, iters: list[Iterable[T]]) -> None:
        """Initialize MergedIterable."""
        self._iters = iters

    def __iter__(self) -> Iterator[T]:
        return MergedIterator([iter(it) for it in self._iters])


def sorted_items(
    values: Iterable[T], key: Callable[[T], K]
) -> list[SortableItem[K, T]]:
    """Return values wrapped as sortable items in stable key order."""
    return sorted(
        (SortableItemValue(key(value), value) for value in values),
        key=lambda item: item.key,
    )
