"""A double-ended queue that answers None instead of raising when empty."""

from __future__ import annotations

from collections import deque
from typing import Any, Iterable, Iterator


class Queue:
    """A growable queue with pushes and pops at both ends."""

    def __init__(self, items: Iterable[Any] = ()) -> None:
        self._items: deque[Any] = deque(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"Queue({list(self._items)!r})"

    def push_front(self, item: Any) -> None:
        self._items.appendleft(item)

    def push_back(self, item: Any) -> None:
        self._items.append(item)

    def pop_front(self) -> Any:
        """Remove and return the first item, or None when empty."""
        return self._items.popleft() if self._items else None

    def pop_back(self) -> Any:
        """Remove and return the last item, or None when empty."""
        return self._items.pop() if self._items else None

    def front(self) -> Any:
        return self._items[0] if self._items else None

    def back(self) -> Any:
        return self._items[-1] if self._items else None

    def get(self, index: int) -> Any:
        """The item at ``index`` from the front, or None past the end."""
        if index < 0:
            raise IndexError(f"negative queue index: {index}")
        if index >= len(self._items):
            return None
        return self._items[index]