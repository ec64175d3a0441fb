"""Least-recently-used cache backed by an arena of linked slots.

Entries live in a flat list and point at their neighbours by index, so the
ordering structure never holds object references to itself::

    head (oldest)                                   tail (newest)
      [A] --next--> [B] --next--> [C] --next--> [D]
      [A] <--prev-- [B] <--prev-- [C] <--prev-- [D]

    evicted  <--                                --> added / promoted

Freed slots go on a free-list and are reused by the next insertion. Every
public operation takes the cache lock; the structure is shared between
request threads.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

_NIL = -1


@dataclass(slots=True)
class _Slot:
    key: Any = None
    value: Any = None
    prev: int = _NIL
    next: int = _NIL
    live: bool = False


class LRUCache:
    """Fixed-capacity key → value cache with O(1) get / put / remove."""

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"LRU cache limit must be at least 1, got {limit}")
        self.limit = limit
        self._slots: List[_Slot] = []
        self._free: List[int] = []
        self._index: Dict[Hashable, int] = {}
        self._head = _NIL
        self._tail = _NIL
        self._lock = threading.Lock()

    # ---- linked-list plumbing (caller holds the lock) ----

    def _unlink(self, idx: int) -> None:
        slot = self._slots[idx]
        if slot.prev != _NIL:
            self._slots[slot.prev].next = slot.next
        else:
            assert self._head == idx, "LRU head does not point at first slot"
            self._head = slot.next
        if slot.next != _NIL:
            self._slots[slot.next].prev = slot.prev
        else:
            assert self._tail == idx, "LRU tail does not point at last slot"
            self._tail = slot.prev
        slot.prev = slot.next = _NIL

    def _append(self, idx: int) -> None:
        slot = self._slots[idx]
        slot.prev = self._tail
        slot.next = _NIL
        if self._tail != _NIL:
            self._slots[self._tail].next = idx
        else:
            self._head = idx
        self._tail = idx

    def _release(self, idx: int) -> Tuple[Any, Any]:
        slot = self._slots[idx]
        entry = (slot.key, slot.value)
        del self._index[slot.key]
        slot.key = slot.value = None
        slot.live = False
        self._free.append(idx)
        return entry

    def _allocate(self, key: Hashable, value: Any) -> int:
        if self._free:
            idx = self._free.pop()
            slot = self._slots[idx]
        else:
            idx = len(self._slots)
            slot = _Slot()
            self._slots.append(slot)
        assert not slot.live, "LRU free-list handed out a live slot"
        slot.key, slot.value, slot.live = key, value, True
        self._index[key] = idx
        return idx

    def _shift(self) -> Optional[Tuple[Any, Any]]:
        idx = self._head
        if idx == _NIL:
            return None
        self._unlink(idx)
        return self._release(idx)

    # ---- public API ----

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the value for *key* and mark it most recently used."""
        with self._lock:
            idx = self._index.get(key)
            if idx is None:
                return default
            if idx != self._tail:
                self._unlink(idx)
                self._append(idx)
            return self._slots[idx].value

    def peek(self, key: Hashable, default: Any = None) -> Any:
        """Return the value for *key* without touching recency."""
        with self._lock:
            idx = self._index.get(key)
            return default if idx is None else self._slots[idx].value

    def put(self, key: Hashable, value: Any) -> Optional[Tuple[Any, Any]]:
        """Store *value* under *key*.

        Returns the evicted ``(key, value)`` pair when a new key pushed the
        cache over its limit, otherwise None. Updating an existing key never
        evicts.
        """
        with self._lock:
            idx = self._index.get(key)
            if idx is not None:
                self._slots[idx].value = value
                if idx != self._tail:
                    self._unlink(idx)
                    self._append(idx)
                return None
            evicted = None
            if len(self._index) >= self.limit:
                evicted = self._shift()
            self._append(self._allocate(key, value))
            assert len(self._index) <= self.limit, "LRU cache grew past its limit"
            return evicted

    def remove(self, key: Hashable, default: Any = None) -> Any:
        """Drop *key* and return its value (or *default* if absent)."""
        with self._lock:
            idx = self._index.get(key)
            if idx is None:
                return default
            self._unlink(idx)
            return self._release(idx)[1]

    def remove_all(self) -> None:
        with self._lock:
            self._slots.clear()
            self._free.clear()
            self._index.clear()
            self._head = self._tail = _NIL

    def items(self) -> List[Tuple[Any, Any]]:
        """Snapshot of ``(key, value)`` pairs, oldest first."""
        with self._lock:
            out: List[Tuple[Any, Any]] = []
            idx = self._head
            while idx != _NIL:
                slot = self._slots[idx]
                out.append((slot.key, slot.value))
                idx = slot.next
            assert len(out) == len(self._index), "LRU list and index disagree"
            return out

    def keys(self) -> List[Any]:
        return [k for k, _ in self.items()]

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._index

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.keys())

    def __repr__(self) -> str:
        body = " < ".join(f"{k!r}:{v!r}" for k, v in self.items())
        return f"LRUCache(limit={self.limit}, [{body}])"
