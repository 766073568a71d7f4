"""Bounded change history used for undo."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Iterator, List, Optional

from .utils import deep_clone


@dataclass(frozen=True)
class ChangeRecord:
    """A single recorded write.

    ``old_value`` is ``MISSING`` when the path did not exist before the write.
    """
    path: str
    old_value: Any
    new_value: Any
    timestamp: datetime = field(default_factory=datetime.now)


class StateHistory:
    """Ring buffer of the most recent changes; the oldest entry is evicted first."""

    def __init__(self, max_size: int = 50) -> None:
        if max_size < 1:
            raise ValueError(f"History size must be at least 1, got {max_size}")
        self._records: Deque[ChangeRecord] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._records.maxlen or 0

    def record(self, path: str, old_value: Any, new_value: Any) -> ChangeRecord:
        """Store clones of both values and return the new record."""
        entry = ChangeRecord(
            path=path,
            old_value=deep_clone(old_value),
            new_value=deep_clone(new_value),
        )
        self._records.append(entry)
        return entry

    def pop(self) -> Optional[ChangeRecord]:
        """Remove and return the newest record, or None when empty."""
        return self._records.pop() if self._records else None

    def records(self) -> List[ChangeRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ChangeRecord]:
        return iter(list(self._records))
