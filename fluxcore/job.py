"""Job queue and a bounded cache of job statuses."""

from __future__ import annotations

import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional


@dataclass
class Job:
    """A unit of work with an identifier."""

    id: str
    do: Optional[Callable[..., Any]] = None


class StatusString(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass
class Status:
    """State of a job: queued, running, succeeded or failed."""

    result: Any = None
    err: str = ""
    status_string: StatusString = StatusString.QUEUED

    def __str__(self) -> str:
        return self.err


class Queue:
    """An unbounded, thread-safe FIFO queue of jobs."""

    def __init__(self) -> None:
        self._waiting: deque[Job] = deque()
        self._cond = threading.Condition()

    def enqueue(self, job: Job) -> None:
        with self._cond:
            self._waiting.append(job)
            self._cond.notify()

    def dequeue(self, block: bool = True, timeout: Optional[float] = None) -> Job:
        """Remove and return the head job; raises queue.Empty if none arrives."""
        with self._cond:
            if block:
                if not self._cond.wait_for(lambda: bool(self._waiting), timeout):
                    raise queue.Empty
            elif not self._waiting:
                raise queue.Empty
            return self._waiting.popleft()

    def __len__(self) -> int:
        with self._cond:
            return len(self._waiting)

    def __iter__(self) -> Iterator[Job]:
        with self._cond:
            snapshot = list(self._waiting)
        return iter(snapshot)


@dataclass
class StatusCache:
    """Keeps the statuses of the most recent jobs, evicting oldest first."""

    size: int
    _entries: list[tuple[str, Status]] = field(
        default_factory=list, init=False, repr=False, compare=False
    )
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def set_status(self, job_id: str, status: Status) -> None:
        if self.size <= 0:
            return
        with self._lock:
            index = self._index(job_id)
            if index is not None:
                self._entries[index] = (job_id, status)
            if self.size <= len(self._entries):
                keep = self.size - 1
                self._entries = self._entries[len(self._entries) - keep:] if keep else []
            self._entries.append((job_id, status))

    def status(self, job_id: str) -> Optional[Status]:
        """The stored status of a job, or None if it is not cached."""
        with self._lock:
            index = self._index(job_id)
            return None if index is None else self._entries[index][1]

    def _index(self, job_id: str) -> Optional[int]:
        return next(
            (i for i, (entry_id, _) in enumerate(self._entries) if entry_id == job_id),
            None,
        )