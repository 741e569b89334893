"""Per-call ordering locks for transcript appends and coverage evaluation."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class CallLockRegistry:
    """
    One asyncio.Lock per call; different calls never wait on each other.

    Entries are reference counted: a call's lock exists only while someone holds
    or waits for it, so finished or unknown call ids leave nothing behind.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}

    @asynccontextmanager
    async def hold(self, call_id: str) -> AsyncIterator[None]:
        # Bookkeeping has no await between read and write, so it needs no lock of its own.
        entry = self._entries.get(call_id)
        if entry is None:
            entry = self._entries[call_id] = _Entry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(call_id, None)

    def __len__(self) -> int:
        return len(self._entries)


call_locks = CallLockRegistry()
