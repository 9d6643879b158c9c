import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List


class PartyLocks:
    """
    One asyncio.Lock per normalized party.

    Obligations never move between parties, so no operation takes two of
    these locks and there is no lock ordering to get wrong. A party's lock
    is dropped once nobody holds or waits on it.
    """

    def __init__(self):
        # party -> [lock, holders and waiters]
        self._locks: Dict[str, List] = {}

    @asynccontextmanager
    async def for_party(self, party: str) -> AsyncIterator[None]:
        entry = self._locks.get(party)
        if entry is None:
            entry = self._locks[party] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[party]

    def __len__(self) -> int:
        return len(self._locks)
