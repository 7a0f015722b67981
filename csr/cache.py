from __future__ import annotations

from dataclasses import dataclass, field

from .db import utc_now
from .models import Registration


@dataclass
class CacheEntry:
    registration: Registration
    agent: str
    marked: bool = False
    registered_at: str = field(default_factory=utc_now)


class RegistrationCache:
    """Mark-and-sweep bookkeeping of what this process registered.

    An id present here means the catalog holds (or very recently held) the
    registration. Entries start unmarked; a pass marks every service it sees,
    and the sweep unmarks survivors so liveness must be shown again next pass.
    Not locked: callers serialise passes.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __contains__(self, service_id: str) -> bool:
        return service_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, registration: Registration, agent: str) -> CacheEntry:
        entry = CacheEntry(registration=registration, agent=agent)
        self._entries[registration.id] = entry
        return entry

    def get(self, service_id: str) -> CacheEntry | None:
        return self._entries.get(service_id)

    def mark(self, service_id: str) -> None:
        entry = self._entries.get(service_id)
        if entry is not None:
            entry.marked = True

    def unmark(self, service_id: str) -> None:
        entry = self._entries.get(service_id)
        if entry is not None:
            entry.marked = False

    def is_stale(self, service_id: str) -> bool:
        entry = self._entries.get(service_id)
        return entry is not None and not entry.marked

    def remove(self, service_id: str) -> None:
        self._entries.pop(service_id, None)

    def snapshot(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())
