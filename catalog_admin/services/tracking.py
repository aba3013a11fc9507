"""
Working-copy tracking.

Each tracked record lives twice: an immutable baseline (last known server
state, keyed by the record's server key) and a working entry that edits
mutate. Rows that were never saved carry a ``Pending`` identity.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Optional, TypeVar, Union

from catalog_admin.core.errors import NotFound

R = TypeVar("R")

PENDING_PREFIX = "new:"


@dataclass(frozen=True)
class Persisted:
    key: str

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Pending:
    local_id: str

    def __str__(self) -> str:
        return f"{PENDING_PREFIX}{self.local_id}"


Identity = Union[Persisted, Pending]


def new_pending() -> Pending:
    return Pending(uuid.uuid4().hex)


def parse_identity(text: str) -> Identity:
    """Inverse of ``str(identity)``; used by the HTTP layer."""
    if text.startswith(PENDING_PREFIX):
        return Pending(text[len(PENDING_PREFIX):])
    return Persisted(text)


@dataclass
class Tracked(Generic[R]):
    identity: Identity
    record: R
    deleted: bool = False

    @property
    def is_new(self) -> bool:
        return isinstance(self.identity, Pending)


class TrackedSet(Generic[R]):
    def __init__(self, kind: str):
        self.kind = kind
        self.baseline: Dict[str, R] = {}
        self.working: Dict[Identity, Tracked[R]] = {}

    def __len__(self) -> int:
        return len(self.working)

    def entries(self) -> List[Tracked[R]]:
        return list(self.working.values())

    def live(self) -> List[Tracked[R]]:
        return [e for e in self.working.values() if not e.deleted]

    def get(self, identity: Identity) -> Tracked[R]:
        entry = self.working.get(identity)
        if entry is None:
            raise NotFound(kind=self.kind, identity=str(identity))
        return entry

    def find(self, identity: Identity) -> Optional[Tracked[R]]:
        return self.working.get(identity)

    def baseline_of(self, entry: Tracked[R]) -> Optional[R]:
        if entry.is_new:
            return None
        return self.baseline.get(entry.identity.key)

    def replace(self, records: Iterable[R]) -> None:
        """Wholesale reset from server records."""
        self.baseline = {}
        self.working = {}
        self.adopt(records)

    def adopt(self, records: Iterable[R]) -> List[Tracked[R]]:
        """
        Start tracking server records. Keys already tracked keep their
        working entry; the returned list is in the order given.
        """
        out = []
        for record in records:
            identity = Persisted(record.key)
            entry = self.working.get(identity)
            if entry is None:
                self.baseline[record.key] = record.model_copy(deep=True)
                entry = Tracked(identity, record.model_copy(deep=True))
                self.working[identity] = entry
            out.append(entry)
        return out

    def insert_new(self, record: R) -> Tracked[R]:
        entry = Tracked(new_pending(), record)
        # new rows go on top
        self.working = {entry.identity: entry, **self.working}
        return entry

    def drop(self, identity: Identity) -> None:
        self.working.pop(identity, None)

    def revert(self) -> None:
        self.working = {
            Persisted(key): Tracked(Persisted(key), record.model_copy(deep=True))
            for key, record in self.baseline.items()
        }
