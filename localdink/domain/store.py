"""
RecordStore port: a keyed document store with versioned conditional writes.

Documents are plain dicts grouped in named collections. Every write bumps
the document's version; compare_and_set only succeeds when the caller
still holds the latest version, which is what makes RSVP transitions
race-free without cross-document transactions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable


class StoreUnavailableError(Exception):
    """The backing database cannot be reached. Fatal for the current operation."""


class WriteConflictError(Exception):
    """A conditional write lost against a concurrent writer."""


@dataclass
class Record:
    id: str
    data: dict
    version: int


class RecordStore(ABC):
    """
    Port: persist documents.

    Implementations: InMemoryRecordStore (tests, dev) and SqliteRecordStore.
    Both must satisfy the same contract.
    """

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Record | None:
        ...

    @abstractmethod
    async def create(self, collection: str, data: dict, record_id: str | None = None) -> Record:
        """Insert a new document, generating an id when none is given."""
        ...

    @abstractmethod
    async def set(self, collection: str, record_id: str, data: dict) -> Record:
        """Unconditionally replace (or insert) a document."""
        ...

    @abstractmethod
    async def update(self, collection: str, record_id: str, fields: dict) -> Record:
        """Shallow-merge fields into an existing document. KeyError when missing."""
        ...

    @abstractmethod
    async def compare_and_set(
        self, collection: str, record_id: str, data: dict, expected_version: int
    ) -> Record:
        """
        Replace a document only if its version is still expected_version.

        Raises WriteConflictError when another write got there first,
        KeyError when the document does not exist.
        """
        ...

    @abstractmethod
    async def find(
        self, collection: str, predicate: Callable[[dict], bool] | None = None
    ) -> list[Record]:
        """Return matching documents in insertion order."""
        ...
