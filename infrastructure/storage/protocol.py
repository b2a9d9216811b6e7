"""DocumentStore protocol. Services depend on this, not on a concrete backend.

Documents are plain JSON-compatible dicts addressed by (collection, key).
``update`` is the only mutation of an existing document and must be atomic
with respect to concurrent callers on the same key: numeric deltas on
dotted paths and appends to an ordered log field are applied by the store,
never as a read-modify-write by the caller.
"""

from typing import Any, Mapping, Optional, Protocol

LINKS = "links"
ANALYTICS = "analytics"


class DocumentStore(Protocol):
    async def get(self, collection: str, key: str) -> Optional[dict]: ...

    async def set(self, collection: str, key: str, document: dict) -> bool:
        """Insert *document* unless *key* exists; False when it already does."""
        ...

    async def update(
        self,
        collection: str,
        key: str,
        *,
        increments: Optional[Mapping[str, int]] = None,
        append: Optional[Mapping[str, Any]] = None,
        append_limit: Optional[int] = None,
        upsert_document: Optional[dict] = None,
    ) -> Optional[dict]:
        """Apply increments and appends; return the updated document.

        Returns None when *key* does not exist and no *upsert_document* seed
        was given. *append_limit* keeps only the newest N log entries.
        """
        ...

    async def delete(self, collection: str, key: str) -> bool: ...

    async def find(
        self,
        collection: str,
        filters: Mapping[str, Any],
        sort: Optional[tuple[str, int]] = None,
    ) -> list[tuple[str, dict]]:
        """Return (key, document) pairs matching equality *filters*.

        *sort* is ``(field, direction)`` with direction 1 or -1.
        """
        ...

    async def scan(self, collection: str) -> list[tuple[str, dict]]: ...

    async def ping(self) -> None: ...
