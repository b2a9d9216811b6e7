"""In-process DocumentStore.

Process-wide, never persisted and never cleared: it backs the degraded
single-process mode used when the durable store is absent or failing, and
is not a cache of the durable store. All methods run to completion without
awaiting, so on one event loop every call is atomic with respect to other
coroutines. Documents are deep-copied on the way in and out.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping, Optional


def _resolve_parent(document: dict, path: str) -> tuple[dict, str]:
    """Walk a dotted *path*, creating intermediate dicts; return (parent, leaf)."""
    *parents, leaf = path.split(".")
    node = document
    for name in parents:
        child = node.get(name)
        if not isinstance(child, dict):
            child = {}
            node[name] = child
        node = child
    return node, leaf


class MemoryDocumentStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict]] = {}

    def _collection(self, name: str) -> dict[str, dict]:
        return self._collections.setdefault(name, {})

    async def get(self, collection: str, key: str) -> Optional[dict]:
        document = self._collection(collection).get(key)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, collection: str, key: str, document: dict) -> bool:
        documents = self._collection(collection)
        if key in documents:
            return False
        documents[key] = copy.deepcopy(document)
        return True

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
        documents = self._collection(collection)
        document = documents.get(key)
        if document is None:
            if upsert_document is None:
                return None
            document = copy.deepcopy(upsert_document)
            documents[key] = document

        for path, delta in (increments or {}).items():
            parent, leaf = _resolve_parent(document, path)
            current = parent.get(leaf, 0)
            parent[leaf] = (current if isinstance(current, (int, float)) else 0) + delta

        for path, value in (append or {}).items():
            parent, leaf = _resolve_parent(document, path)
            log = parent.get(leaf)
            if not isinstance(log, list):
                log = []
                parent[leaf] = log
            log.append(copy.deepcopy(value))
            if append_limit is not None and len(log) > append_limit:
                del log[: len(log) - append_limit]

        return copy.deepcopy(document)

    async def delete(self, collection: str, key: str) -> bool:
        return self._collection(collection).pop(key, None) is not None

    async def find(
        self,
        collection: str,
        filters: Mapping[str, Any],
        sort: Optional[tuple[str, int]] = None,
    ) -> list[tuple[str, dict]]:
        matches = [
            (key, copy.deepcopy(document))
            for key, document in self._collection(collection).items()
            if all(document.get(field) == value for field, value in filters.items())
        ]
        if sort is not None:
            field, direction = sort
            matches.sort(key=lambda item: str(item[1].get(field, "")), reverse=direction < 0)
        return matches

    async def scan(self, collection: str) -> list[tuple[str, dict]]:
        return [
            (key, copy.deepcopy(document))
            for key, document in self._collection(collection).items()
        ]

    async def ping(self) -> None:
        return None
