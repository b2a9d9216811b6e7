"""MongoDB implementation of DocumentStore (pymongo async client).

The store key is the document ``_id``. Increments map to ``$inc`` on dotted
paths, appends to ``$push`` with ``$each``/``$slice`` so history trimming
happens in the same atomic update, and upsert seeds to ``$setOnInsert``
restricted to fields the update does not already touch.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from shared.logging import get_logger

log = get_logger(__name__)


def _split_id(document: dict) -> tuple[str, dict]:
    key = document.pop("_id")
    return str(key), document


def _strip_id(document: Optional[dict]) -> Optional[dict]:
    if document is None:
        return None
    document.pop("_id", None)
    return document


class MongoDocumentStore:
    def __init__(self, db: AsyncDatabase) -> None:
        self._db = db

    async def get(self, collection: str, key: str) -> Optional[dict]:
        return _strip_id(await self._db[collection].find_one({"_id": key}))

    async def set(self, collection: str, key: str, document: dict) -> bool:
        try:
            await self._db[collection].insert_one({**document, "_id": key})
        except DuplicateKeyError:
            return False
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
        update: dict[str, Any] = {}
        touched: set[str] = set()

        if increments:
            update["$inc"] = dict(increments)
            touched.update(path.split(".")[0] for path in increments)

        if append:
            push: dict[str, Any] = {}
            for path, value in append.items():
                spec: dict[str, Any] = {"$each": [value]}
                if append_limit is not None:
                    spec["$slice"] = -append_limit
                push[path] = spec
                touched.add(path.split(".")[0])
            update["$push"] = push

        if upsert_document is not None:
            # $setOnInsert may not name a path that $inc/$push also modify.
            seed = {k: v for k, v in upsert_document.items() if k not in touched}
            if seed:
                update["$setOnInsert"] = seed

        if not update:
            return await self.get(collection, key)

        document = await self._db[collection].find_one_and_update(
            {"_id": key},
            update,
            upsert=upsert_document is not None,
            return_document=ReturnDocument.AFTER,
        )
        return _strip_id(document)

    async def delete(self, collection: str, key: str) -> bool:
        result = await self._db[collection].delete_one({"_id": key})
        return result.deleted_count > 0

    async def find(
        self,
        collection: str,
        filters: Mapping[str, Any],
        sort: Optional[tuple[str, int]] = None,
    ) -> list[tuple[str, dict]]:
        if sort is not None:
            try:
                cursor = self._db[collection].find(dict(filters)).sort(*sort)
                return [_split_id(doc) for doc in await cursor.to_list()]
            except OperationFailure as e:
                # Sorted queries can fail server-side (e.g. sort memory limit);
                # callers sort client-side anyway.
                log.warning(
                    "mongo_sorted_find_failed",
                    collection=collection,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        cursor = self._db[collection].find(dict(filters))
        return [_split_id(doc) for doc in await cursor.to_list()]

    async def scan(self, collection: str) -> list[tuple[str, dict]]:
        return await self.find(collection, {})

    async def ping(self) -> None:
        await self._db.client.admin.command("ping")
