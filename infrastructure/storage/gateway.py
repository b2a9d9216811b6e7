"""Storage gateway: durable primary store with an in-process fallback.

Every primary call is bounded by ``timeout``; a timeout counts as a store
failure. Write paths never surface a store failure to the caller, they are
logged and replayed against the fallback store. Records written to the
fallback during an outage stay there: nothing is reconciled back into the
primary automatically, so reads consult both stores.

``primary`` may be None, in which case the gateway runs in degraded mode on
the fallback alone.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Sequence

from errors import StoreUnavailableError
from infrastructure.storage.protocol import DocumentStore
from shared.logging import get_logger

log = get_logger(__name__)


class DocumentExistsError(Exception):
    """A co-created document's key is already taken in the target store."""

    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"{collection}/{key} already exists")
        self.collection = collection
        self.key = key


class StorageGateway:
    def __init__(
        self,
        primary: Optional[DocumentStore],
        fallback: DocumentStore,
        timeout: float = 2.0,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._timeout = timeout

    @property
    def degraded(self) -> bool:
        return self._primary is None

    async def _primary_call(self, method: str, *args, **kwargs) -> Any:
        return await asyncio.wait_for(
            getattr(self._primary, method)(*args, **kwargs), self._timeout
        )

    @staticmethod
    def _log_failure(event: str, collection: str, key: Optional[str], e: Exception) -> None:
        log.warning(
            event,
            collection=collection,
            key=key,
            error=str(e) or "timeout",
            error_type=type(e).__name__,
        )

    # ── Reads ────────────────────────────────────────────────────────────────

    async def get(self, collection: str, key: str) -> Optional[dict]:
        if self._primary is not None:
            try:
                document = await self._primary_call("get", collection, key)
                if document is not None:
                    return document
            except Exception as e:
                self._log_failure("primary_store_read_failed", collection, key, e)
        return await self._fallback.get(collection, key)

    async def exists(self, collection: str, key: str) -> bool:
        return await self.get(collection, key) is not None

    async def find(
        self,
        collection: str,
        filters: Mapping[str, Any],
        sort: Optional[tuple[str, int]] = None,
        *,
        strict: bool = False,
    ) -> list[tuple[str, dict]]:
        """Return matches from both stores; the primary wins on a key clash."""
        merged: dict[str, dict] = {}
        if self._primary is not None:
            try:
                for key, document in await self._primary_call(
                    "find", collection, filters, sort
                ):
                    merged[key] = document
            except Exception as e:
                if strict:
                    raise StoreUnavailableError("Storage is unavailable") from e
                self._log_failure("primary_store_query_failed", collection, None, e)
        for key, document in await self._fallback.find(collection, filters, sort):
            merged.setdefault(key, document)
        return list(merged.items())

    async def scan(self, collection: str, *, strict: bool = False) -> list[tuple[str, dict]]:
        """Return every document in *collection* from both stores.

        With *strict*, a primary failure raises StoreUnavailableError instead
        of silently answering from the fallback alone.
        """
        if self._primary is None and strict:
            raise StoreUnavailableError("Storage is unavailable")
        merged: dict[str, dict] = {}
        if self._primary is not None:
            try:
                for key, document in await self._primary_call("scan", collection):
                    merged[key] = document
            except Exception as e:
                if strict:
                    raise StoreUnavailableError("Storage is unavailable") from e
                self._log_failure("primary_store_scan_failed", collection, None, e)
        for key, document in await self._fallback.scan(collection):
            merged.setdefault(key, document)
        return list(merged.items())

    async def ping(self) -> bool:
        """Return True when the primary store answers within the timeout."""
        if self._primary is None:
            return False
        try:
            await self._primary_call("ping")
            return True
        except Exception as e:
            self._log_failure("primary_store_ping_failed", "-", None, e)
            return False

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create_together(
        self, items: Sequence[tuple[str, str, dict]]
    ) -> str:
        """Insert co-keyed documents into one store; return which one.

        The documents are never split across stores: a primary failure part
        way through rolls back what was written there before the whole set is
        written to the fallback. Raises DocumentExistsError if any key is
        already taken in the target store.
        """
        if self._primary is not None:
            written: list[tuple[str, str]] = []
            try:
                for collection, key, document in items:
                    if not await self._primary_call("set", collection, key, document):
                        await self._rollback(self._primary, written)
                        raise DocumentExistsError(collection, key)
                    written.append((collection, key))
                return "primary"
            except DocumentExistsError:
                raise
            except Exception as e:
                self._log_failure(
                    "primary_store_write_failed", items[0][0], items[0][1], e
                )
                await self._rollback(self._primary, written)

        written = []
        for collection, key, document in items:
            if not await self._fallback.set(collection, key, document):
                await self._rollback(self._fallback, written)
                raise DocumentExistsError(collection, key)
            written.append((collection, key))
        return "fallback"

    async def _rollback(
        self, store: DocumentStore, written: Sequence[tuple[str, str]]
    ) -> None:
        for collection, key in written:
            try:
                if store is self._primary:
                    await self._primary_call("delete", collection, key)
                else:
                    await store.delete(collection, key)
            except Exception as e:
                self._log_failure("store_rollback_failed", collection, key, e)

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
        """Apply an atomic update; return the updated document or None.

        A document missing from the primary is looked up in the fallback
        (records created during an outage live there). When the primary call
        fails, the same update is replayed on the fallback, seeded with
        *upsert_document* so the counters restart from a consistent record.
        """
        if self._primary is not None:
            try:
                document = await self._primary_call(
                    "update",
                    collection,
                    key,
                    increments=increments,
                    append=append,
                    append_limit=append_limit,
                )
            except Exception as e:
                self._log_failure("primary_store_update_failed", collection, key, e)
            else:
                if document is not None:
                    return document
                return await self._fallback.update(
                    collection,
                    key,
                    increments=increments,
                    append=append,
                    append_limit=append_limit,
                )

        return await self._fallback.update(
            collection,
            key,
            increments=increments,
            append=append,
            append_limit=append_limit,
            upsert_document=upsert_document,
        )

    async def delete_together(self, items: Sequence[tuple[str, str]]) -> bool:
        """Delete co-keyed documents from both stores.

        When the primary fails, documents that live in the fallback (created
        during an outage) are still deleted there. If the first document is
        not in the fallback it can only be primary-resident, and
        StoreUnavailableError is raised rather than reporting a delete that
        would be undone once the primary recovers.
        """
        deleted = False
        if self._primary is not None:
            try:
                for collection, key in items:
                    deleted = await self._primary_call("delete", collection, key) or deleted
            except Exception as e:
                self._log_failure("primary_store_delete_failed", items[0][0], items[0][1], e)
                if await self._fallback.get(items[0][0], items[0][1]) is None:
                    raise StoreUnavailableError("Storage is unavailable") from e
        for collection, key in items:
            deleted = await self._fallback.delete(collection, key) or deleted
        return deleted
