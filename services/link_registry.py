"""
Link registry: create, look up, list and delete short links.

A link and its empty analytics record are always created together in the
same store and deleted together. Short codes are never reassigned while the
link that owns them exists.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence

from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from infrastructure.identity.protocol import Identity
from infrastructure.storage.gateway import DocumentExistsError, StorageGateway
from infrastructure.storage.protocol import ANALYTICS, LINKS
from schemas.models.analytics import new_analytics_document
from schemas.models.link import LinkDoc, UtmParams
from shared.datetime_utils import parse_datetime, utc_now
from shared.generators import generate_short_code
from shared.logging import get_logger
from shared.utm import apply_utm_params, parse_utm_params
from shared.validators import custom_code_error, validate_url

log = get_logger(__name__)

MAX_GENERATION_ATTEMPTS = 5

_SUMMARY_FIELDS = ("impressions", "clicks", "shares", "devices", "browsers", "referrers")


def analytics_summary(record: Optional[dict]) -> dict[str, Any]:
    """Counters and breakdown maps of an analytics record, without history."""
    record = record or {}
    summary: dict[str, Any] = {}
    for field in _SUMMARY_FIELDS:
        default: Any = {} if field in ("devices", "browsers", "referrers") else 0
        summary[field] = record.get(field, default)
    return summary


class LinkRegistry:
    def __init__(
        self,
        gateway: StorageGateway,
        code_length: int = 7,
        blocked_domains: Sequence[str] = (),
        reserved_codes: Iterable[str] = (),
    ) -> None:
        self._gateway = gateway
        self._code_length = code_length
        self._blocked_domains = tuple(blocked_domains)
        self._reserved_codes = frozenset(code.lower() for code in reserved_codes)

    async def create(
        self,
        url: str,
        owner: Identity,
        base_url: str,
        custom_code: Optional[str] = None,
        utm_params: Optional[Mapping[str, str]] = None,
    ) -> LinkDoc:
        """Create a link and its empty analytics record.

        Raises:
            ValidationError: invalid URL, or a malformed or reserved custom code.
            ConflictError: the custom code is already taken.
        """
        url = (url or "").strip()
        if not url:
            raise ValidationError("URL is required", field="url")
        if not validate_url(url, self._blocked_domains):
            raise ValidationError("Invalid URL", field="url")

        custom = custom_code.strip() if custom_code else None
        if custom is not None:
            message = custom_code_error(custom, self._reserved_codes)
            if message:
                raise ValidationError(message, field="customShortCode")

        final_url = apply_utm_params(url, utm_params or {})
        base_url = base_url.rstrip("/")

        attempts = 1 if custom is not None else MAX_GENERATION_ATTEMPTS
        for attempt in range(1, attempts + 1):
            short_code = custom if custom is not None else generate_short_code(self._code_length)
            if short_code.lower() in self._reserved_codes:
                continue
            if await self._gateway.exists(LINKS, short_code):
                if custom is not None:
                    raise ConflictError(
                        "This custom short code is already taken",
                        field="customShortCode",
                    )
                log.info("short_code_collision", short_code=short_code, attempt=attempt)
                continue

            link = LinkDoc(
                short_code=short_code,
                original_url=final_url,
                short_url=f"{base_url}/{short_code}",
                user_id=owner.user_id,
                user_email=owner.email,
                created_at=utc_now(),
                utm_params=UtmParams(**parse_utm_params(final_url)),
                is_custom=custom is not None,
            )
            try:
                store = await self._gateway.create_together(
                    [
                        (LINKS, short_code, link.to_document()),
                        (ANALYTICS, short_code, new_analytics_document()),
                    ]
                )
            except DocumentExistsError:
                if custom is not None:
                    raise ConflictError(
                        "This custom short code is already taken",
                        field="customShortCode",
                    )
                log.info("short_code_collision", short_code=short_code, attempt=attempt)
                continue

            log.info(
                "link_created",
                short_code=short_code,
                user_id=owner.user_id,
                is_custom=link.is_custom,
                store=store,
            )
            return link

        log.error("short_code_generation_exhausted", attempts=attempts)
        raise ConflictError("Could not allocate a unique short code, please retry")

    async def lookup(self, short_code: str) -> Optional[LinkDoc]:
        return LinkDoc.from_document(await self._gateway.get(LINKS, short_code))

    async def list_by_owner(self, user_id: str) -> list[dict[str, Any]]:
        """Return the owner's links, newest first, each with an analytics summary."""
        rows = await self._gateway.find(
            LINKS, {"userId": user_id}, sort=("createdAt", -1)
        )
        links: list[dict[str, Any]] = []
        for short_code, document in rows:
            record = await self._gateway.get(ANALYTICS, short_code)
            links.append({**document, "analytics": analytics_summary(record)})

        def created_at(item: dict) -> float:
            moment = parse_datetime(item.get("createdAt"))
            return moment.timestamp() if moment else 0.0

        # Results merge two stores, so order is always applied here
        links.sort(key=created_at, reverse=True)
        return links

    async def delete(self, short_code: str, requester_id: str) -> None:
        """Delete a link and its analytics record.

        Raises:
            NotFoundError: no such link.
            ForbiddenError: *requester_id* does not own the link.
            StoreUnavailableError: the durable store holds the link but
                rejected the delete.
        """
        document = await self._gateway.get(LINKS, short_code)
        if document is None:
            raise NotFoundError("Link not found")
        if document.get("userId") != requester_id:
            log.warning(
                "link_delete_forbidden", short_code=short_code, requester_id=requester_id
            )
            raise ForbiddenError("You do not have permission to delete this link")

        await self._gateway.delete_together([(LINKS, short_code), (ANALYTICS, short_code)])
        log.info("link_deleted", short_code=short_code, user_id=requester_id)
