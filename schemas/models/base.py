"""
Base model for all stored document models.

Documents are keyed by short code (the store key), so models carry no
``_id`` field. Field names are snake_case in Python and camelCase in the
stored/serialized form, matching the JSON the dashboard consumes.

to_document()  converts model → dict suitable for a DocumentStore write
from_document() converts a raw stored dict → model instance (returns None
                   gracefully when passed None)
"""

from __future__ import annotations

from typing import Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DocT = TypeVar("DocT", bound="DocumentModel")


class DocumentModel(BaseModel):
    """Base for all document models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        """Return a JSON-compatible dict using the camelCase field aliases."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_document(cls: type[DocT], data: Optional[dict]) -> Optional[DocT]:
        """Build a model instance from a raw stored document dict.

        Returns None when data is None (e.g. the key does not exist).
        Missing optional fields are filled with their defaults.
        """
        if data is None:
            return None
        return cls.model_validate(data)
