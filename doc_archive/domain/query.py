"""
Predicate-based matching of document metadata.

A query holds up to three optional filters. Absent filters are wildcards;
provided filters combine with AND:

- person name: exact string equality
- document date: equality at day granularity
- content type: case-insensitive substring containment, so ``"text"``
  matches ``"text/plain"`` but not ``"application/json"``

A record that could not be decoded (passed as None) never matches.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel

from .document import DocumentMetadata


class DocumentQuery(BaseModel):
    """Optional person/date/content-type filter over stored documents."""

    person_name: Optional[str] = None
    document_date: Optional[date] = None
    content_type: Optional[str] = None

    def matches(self, metadata: Optional[DocumentMetadata]) -> bool:
        if metadata is None:
            return False
        if (
            self.person_name is not None
            and metadata.person_name != self.person_name
        ):
            return False
        if (
            self.document_date is not None
            and metadata.document_date != self.document_date
        ):
            return False
        if self.content_type is not None:
            if metadata.content_type is None:
                return False
            if self.content_type.lower() not in metadata.content_type.lower():
                return False
        return True

    @property
    def is_wildcard(self) -> bool:
        return (
            self.person_name is None
            and self.document_date is None
            and self.content_type is None
        )


def matches(
    metadata: Optional[DocumentMetadata],
    person_name: Optional[str] = None,
    document_date: Optional[date] = None,
    content_type: Optional[str] = None,
) -> bool:
    """Evaluate the given filters against one metadata record."""
    query = DocumentQuery(
        person_name=person_name,
        document_date=document_date,
        content_type=content_type,
    )
    return query.matches(metadata)
