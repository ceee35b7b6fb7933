"""
Document repository interface defined as Protocol.

This module defines the document-store capability set. Any backend that
satisfies it (the local filesystem, memory, or an object store) can be
used by the archive use case without touching callers.

All repository operations follow these principles:

- **Immutability**: Documents are never updated. A document is inserted
  once and then only read or deleted.

- **All-or-nothing visibility**: A document is either fully visible (its
  content and metadata both readable) or not visible at all, during
  insert and during delete.

- **Not found is not an error for reads**: ``load`` and ``load_with_path``
  return None for a missing document. ``delete`` raises
  DocumentNotFoundError so that callers can report it distinctly from a
  storage failure.

- **Storage failures propagate**: Backend errors surface as
  StorageIOError and are never retried.
"""

from datetime import date
from typing import List, Optional, Protocol, runtime_checkable

from doc_archive.domain import Document, DocumentMetadata


@runtime_checkable
class DocumentRepository(Protocol):
    """Handles document storage, lookup and removal."""

    async def generate_id(self) -> str:
        """Generate a unique document identifier.

        Returns:
            A random UUID4 string, never reused by the store
        """
        ...

    async def insert(self, document: Document) -> DocumentMetadata:
        """Store a new document with its content and metadata.

        Args:
            document: Document with ``content`` bytes or a ``path`` to copy
                from, and an id obtained from generate_id. Ids come only
                from generate_id, which never hands out an id that was
                used before, so a deleted id is never stored again.

        Returns:
            The metadata of the stored document

        Raises:
            DocumentExistsError: If a document with the same id is stored
            StorageIOError: If the backend write fails. The document is
                then not visible.
        """
        ...

    async def load(self, document_id: str) -> Optional[Document]:
        """Retrieve a document with its full content in memory.

        Returns:
            Document with ``content`` set, None if not found
        """
        ...

    async def load_with_path(self, document_id: str) -> Optional[Document]:
        """Retrieve a document with a path reference to its content.

        Used for streaming: backends that keep files on disk return the
        artifact path without reading it. Backends without files return
        the content bytes instead.

        Returns:
            Document with ``path`` (or ``content``) set, None if not found
        """
        ...

    async def find(
        self,
        person_name: Optional[str] = None,
        document_date: Optional[date] = None,
        content_type: Optional[str] = None,
    ) -> List[DocumentMetadata]:
        """Find the metadata of documents matching all given filters.

        Absent filters match everything. The order of results is not
        specified and may differ between calls. Records that cannot be
        decoded are skipped.
        """
        ...

    async def delete(self, document_id: str) -> str:
        """Remove a document and all of its artifacts.

        Returns:
            The id of the deleted document

        Raises:
            DocumentNotFoundError: If no document has the given id
            StorageIOError: If the backend removal fails
        """
        ...
