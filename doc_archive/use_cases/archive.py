"""
Use case logic for saving, finding, fetching and deleting archived
documents.

ArchiveService composes a DocumentRepository (persistence and queries)
with a RangeFileServer (streaming) and exposes the operations the HTTP
layer and the command line call. It works on primitives and domain
objects only; decoding uploads and mapping errors onto status codes is
left to the callers.
"""

import logging
from datetime import date
from typing import List, Mapping, Optional

from starlette.responses import Response

from doc_archive.delivery import FileResource, RangeFileServer
from doc_archive.domain import (
    Document,
    DocumentMetadata,
    DocumentNotFoundError,
)
from doc_archive.repositories import DocumentRepository

logger = logging.getLogger(__name__)


class ArchiveService:
    """
    Service to save, find, get and delete documents of an archive.

    Repository and file server are injected, so the same service runs
    against the filesystem store in production and the memory store in
    tests.
    """

    def __init__(
        self,
        document_repo: DocumentRepository,
        file_server: Optional[RangeFileServer] = None,
    ) -> None:
        self.document_repo = document_repo
        self.file_server = file_server or RangeFileServer()

    async def save(
        self,
        content: bytes,
        file_name: str,
        document_date: date,
        person_name: str,
        content_type: str,
    ) -> DocumentMetadata:
        """Store a new document. The id is assigned by the repository.

        Raises:
            pydantic.ValidationError: If the file name is not a plain name
            StorageIOError: If the document cannot be written
        """
        document_id = await self.document_repo.generate_id()
        document = Document(
            document_id=document_id,
            file_name=file_name,
            document_date=document_date,
            person_name=person_name,
            content_type=content_type,
            content=content,
        )
        metadata = await self.document_repo.insert(document)
        logger.info(
            "Document saved",
            extra={
                "document_id": document_id,
                "file_name": file_name,
                "content_length": len(content),
            },
        )
        return metadata

    async def find_documents(
        self,
        person_name: Optional[str] = None,
        document_date: Optional[date] = None,
        content_type: Optional[str] = None,
    ) -> List[DocumentMetadata]:
        """Find documents matching all given filters."""
        return await self.document_repo.find(
            person_name=person_name,
            document_date=document_date,
            content_type=content_type,
        )

    async def get_document_file(self, document_id: str) -> bytes:
        """Return the full content of a document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self.document_repo.load(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document.read_bytes()

    async def get_document(self, document_id: str) -> Document:
        """Return a document with its content loaded.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self.document_repo.load(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def get_document_streamed(
        self,
        document_id: str,
        request_headers: Mapping[str, str],
        method: str = "GET",
    ) -> Response:
        """Build a range-aware streaming response for a document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self.document_repo.load_with_path(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)

        if document.path is not None:
            try:
                resource = FileResource.from_path(
                    document.path,
                    content_type=document.content_type,
                    file_name=document.file_name,
                )
            except FileNotFoundError:
                # deleted after the lookup
                raise DocumentNotFoundError(document_id) from None
        else:
            resource = FileResource.from_bytes(
                document.read_bytes(),
                content_type=document.content_type,
                file_name=document.file_name,
            )

        logger.debug(
            "Streaming document",
            extra={"document_id": document_id, "length": resource.length},
        )
        return self.file_server.serve(resource, request_headers, method)

    async def delete_document(self, document_id: str) -> str:
        """Delete a document.

        Returns:
            The id of the deleted document

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        deleted = await self.document_repo.delete(document_id)
        logger.info("Document deleted", extra={"document_id": deleted})
        return deleted
