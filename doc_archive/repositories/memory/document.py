"""
Memory implementation of DocumentRepository.

This module provides an in-memory implementation of the DocumentRepository
protocol. Documents are kept as metadata plus content bytes in a
dictionary keyed by document id, which makes it a lightweight,
dependency-free option for tests of code that depends on the protocol.
"""

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional, Tuple

from doc_archive.domain import (
    Document,
    DocumentExistsError,
    DocumentMetadata,
    DocumentNotFoundError,
    DocumentQuery,
)
from doc_archive.repositories.document import DocumentRepository

logger = logging.getLogger(__name__)


class MemoryDocumentRepository(DocumentRepository):
    """
    Memory implementation of DocumentRepository using a Python dictionary.

    There are no files, so load_with_path returns documents carrying
    their content bytes.
    """

    def __init__(self) -> None:
        """Initialize repository with empty in-memory storage."""
        self.storage_dict: Dict[str, Tuple[DocumentMetadata, bytes]] = {}
        logger.debug("Initializing MemoryDocumentRepository")

    async def generate_id(self) -> str:
        return str(uuid.uuid4())

    async def insert(self, document: Document) -> DocumentMetadata:
        if document.document_id in self.storage_dict:
            raise DocumentExistsError(document.document_id)
        metadata = document.metadata
        self.storage_dict[document.document_id] = (
            metadata,
            document.read_bytes(),
        )
        logger.debug(
            "MemoryDocumentRepository: Document stored",
            extra={
                "document_id": document.document_id,
                "content_length": document.size_bytes,
            },
        )
        return metadata

    async def load(self, document_id: str) -> Optional[Document]:
        stored = self.storage_dict.get(document_id)
        if stored is None:
            return None
        metadata, content = stored
        return Document.from_metadata(metadata, content=content)

    async def load_with_path(self, document_id: str) -> Optional[Document]:
        return await self.load(document_id)

    async def find(
        self,
        person_name: Optional[str] = None,
        document_date: Optional[date] = None,
        content_type: Optional[str] = None,
    ) -> List[DocumentMetadata]:
        query = DocumentQuery(
            person_name=person_name,
            document_date=document_date,
            content_type=content_type,
        )
        return [
            metadata
            for metadata, _ in self.storage_dict.values()
            if query.matches(metadata)
        ]

    async def delete(self, document_id: str) -> str:
        if self.storage_dict.pop(document_id, None) is None:
            raise DocumentNotFoundError(document_id)
        logger.debug(
            "MemoryDocumentRepository: Document deleted",
            extra={"document_id": document_id},
        )
        return document_id
