"""
Filesystem implementation of DocumentRepository.

Documents are stored in an ordinary directory tree, no database involved.
Each document gets a directory named by its UUID under the store root. The
directory holds the content artifact under its original file name and a
``metadata.properties`` record with the descriptive fields::

    <root>/<id>/<original file name>
    <root>/<id>/metadata.properties

Insert writes both artifacts into a hidden staging directory and renames
it into place once both writes succeeded, so readers never observe a
document with only one of its artifacts. Delete renames the document
directory to a hidden tombstone before removing it, so a document is
either fully present or gone. Staging and tombstone directories older than
a grace period are treated as leftovers of an interrupted process and
removed when a repository is constructed; younger ones may belong to
another process still at work and are left alone. Hidden entries (names
starting with ``.``) are never reported as documents.
"""

import logging
import os
import secrets
import shutil
import time
import uuid
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from doc_archive.domain import (
    Document,
    DocumentExistsError,
    DocumentMetadata,
    DocumentNotFoundError,
    DocumentQuery,
    METADATA_FILE_NAME,
    MetadataDecodeError,
    StorageIOError,
)
from doc_archive.domain import metadata_codec
from doc_archive.repositories.document import DocumentRepository

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"
DELETED_PREFIX = ".deleted-"
LEFTOVER_GRACE_SECONDS = 3600


def is_document_id(value: str) -> bool:
    """True if value is a canonical UUID string, as used for directories."""
    try:
        return str(uuid.UUID(value)) == value
    except (ValueError, TypeError, AttributeError):
        return False


class FileSystemDocumentRepository(DocumentRepository):
    """
    Filesystem implementation of DocumentRepository.

    The store root is fixed at construction. It is created if missing, and
    staging or tombstone directories untouched for ``leftover_grace``
    seconds are removed as remains of an interrupted insert or delete.
    """

    def __init__(
        self,
        root: Union[str, Path],
        leftover_grace: float = LEFTOVER_GRACE_SECONDS,
    ):
        self.root = Path(root)
        self.leftover_grace = leftover_grace
        logger.debug(
            "Initializing FileSystemDocumentRepository",
            extra={"archive_root": str(self.root)},
        )
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._remove_leftovers()
        except OSError as e:
            logger.error(
                "Failed to prepare archive directory",
                extra={"archive_root": str(self.root), "error": str(e)},
                exc_info=True,
            )
            raise StorageIOError(
                f"Cannot prepare archive directory {self.root}"
            ) from e

    def _remove_leftovers(self) -> None:
        cutoff = time.time() - self.leftover_grace
        with os.scandir(self.root) as entries:
            candidates = [
                entry
                for entry in entries
                if entry.name.startswith((STAGING_PREFIX, DELETED_PREFIX))
            ]
        for entry in candidates:
            try:
                if entry.stat(follow_symlinks=False).st_mtime > cutoff:
                    logger.debug(
                        "Keeping recent staging directory",
                        extra={"path": entry.path},
                    )
                    continue
                logger.info(
                    "Removing leftover archive directory",
                    extra={"path": entry.path},
                )
                shutil.rmtree(entry.path)
            except FileNotFoundError:
                # finished or removed by its owner meanwhile
                continue

    def _document_dir(self, document_id: str) -> Optional[Path]:
        if not is_document_id(document_id):
            return None
        return self.root / document_id

    async def generate_id(self) -> str:
        """Generate a unique document identifier (random UUID4)."""
        return str(uuid.uuid4())

    async def insert(self, document: Document) -> DocumentMetadata:
        """Store a new document directory with content and metadata."""
        document_id = document.document_id
        target = self._document_dir(document_id)
        if target is None:
            raise ValueError(f"Invalid document id: {document_id!r}")

        logger.info(
            "FileSystemDocumentRepository: Storing document",
            extra={
                "document_id": document_id,
                "file_name": document.file_name,
                "content_type": document.content_type,
            },
        )

        if target.exists():
            raise DocumentExistsError(document_id)

        metadata = document.metadata
        staging = self.root / f"{STAGING_PREFIX}{document_id}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            staging.mkdir()
            try:
                self._write_content(document, staging / document.file_name)
                (staging / METADATA_FILE_NAME).write_bytes(
                    metadata_codec.to_bytes(metadata)
                )
                os.rename(staging, target)
            except Exception:
                shutil.rmtree(staging, ignore_errors=True)
                raise
        except OSError as e:
            logger.error(
                "FileSystemDocumentRepository: Failed to store document",
                extra={
                    "document_id": document_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise StorageIOError(
                f"Error while inserting document {document_id}"
            ) from e

        logger.info(
            "FileSystemDocumentRepository: Document stored successfully",
            extra={"document_id": document_id, "path": str(target)},
        )
        return metadata

    def _write_content(self, document: Document, destination: Path) -> None:
        if document.content is not None:
            destination.write_bytes(document.content)
        elif document.path is not None:
            shutil.copyfile(document.path, destination)
        else:
            raise ValueError(
                f"Document {document.document_id} has neither content nor path"
            )

    def _read_metadata(self, document_id: str) -> Optional[DocumentMetadata]:
        """Read and decode one metadata record.

        Returns None when the document or its record is missing, or when
        the record cannot be decoded.
        """
        directory = self._document_dir(document_id)
        if directory is None:
            return None
        try:
            data = (directory / METADATA_FILE_NAME).read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            logger.error(
                "FileSystemDocumentRepository: Failed to read metadata",
                extra={"document_id": document_id, "error": str(e)},
                exc_info=True,
            )
            raise StorageIOError(
                f"Error while reading metadata of document {document_id}"
            ) from e

        try:
            metadata = metadata_codec.from_bytes(data)
        except MetadataDecodeError as e:
            logger.error(
                "FileSystemDocumentRepository: Skipping undecodable metadata",
                extra={"document_id": document_id, "error": str(e)},
            )
            return None

        if metadata.document_id != document_id:
            logger.warning(
                "FileSystemDocumentRepository: Metadata id differs from "
                "directory name, using directory name",
                extra={
                    "document_id": document_id,
                    "metadata_id": metadata.document_id,
                },
            )
            metadata = metadata.model_copy(
                update={"document_id": document_id}
            )
        return metadata

    def _artifact_path(self, metadata: DocumentMetadata) -> Path:
        return self.root / metadata.document_id / metadata.file_name

    async def load(self, document_id: str) -> Optional[Document]:
        """Retrieve a document with its content read into memory."""
        metadata = self._read_metadata(document_id)
        if metadata is None:
            logger.debug(
                "FileSystemDocumentRepository: Document not found",
                extra={"document_id": document_id},
            )
            return None

        try:
            content = self._artifact_path(metadata).read_bytes()
        except FileNotFoundError:
            # removed between reading the record and the artifact
            logger.debug(
                "FileSystemDocumentRepository: Document content missing",
                extra={"document_id": document_id},
            )
            return None
        except OSError as e:
            logger.error(
                "FileSystemDocumentRepository: Failed to read document",
                extra={"document_id": document_id, "error": str(e)},
                exc_info=True,
            )
            raise StorageIOError(
                f"Error while loading document with id: {document_id}"
            ) from e

        return Document.from_metadata(metadata, content=content)

    async def load_with_path(self, document_id: str) -> Optional[Document]:
        """Retrieve a document with the path of its content artifact."""
        metadata = self._read_metadata(document_id)
        if metadata is None:
            return None
        path = self._artifact_path(metadata)
        if not path.is_file():
            logger.debug(
                "FileSystemDocumentRepository: Document content missing",
                extra={"document_id": document_id, "path": str(path)},
            )
            return None
        return Document.from_metadata(metadata, path=path)

    async def find(
        self,
        person_name: Optional[str] = None,
        document_date: Optional[date] = None,
        content_type: Optional[str] = None,
    ) -> List[DocumentMetadata]:
        """Scan every document directory and collect matching metadata."""
        query = DocumentQuery(
            person_name=person_name,
            document_date=document_date,
            content_type=content_type,
        )
        try:
            with os.scandir(self.root) as entries:
                document_ids = [
                    entry.name
                    for entry in entries
                    if not entry.name.startswith(".") and entry.is_dir()
                ]
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error(
                "FileSystemDocumentRepository: Failed to list archive",
                extra={"archive_root": str(self.root), "error": str(e)},
                exc_info=True,
            )
            raise StorageIOError(
                f"Error while finding documents, person name: {person_name}, "
                f"date: {document_date}"
            ) from e

        results = []
        for document_id in document_ids:
            metadata = self._read_metadata(document_id)
            if metadata is not None and query.matches(metadata):
                results.append(metadata)

        logger.debug(
            "FileSystemDocumentRepository: Find completed",
            extra={
                "query": query.model_dump(mode="json"),
                "wildcard": query.is_wildcard,
                "scanned": len(document_ids),
                "matched": len(results),
            },
        )
        return results

    async def delete(self, document_id: str) -> str:
        """Remove the document directory and everything in it."""
        directory = self._document_dir(document_id)
        if directory is None:
            raise DocumentNotFoundError(document_id)

        tombstone = (
            self.root / f"{DELETED_PREFIX}{document_id}-{secrets.token_hex(4)}"
        )
        try:
            os.rename(directory, tombstone)
        except FileNotFoundError:
            raise DocumentNotFoundError(document_id) from None
        except OSError as e:
            logger.error(
                "FileSystemDocumentRepository: Failed to delete document",
                extra={"document_id": document_id, "error": str(e)},
                exc_info=True,
            )
            raise StorageIOError(
                f"Error while deleting document {document_id}"
            ) from e

        try:
            shutil.rmtree(tombstone)
        except OSError as e:
            # the document is already gone; a later start removes the
            # tombstone once it is past the grace period
            logger.warning(
                "FileSystemDocumentRepository: Failed to remove tombstone",
                extra={"path": str(tombstone), "error": str(e)},
            )

        logger.info(
            "FileSystemDocumentRepository: Document deleted",
            extra={"document_id": document_id},
        )
        return document_id
