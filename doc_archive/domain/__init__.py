"""
Domain layer for doc_archive.

This package contains the document models, the metadata record codec, the
query matcher and the archive exceptions. None of it touches the
filesystem or HTTP.
"""

from .document import Document, DocumentMetadata, METADATA_FILE_NAME
from .exceptions import (
    ArchiveError,
    DocumentExistsError,
    DocumentNotFoundError,
    MetadataDecodeError,
    StorageIOError,
)
from .query import DocumentQuery

__all__ = [
    "ArchiveError",
    "Document",
    "DocumentExistsError",
    "DocumentMetadata",
    "DocumentNotFoundError",
    "DocumentQuery",
    "METADATA_FILE_NAME",
    "MetadataDecodeError",
    "StorageIOError",
]
