"""
Filesystem repository implementations for doc_archive.
"""

from .document import FileSystemDocumentRepository

__all__ = ["FileSystemDocumentRepository"]
