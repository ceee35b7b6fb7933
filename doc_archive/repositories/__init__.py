"""
Repository interfaces and implementations.

Implementation packages:
- filesystem: directory-per-document store, used in production
- memory: in-memory implementation for testing
"""

from .document import DocumentRepository
from .filesystem import FileSystemDocumentRepository
from .memory import MemoryDocumentRepository

__all__ = [
    "DocumentRepository",
    "FileSystemDocumentRepository",
    "MemoryDocumentRepository",
]
