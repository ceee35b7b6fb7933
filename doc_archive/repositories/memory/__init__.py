"""
Memory repository implementations for doc_archive.

These implementations use Python dictionaries for storage and are ideal
for testing scenarios where the filesystem should be avoided. They keep
the same async interface as the filesystem implementation.
"""

from .document import MemoryDocumentRepository

__all__ = ["MemoryDocumentRepository"]
