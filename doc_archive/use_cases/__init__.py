"""
Use cases of the document archive.
"""

from .archive import ArchiveService

__all__ = ["ArchiveService"]
