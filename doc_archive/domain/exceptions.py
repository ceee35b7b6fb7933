"""
Exceptions raised by the document archive.

Callers at the HTTP boundary map these onto status codes: a missing
document must stay distinguishable from a storage failure so that the
right response code can be chosen for each.
"""


class ArchiveError(Exception):
    """Base class for all archive errors"""

    pass


class DocumentNotFoundError(ArchiveError):
    """Raised when no document exists with the requested id"""

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class DocumentExistsError(ArchiveError):
    """Raised when inserting a document whose id is already stored"""

    def __init__(self, document_id: str):
        super().__init__(f"Document already exists: {document_id}")
        self.document_id = document_id


class StorageIOError(ArchiveError):
    """Raised when reading or writing the backing store fails"""

    pass


class MetadataDecodeError(ArchiveError):
    """Raised when a stored metadata record cannot be decoded"""

    pass
