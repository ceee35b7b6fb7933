"""
Document domain models for the document archive.

A document is a binary payload plus the descriptive fields it was filed
under: the person it belongs to, the date of the document and its content
type. The payload is available either as bytes held in memory or as a path
to the stored artifact; both are views of the same content and are
excluded from JSON serialization.

DocumentMetadata is the lightweight, queryable projection of a document
without its payload. Its fields are optional beyond the identity and file
name because records read back from storage may have lost a value (for
example a date that no longer parses).
"""

from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

METADATA_FILE_NAME = "metadata.properties"


def _check_file_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("File name cannot be empty")
    if "/" in v or "\\" in v or "\x00" in v:
        raise ValueError("File name must not contain path separators")
    if v in (".", "..", METADATA_FILE_NAME):
        raise ValueError(f"File name {v!r} is reserved")
    return v


class DocumentMetadata(BaseModel):
    """Descriptive fields of a stored document, without its content."""

    document_id: str
    file_name: str
    document_date: Optional[date] = None
    person_name: Optional[str] = None
    content_type: Optional[str] = None

    @field_validator("file_name")
    @classmethod
    def file_name_must_be_plain(cls, v: str) -> str:
        return _check_file_name(v)


class Document(BaseModel):
    """Complete document entity including content and metadata.

    Content is provided either as ``content`` bytes (uploads and full
    loads) or as a ``path`` to the stored artifact (streaming loads, which
    avoid reading the whole file into memory). At least one of the two
    must be set.
    """

    document_id: str
    file_name: str
    document_date: date
    person_name: str
    content_type: str

    content: Optional[bytes] = Field(default=None, exclude=True, repr=False)
    path: Optional[Path] = Field(default=None, exclude=True)

    @field_validator("file_name")
    @classmethod
    def file_name_must_be_plain(cls, v: str) -> str:
        return _check_file_name(v)

    @model_validator(mode="after")
    def content_or_path_required(self) -> "Document":
        if self.content is None and self.path is None:
            raise ValueError(
                f"Document {self.document_id} has neither content nor path. "
                "Provide one."
            )
        return self

    @property
    def metadata(self) -> DocumentMetadata:
        """The queryable projection of this document."""
        return DocumentMetadata(
            document_id=self.document_id,
            file_name=self.file_name,
            document_date=self.document_date,
            person_name=self.person_name,
            content_type=self.content_type,
        )

    @classmethod
    def from_metadata(
        cls,
        metadata: DocumentMetadata,
        content: Optional[bytes] = None,
        path: Optional[Path] = None,
    ) -> "Document":
        """Rebuild a document from stored metadata and one content view.

        Stored records may be missing optional values; the model is built
        with ``model_construct`` for those fields so that a document with a
        corrupt date can still be loaded and streamed.
        """
        return cls.model_construct(
            document_id=metadata.document_id,
            file_name=metadata.file_name,
            document_date=metadata.document_date,
            person_name=metadata.person_name,
            content_type=metadata.content_type,
            content=content,
            path=path,
        )

    def read_bytes(self) -> bytes:
        """Return the payload from whichever view is present."""
        if self.content is not None:
            return self.content
        if self.path is None:
            raise ValueError(f"Document {self.document_id} has no payload")
        return self.path.read_bytes()

    @property
    def size_bytes(self) -> int:
        if self.content is not None:
            return len(self.content)
        if self.path is None:
            raise ValueError(f"Document {self.document_id} has no payload")
        return self.path.stat().st_size
