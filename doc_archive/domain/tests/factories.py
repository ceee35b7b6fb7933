"""
Test factories for creating domain objects using factory_boy.

Design decisions documented:
- Document ids are canonical UUID4 strings, as the filesystem store
  requires
- Documents carry small in-memory content by default
- Dates are fixed so that query tests can rely on them
"""

from datetime import date

from factory.base import Factory
from factory.declarations import LazyAttribute
from factory.faker import Faker

from doc_archive.domain import Document, DocumentMetadata


class DocumentMetadataFactory(Factory):
    """Factory for DocumentMetadata with sensible test defaults."""

    class Meta:
        model = DocumentMetadata

    document_id = Faker("uuid4")
    file_name = "report.txt"
    document_date = date(2024, 1, 15)
    person_name = Faker("name")
    content_type = "text/plain"


class DocumentFactory(Factory):
    """Factory for Document instances holding content in memory."""

    class Meta:
        model = Document

    document_id = Faker("uuid4")
    file_name = "report.txt"
    document_date = date(2024, 1, 15)
    person_name = Faker("name")
    content_type = "text/plain"
    content = LazyAttribute(lambda o: f"Content of {o.file_name}".encode())
