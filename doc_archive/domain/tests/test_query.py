"""
Tests for DocumentQuery matching.
"""

from datetime import date

import pytest
from hypothesis import given, strategies as st

from doc_archive.domain import DocumentQuery
from doc_archive.domain.query import matches
from .factories import DocumentMetadataFactory


class TestDocumentQuery:
    """Filter semantics of DocumentQuery.matches."""

    def test_person_name_is_exact(self) -> None:
        metadata = DocumentMetadataFactory.build(person_name="Alice")

        assert DocumentQuery(person_name="Alice").matches(metadata)
        assert not DocumentQuery(person_name="alice").matches(metadata)
        assert not DocumentQuery(person_name="Ali").matches(metadata)

    def test_document_date_equality(self) -> None:
        metadata = DocumentMetadataFactory.build(document_date=date(2024, 1, 15))

        assert DocumentQuery(document_date=date(2024, 1, 15)).matches(metadata)
        assert not DocumentQuery(document_date=date(2024, 1, 16)).matches(
            metadata
        )

    def test_content_type_is_substring(self) -> None:
        text = DocumentMetadataFactory.build(content_type="text/plain")
        json = DocumentMetadataFactory.build(content_type="application/json")
        query = DocumentQuery(content_type="text")

        assert query.matches(text)
        assert not query.matches(json)

    def test_content_type_ignores_case(self) -> None:
        metadata = DocumentMetadataFactory.build(content_type="Application/PDF")

        assert DocumentQuery(content_type="pdf").matches(metadata)
        assert DocumentQuery(content_type="APPLICATION/pdf").matches(metadata)

    def test_missing_content_type_fails_that_filter(self) -> None:
        metadata = DocumentMetadataFactory.build(content_type=None)

        assert not DocumentQuery(content_type="text").matches(metadata)
        assert DocumentQuery().matches(metadata)

    def test_missing_date_fails_date_filter(self) -> None:
        metadata = DocumentMetadataFactory.build(document_date=None)

        assert not DocumentQuery(document_date=date(2024, 1, 15)).matches(
            metadata
        )

    def test_filters_combine_with_and(self) -> None:
        metadata = DocumentMetadataFactory.build(
            person_name="Alice",
            document_date=date(2024, 1, 15),
            content_type="text/plain",
        )

        assert DocumentQuery(
            person_name="Alice",
            document_date=date(2024, 1, 15),
            content_type="plain",
        ).matches(metadata)
        assert not DocumentQuery(
            person_name="Alice", content_type="json"
        ).matches(metadata)

    def test_undecodable_record_never_matches(self) -> None:
        assert not DocumentQuery().matches(None)
        assert not matches(None, person_name="Alice")

    @pytest.mark.parametrize(
        "query,expected",
        [
            (DocumentQuery(), True),
            (DocumentQuery(person_name="Alice"), False),
            (DocumentQuery(content_type=""), False),
        ],
    )
    def test_is_wildcard(self, query: DocumentQuery, expected: bool) -> None:
        assert query.is_wildcard is expected

    def test_module_level_matches(self) -> None:
        metadata = DocumentMetadataFactory.build(person_name="Bob")

        assert matches(metadata, person_name="Bob", content_type="text")
        assert not matches(metadata, person_name="Alice")


@given(
    person=st.text(max_size=20),
    content_type=st.text(max_size=30),
    day=st.dates(),
)
def test_wildcard_matches_every_record(
    person: str, content_type: str, day: date
) -> None:
    metadata = DocumentMetadataFactory.build(
        person_name=person, content_type=content_type, document_date=day
    )

    assert DocumentQuery().matches(metadata)


@given(content_type=st.text(min_size=1, max_size=30))
def test_content_type_matches_itself(content_type: str) -> None:
    metadata = DocumentMetadataFactory.build(content_type=content_type)

    assert DocumentQuery(content_type=content_type).matches(metadata)
