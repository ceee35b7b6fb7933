"""
Tests for ArchiveService.

The service is exercised against the memory repository for business
logic and against the filesystem repository where streaming from a
path matters.
"""

from datetime import date
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock

import anyio
import pytest
from pydantic import ValidationError
from starlette.responses import Response

from doc_archive.delivery import RangeFileServer
from doc_archive.domain import DocumentNotFoundError, StorageIOError
from doc_archive.repositories import (
    FileSystemDocumentRepository,
    MemoryDocumentRepository,
)
from doc_archive.use_cases import ArchiveService


async def _collect_body(response: Response) -> bytes:
    """Run an ASGI response and return the body it sends."""
    messages: List[dict] = []
    requested = False

    async def receive() -> dict:
        nonlocal requested
        if not requested:
            requested = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await anyio.sleep_forever()
        return {}

    async def send(message: dict) -> None:
        messages.append(message)

    await response({"type": "http", "method": "GET"}, receive, send)
    return b"".join(
        m.get("body", b"") for m in messages if m["type"] == "http.response.body"
    )


class TestArchiveService:
    """ArchiveService against the memory repository."""

    @pytest.fixture
    def document_repo(self) -> MemoryDocumentRepository:
        return MemoryDocumentRepository()

    @pytest.fixture
    def service(self, document_repo: MemoryDocumentRepository) -> ArchiveService:
        return ArchiveService(
            document_repo=document_repo,
            file_server=RangeFileServer(chunk_size=4),
        )

    async def _save(self, service: ArchiveService, **kwargs):
        values = {
            "content": b"hello world",
            "file_name": "hello.txt",
            "document_date": date(2024, 1, 15),
            "person_name": "Alice",
            "content_type": "text/plain",
        }
        values.update(kwargs)
        return await service.save(**values)

    @pytest.mark.asyncio
    async def test_save_assigns_id(
        self,
        service: ArchiveService,
        document_repo: MemoryDocumentRepository,
    ) -> None:
        metadata = await self._save(service)

        assert metadata.document_id in document_repo.storage_dict
        assert metadata.file_name == "hello.txt"
        assert metadata.person_name == "Alice"
        assert metadata.document_date == date(2024, 1, 15)
        assert metadata.content_type == "text/plain"

    @pytest.mark.asyncio
    async def test_save_twice_gives_two_documents(
        self, service: ArchiveService
    ) -> None:
        first = await self._save(service)
        second = await self._save(service)

        assert first.document_id != second.document_id
        assert len(await service.find_documents()) == 2

    @pytest.mark.asyncio
    async def test_save_rejects_path_in_file_name(
        self,
        service: ArchiveService,
        document_repo: MemoryDocumentRepository,
    ) -> None:
        with pytest.raises(ValidationError):
            await self._save(service, file_name="../../etc/passwd")

        assert document_repo.storage_dict == {}

    @pytest.mark.asyncio
    async def test_find_documents_passes_filters(
        self, service: ArchiveService
    ) -> None:
        alice = await self._save(service, person_name="Alice")
        await self._save(
            service, person_name="Bob", content_type="application/json"
        )

        assert await service.find_documents(person_name="Alice") == [alice]
        assert await service.find_documents(content_type="text") == [alice]
        assert (
            await service.find_documents(document_date=date(2000, 1, 1)) == []
        )

    @pytest.mark.asyncio
    async def test_get_document_file(self, service: ArchiveService) -> None:
        metadata = await self._save(service, content=b"payload")

        assert await service.get_document_file(metadata.document_id) == (
            b"payload"
        )

    @pytest.mark.asyncio
    async def test_get_document(self, service: ArchiveService) -> None:
        metadata = await self._save(service)

        document = await service.get_document(metadata.document_id)

        assert document.metadata == metadata
        assert document.read_bytes() == b"hello world"

    @pytest.mark.asyncio
    async def test_missing_document_raises(
        self, service: ArchiveService
    ) -> None:
        with pytest.raises(DocumentNotFoundError):
            await service.get_document_file("missing")
        with pytest.raises(DocumentNotFoundError):
            await service.get_document("missing")
        with pytest.raises(DocumentNotFoundError):
            await service.get_document_streamed("missing", {})
        with pytest.raises(DocumentNotFoundError):
            await service.delete_document("missing")

    @pytest.mark.asyncio
    async def test_streamed_from_memory(self, service: ArchiveService) -> None:
        metadata = await self._save(service)

        response = await service.get_document_streamed(
            metadata.document_id, {"range": "bytes=6-"}
        )

        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 6-10/11"
        assert await _collect_body(response) == b"world"

    @pytest.mark.asyncio
    async def test_delete_document(self, service: ArchiveService) -> None:
        metadata = await self._save(service)

        deleted = await service.delete_document(metadata.document_id)

        assert deleted == metadata.document_id
        assert await service.find_documents() == []
        with pytest.raises(DocumentNotFoundError):
            await service.get_document_file(metadata.document_id)

    @pytest.mark.asyncio
    async def test_storage_errors_propagate(self) -> None:
        document_repo = AsyncMock()
        document_repo.generate_id.return_value = (
            "5f0c8a52-0d47-4a39-8d2e-2a6f3b1c9e77"
        )
        document_repo.insert.side_effect = StorageIOError("disk full")
        service = ArchiveService(document_repo=document_repo)

        with pytest.raises(StorageIOError):
            await self._save(service)

        document_repo.insert.assert_awaited_once()


class TestArchiveServiceOnDisk:
    """Streaming behaviour with documents stored as files."""

    @pytest.fixture
    def document_repo(self, tmp_path: Path) -> FileSystemDocumentRepository:
        return FileSystemDocumentRepository(tmp_path / "archive")

    @pytest.fixture
    def service(
        self, document_repo: FileSystemDocumentRepository
    ) -> ArchiveService:
        return ArchiveService(document_repo=document_repo)

    @pytest.mark.asyncio
    async def test_streamed_from_file(self, service: ArchiveService) -> None:
        metadata = await service.save(
            content=b"hello world",
            file_name="hello.txt",
            document_date=date(2024, 1, 15),
            person_name="Alice",
            content_type="text/plain",
        )

        response = await service.get_document_streamed(
            metadata.document_id, {}
        )

        assert response.status_code == 200
        assert response.headers["content-length"] == "11"
        assert response.headers["content-type"] == "text/plain"
        assert await _collect_body(response) == b"hello world"

    @pytest.mark.asyncio
    async def test_head_request_has_no_body(
        self, service: ArchiveService
    ) -> None:
        metadata = await service.save(
            content=b"hello world",
            file_name="hello.txt",
            document_date=date(2024, 1, 15),
            person_name="Alice",
            content_type="text/plain",
        )

        response = await service.get_document_streamed(
            metadata.document_id, {}, method="HEAD"
        )

        assert response.headers["content-length"] == "11"
        assert await _collect_body(response) == b""

    @pytest.mark.asyncio
    async def test_missing_artifact_is_not_found(
        self,
        service: ArchiveService,
        document_repo: FileSystemDocumentRepository,
        tmp_path: Path,
    ) -> None:
        metadata = await service.save(
            content=b"short lived",
            file_name="gone.txt",
            document_date=date(2024, 1, 15),
            person_name="Alice",
            content_type="text/plain",
        )
        (tmp_path / "archive" / metadata.document_id / "gone.txt").unlink()

        with pytest.raises(DocumentNotFoundError):
            await service.get_document_streamed(metadata.document_id, {})
