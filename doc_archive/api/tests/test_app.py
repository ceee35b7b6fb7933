"""
Tests for the doc_archive FastAPI application.

These run the application as assembled by create_app, with the
dependency container configured for a temporary archive directory.
"""

from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from doc_archive import __version__
from doc_archive.api import dependencies
from doc_archive.api.app import create_app
from doc_archive.config import ArchiveConfig
from doc_archive.repositories import FileSystemDocumentRepository


@pytest.fixture
def config(tmp_path: Path) -> ArchiveConfig:
    return ArchiveConfig(root=tmp_path / "archive")


@pytest.fixture
def client(config: ArchiveConfig) -> Generator[TestClient, None, None]:
    """Create a test client for an app configured with a temporary root."""
    dependencies.configure(config)

    with TestClient(create_app()) as test_client:
        yield test_client

    dependencies._container.reset()


class TestHealthEndpoint:
    """Test the health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert "timestamp" in data


class TestAssembledApp:
    """The production wiring from configuration to filesystem."""

    def test_upload_lands_in_configured_root(
        self, client: TestClient, config: ArchiveConfig
    ) -> None:
        response = client.post(
            "/archive/upload",
            files={"file": ("note.txt", b"remember", "text/plain")},
            data={"person": "Dana", "date": "2024-05-01"},
        )

        assert response.status_code == 200
        document_id = response.json()["document_id"]
        assert (config.root / document_id / "note.txt").read_bytes() == (
            b"remember"
        )
        assert (config.root / document_id / "metadata.properties").is_file()

    def test_repository_is_shared(self, config: ArchiveConfig) -> None:
        dependencies.configure(config)
        try:
            first = dependencies.get_document_repository()
            second = dependencies.get_document_repository()
        finally:
            dependencies._container.reset()

        assert first is second
        assert isinstance(first, FileSystemDocumentRepository)
        assert first.root == config.root

    def test_file_server_uses_configured_chunk_size(
        self, tmp_path: Path
    ) -> None:
        dependencies.configure(ArchiveConfig(root=tmp_path, chunk_size=123))
        try:
            server = dependencies.get_file_server()
        finally:
            dependencies._container.reset()

        assert server.chunk_size == 123


class TestArchiveConfig:
    """Configuration read from the environment."""

    def test_defaults(self) -> None:
        config = ArchiveConfig.from_environment({})

        assert config.root == Path("file-archive")
        assert config.max_upload_bytes == 2048 * 1024 * 1024
        assert config.chunk_size == 64 * 1024

    def test_environment_overrides(self) -> None:
        config = ArchiveConfig.from_environment(
            {
                "DOC_ARCHIVE_ROOT": "/srv/archive",
                "DOC_ARCHIVE_MAX_UPLOAD_BYTES": "1000",
                "DOC_ARCHIVE_CHUNK_SIZE": "512",
            }
        )

        assert config.root == Path("/srv/archive")
        assert config.max_upload_bytes == 1000
        assert config.chunk_size == 512

    def test_invalid_values_are_rejected(self) -> None:
        with pytest.raises(ValueError):
            ArchiveConfig.from_environment({"DOC_ARCHIVE_CHUNK_SIZE": "0"})
