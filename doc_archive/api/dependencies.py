"""
Dependency injection for FastAPI endpoints.

The archive configuration is read from the environment once; the
repository, file server and service built from it live for the lifetime
of the process. Tests replace them through ``app.dependency_overrides``.
"""

import logging
from typing import Any, Callable, Dict

from fastapi import Depends

from doc_archive.config import ArchiveConfig
from doc_archive.delivery import RangeFileServer
from doc_archive.repositories import (
    DocumentRepository,
    FileSystemDocumentRepository,
)
from doc_archive.use_cases import ArchiveService

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}

    def get_or_create(self, key: str, factory: Callable[[], Any]) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = factory()
        return self._instances[key]

    def reset(self) -> None:
        """Drop all instances, e.g. after the environment changed."""
        self._instances.clear()

    def set_config(self, config: ArchiveConfig) -> None:
        """Use the given configuration instead of the environment."""
        self.reset()
        self._instances["config"] = config

    def get_config(self) -> ArchiveConfig:
        return self.get_or_create(  # type: ignore[no-any-return]
            "config", ArchiveConfig.from_environment
        )

    def get_document_repository(self) -> DocumentRepository:
        def create() -> DocumentRepository:
            config = self.get_config()
            logger.debug(
                "Creating FileSystemDocumentRepository",
                extra={"archive_root": str(config.root)},
            )
            return FileSystemDocumentRepository(config.root)

        return self.get_or_create(  # type: ignore[no-any-return]
            "document_repository", create
        )

    def get_file_server(self) -> RangeFileServer:
        return self.get_or_create(  # type: ignore[no-any-return]
            "file_server",
            lambda: RangeFileServer(chunk_size=self.get_config().chunk_size),
        )


# Global container instance
_container = DependencyContainer()


def configure(config: ArchiveConfig) -> None:
    """Set the configuration used by all dependencies of this process."""
    _container.set_config(config)


def get_archive_config() -> ArchiveConfig:
    """FastAPI dependency for the archive configuration."""
    return _container.get_config()


def get_document_repository() -> DocumentRepository:
    """FastAPI dependency for the DocumentRepository."""
    return _container.get_document_repository()


def get_file_server() -> RangeFileServer:
    """FastAPI dependency for the RangeFileServer."""
    return _container.get_file_server()


def get_archive_service(
    repository: DocumentRepository = Depends(get_document_repository),
    file_server: RangeFileServer = Depends(get_file_server),
) -> ArchiveService:
    """FastAPI dependency for ArchiveService."""
    return ArchiveService(document_repo=repository, file_server=file_server)
