"""
Configuration of the document archive.

Values are passed explicitly to the components that need them; the
archive root in particular is fixed when the repository is constructed.
``ArchiveConfig.from_environment()`` reads the process environment once,
for the API and the command line.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_ROOT = "file-archive"
DEFAULT_MAX_UPLOAD_BYTES = 2048 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 64 * 1024


class ArchiveConfig(BaseModel):
    """Settings for the filesystem store and file delivery."""

    root: Path = Path(DEFAULT_ROOT)
    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)

    @classmethod
    def from_environment(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "ArchiveConfig":
        """Build the configuration from ``DOC_ARCHIVE_*`` variables.

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        values = {}
        if "DOC_ARCHIVE_ROOT" in env:
            values["root"] = env["DOC_ARCHIVE_ROOT"]
        if "DOC_ARCHIVE_MAX_UPLOAD_BYTES" in env:
            values["max_upload_bytes"] = env["DOC_ARCHIVE_MAX_UPLOAD_BYTES"]
        if "DOC_ARCHIVE_CHUNK_SIZE" in env:
            values["chunk_size"] = env["DOC_ARCHIVE_CHUNK_SIZE"]
        config = cls.model_validate(values)
        logger.debug(
            "Archive configuration loaded",
            extra={
                "archive_root": str(config.root),
                "max_upload_bytes": config.max_upload_bytes,
                "chunk_size": config.chunk_size,
            },
        )
        return config
