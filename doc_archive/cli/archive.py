#!/usr/bin/env python3
"""
Command line interface for the document archive.

Works directly against a local archive directory: upload, find, fetch and
delete documents, or serve the HTTP API. The archive directory comes from
``--root`` or the ``DOC_ARCHIVE_ROOT`` environment variable.
"""

import asyncio
import logging
import mimetypes
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from doc_archive.config import ArchiveConfig
from doc_archive.domain import ArchiveError, DocumentNotFoundError
from doc_archive.repositories import FileSystemDocumentRepository
from doc_archive.use_cases import ArchiveService

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    return _to_date(value)


def _to_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(
            f"{value!r} is not a date in YYYY-MM-DD format"
        ) from None


def _config(ctx: click.Context) -> ArchiveConfig:
    return ctx.obj["config"]  # type: ignore[no-any-return]


def _service(ctx: click.Context) -> ArchiveService:
    config = _config(ctx)
    return ArchiveService(FileSystemDocumentRepository(config.root))


@click.group()
@click.option(
    "--root",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Archive directory (defaults to DOC_ARCHIVE_ROOT or file-archive)",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, root: Optional[Path], verbose: bool) -> None:
    """Store, find and fetch archived documents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = ArchiveConfig.from_environment()
    if root is not None:
        config = config.model_copy(update={"root": root})
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command()
@click.argument(
    "file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("--person", required=True, help="Person the document is for")
@click.option("--date", "date_", required=True, help="Date as YYYY-MM-DD")
@click.option(
    "--content-type",
    default=None,
    help="Content type (guessed from the file name if omitted)",
)
@click.pass_context
def upload(
    ctx: click.Context,
    file: Path,
    person: str,
    date_: str,
    content_type: Optional[str],
) -> None:
    """Add FILE to the archive and print its metadata."""
    document_date = _to_date(date_)
    if content_type is None:
        content_type = (
            mimetypes.guess_type(file.name)[0] or "application/octet-stream"
        )
    try:
        metadata = asyncio.run(
            _service(ctx).save(
                content=file.read_bytes(),
                file_name=file.name,
                document_date=document_date,
                person_name=person,
                content_type=content_type,
            )
        )
    except ArchiveError as e:
        click.echo(f"Upload failed: {e}", err=True)
        sys.exit(1)
    except ValidationError as e:
        reason = e.errors()[0]["msg"]
        click.echo(f"Upload failed: {file.name!r}: {reason}", err=True)
        sys.exit(1)
    click.echo(metadata.model_dump_json())


@main.command()
@click.option("--person", default=None, help="Exact person name")
@click.option("--date", "date_", default=None, help="Date as YYYY-MM-DD")
@click.option(
    "--content-type", default=None, help="Substring of the content type"
)
@click.pass_context
def find(
    ctx: click.Context,
    person: Optional[str],
    date_: Optional[str],
    content_type: Optional[str],
) -> None:
    """Print the metadata of matching documents, one JSON per line."""
    document_date = _parse_date(date_)
    try:
        results = asyncio.run(
            _service(ctx).find_documents(
                person_name=person,
                document_date=document_date,
                content_type=content_type,
            )
        )
    except ArchiveError as e:
        click.echo(f"Find failed: {e}", err=True)
        sys.exit(1)
    for metadata in results:
        click.echo(metadata.model_dump_json())


@main.command()
@click.argument("document_id")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to this file instead of standard output",
)
@click.pass_context
def fetch(
    ctx: click.Context, document_id: str, output: Optional[Path]
) -> None:
    """Write the content of DOCUMENT_ID."""
    try:
        content = asyncio.run(_service(ctx).get_document_file(document_id))
    except DocumentNotFoundError:
        click.echo(f"Document not found: {document_id}", err=True)
        sys.exit(1)
    except ArchiveError as e:
        click.echo(f"Fetch failed: {e}", err=True)
        sys.exit(1)
    if output is None:
        click.get_binary_stream("stdout").write(content)
    else:
        output.write_bytes(content)
        click.echo(f"Wrote {len(content)} bytes to {output}")


@main.command()
@click.argument("document_id")
@click.pass_context
def delete(ctx: click.Context, document_id: str) -> None:
    """Delete DOCUMENT_ID from the archive."""
    try:
        deleted = asyncio.run(_service(ctx).delete_document(document_id))
    except DocumentNotFoundError:
        click.echo(f"Document not found: {document_id}", err=True)
        sys.exit(1)
    except ArchiveError as e:
        click.echo(f"Delete failed: {e}", err=True)
        sys.exit(1)
    click.echo(deleted)


@main.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", default=8000, type=int, help="Port to listen on")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from doc_archive.api import dependencies
    from doc_archive.api.app import app, setup_logging

    setup_logging()
    dependencies.configure(_config(ctx))
    click.echo(f"Serving archive {_config(ctx).root} on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
