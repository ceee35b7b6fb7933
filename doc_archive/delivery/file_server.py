"""
Range-aware delivery of stored files over HTTP.

RangeFileServer answers one request for one resource and ends on exactly
one branch:

1. Preconditions. ``If-Match`` / ``If-Unmodified-Since`` that fail give
   412. ``If-None-Match`` / ``If-Modified-Since`` that match the current
   validator give 304 with no body.
2. ``If-Range``. When present with a Range header and not matching the
   current validator, the Range header is ignored.
3. Range parsing. A malformed Range header is ignored. Overlapping or
   adjacent ranges are merged; more than ``max_ranges`` parts after
   merging fall back to the full resource.
4. Range validation. When no requested range overlaps the resource the
   answer is 416 with ``Content-Range: bytes */<length>``.
5. Response selection. Full content (200), one range (206 with
   Content-Range), or several ranges (206 ``multipart/byteranges``).

The body is streamed in bounded chunks from the file or memory buffer.
A file that disappears before the response starts is answered with 404.
When the client goes away the transfer is abandoned without raising; a
file that fails mid-transfer raises StorageIOError.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timezone
from email.utils import formatdate, parsedate_to_datetime
from functools import partial
from pathlib import Path
from typing import AsyncIterator, List, Mapping, Optional
from urllib.parse import quote

import anyio
from anyio import AsyncFile
from pydantic import BaseModel, Field, model_validator
from starlette.datastructures import Headers
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from doc_archive.domain import StorageIOError

from .ranges import ByteRange, coalesce_ranges, parse_range_header

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_MAX_RANGES = 32


class FileResource(BaseModel):
    """A servable resource: its size, validators and one content source."""

    length: int = Field(ge=0)
    content_type: str = DEFAULT_CONTENT_TYPE
    last_modified: datetime
    etag: Optional[str] = None
    file_name: Optional[str] = None

    data: Optional[bytes] = Field(default=None, repr=False)
    path: Optional[Path] = None

    @model_validator(mode="after")
    def data_or_path_required(self) -> "FileResource":
        if (self.data is None) == (self.path is None):
            raise ValueError("FileResource needs exactly one of data or path")
        return self

    @classmethod
    def from_path(
        cls,
        path: Path,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> "FileResource":
        """Describe a file on disk from its current stat."""
        stat = path.stat()
        return cls(
            length=stat.st_size,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            last_modified=datetime.fromtimestamp(
                stat.st_mtime, tz=timezone.utc
            ),
            etag=f'"{stat.st_size:x}-{stat.st_mtime_ns:x}"',
            file_name=file_name if file_name is not None else path.name,
            path=path,
        )

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
        last_modified: Optional[datetime] = None,
    ) -> "FileResource":
        """Describe an in-memory buffer. The etag is a content digest."""
        digest = hashlib.sha256(data).hexdigest()[:32]
        return cls(
            length=len(data),
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            last_modified=last_modified or datetime.now(timezone.utc),
            etag=f'"{digest}"',
            file_name=file_name,
            data=data,
        )

    @property
    def last_modified_seconds(self) -> int:
        """Last-modified time truncated to HTTP-date precision."""
        return int(self.last_modified.timestamp())

    @property
    def last_modified_header(self) -> str:
        return formatdate(self.last_modified_seconds, usegmt=True)


def header_safe(value: str, fallback: str) -> str:
    """Return value if it can be sent as an HTTP header, else fallback."""
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return fallback
    if "\r" in value or "\n" in value:
        return fallback
    return value


def _content_disposition(file_name: str) -> str:
    quoted = quote(file_name)
    if quoted != file_name:
        return f"inline; filename*=utf-8''{quoted}"
    return f'inline; filename="{file_name}"'


def _parse_http_date(value: str) -> Optional[int]:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _parse_etags(value: str) -> List[str]:
    return [tag.strip() for tag in value.split(",") if tag.strip()]


def _weak_match(tags: List[str], etag: Optional[str]) -> bool:
    if "*" in tags:
        return True
    if etag is None:
        return False
    plain = etag[2:] if etag.startswith("W/") else etag
    return any((t[2:] if t.startswith("W/") else t) == plain for t in tags)


def _strong_match(tags: List[str], etag: Optional[str]) -> bool:
    if "*" in tags:
        return etag is not None
    if etag is None or etag.startswith("W/"):
        return False
    return etag in tags


class RangeFileResponse(Response):
    """Streams a resource, a single range of it, or a multipart of ranges.

    Header values, including Content-Length, are computed up front. A file
    resource is opened before the response starts; if it is gone by then
    the answer is 404 instead. The body is produced chunk by chunk from
    the open handle while a second task watches for ``http.disconnect``;
    whichever finishes first ends the response.
    """

    def __init__(
        self,
        resource: FileResource,
        status_code: int,
        headers: Mapping[str, str],
        ranges: Optional[List[ByteRange]] = None,
        boundary: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        send_body: bool = True,
    ) -> None:
        self.resource = resource
        self.status_code = status_code
        self.ranges = ranges
        self.boundary = boundary
        self.chunk_size = chunk_size
        self.send_body = send_body
        self.media_type = None
        self.background = None
        self.init_headers(headers)
        self._file: Optional[AsyncFile[bytes]] = None

    def _part_header(self, byte_range: ByteRange) -> bytes:
        content_type = header_safe(
            self.resource.content_type, DEFAULT_CONTENT_TYPE
        )
        return (
            f"--{self.boundary}\r\n"
            f"Content-Type: {content_type}\r\n"
            f"Content-Range: {byte_range.content_range(self.resource.length)}"
            "\r\n\r\n"
        ).encode("latin-1")

    def _closing_marker(self) -> bytes:
        return f"--{self.boundary}--\r\n".encode("latin-1")

    def multipart_length(self) -> int:
        """Exact byte length of the multipart/byteranges body."""
        ranges = self.ranges or []
        return sum(
            len(self._part_header(r)) + r.length + 2 for r in ranges
        ) + len(self._closing_marker())

    async def _read(self, start: int, length: int) -> AsyncIterator[bytes]:
        if self.resource.data is not None:
            view = memoryview(self.resource.data)
            position = start
            end = start + length
            while position < end:
                chunk_end = min(position + self.chunk_size, end)
                yield bytes(view[position:chunk_end])
                position = chunk_end
            return

        if self._file is None:
            raise RuntimeError("File resource read before it was opened")
        await self._file.seek(start)
        remaining = length
        while remaining > 0:
            chunk = await self._file.read(min(self.chunk_size, remaining))
            if not chunk:
                raise StorageIOError(
                    f"{self.resource.path} ended {remaining} bytes early"
                )
            remaining -= len(chunk)
            yield chunk

    async def iter_body(self) -> AsyncIterator[bytes]:
        if not self.ranges:
            async for chunk in self._read(0, self.resource.length):
                yield chunk
        elif len(self.ranges) == 1:
            byte_range = self.ranges[0]
            async for chunk in self._read(byte_range.start, byte_range.length):
                yield chunk
        else:
            for byte_range in self.ranges:
                yield self._part_header(byte_range)
                async for chunk in self._read(
                    byte_range.start, byte_range.length
                ):
                    yield chunk
                yield b"\r\n"
            yield self._closing_marker()

    async def listen_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break

    async def _send(self, send: Send, message: Message) -> bool:
        """Send one message; False once the client connection is gone."""
        try:
            await send(message)
        except OSError as e:
            logger.debug(
                "Transfer abandoned, client connection lost",
                extra={"file_name": self.resource.file_name, "error": str(e)},
            )
            return False
        return True

    async def stream_response(self, send: Send) -> None:
        start = {
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self.raw_headers,
        }
        if not await self._send(send, start):
            return
        if self.send_body:
            async for chunk in self.iter_body():
                message = {
                    "type": "http.response.body",
                    "body": chunk,
                    "more_body": True,
                }
                if not await self._send(send, message):
                    return
        await self._send(
            send, {"type": "http.response.body", "body": b"", "more_body": False}
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self.resource.path is not None:
            try:
                self._file = await anyio.open_file(
                    self.resource.path, mode="rb"
                )
            except FileNotFoundError:
                logger.info(
                    "File removed before the transfer started",
                    extra={"path": str(self.resource.path)},
                )
                await Response(status_code=404)(scope, receive, send)
                return

        try:
            async with anyio.create_task_group() as task_group:

                async def wrap(func) -> None:
                    await func()
                    task_group.cancel_scope.cancel()

                task_group.start_soon(wrap, partial(self.stream_response, send))
                await wrap(partial(self.listen_for_disconnect, receive))
        finally:
            if self._file is not None:
                await self._file.aclose()
                self._file = None


class RangeFileServer:
    """Serves FileResources honoring Range and conditional headers."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_ranges: int = DEFAULT_MAX_RANGES,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if max_ranges <= 0:
            raise ValueError("max_ranges must be positive")
        self.chunk_size = chunk_size
        self.max_ranges = max_ranges

    def _validator_headers(self, resource: FileResource) -> dict:
        headers = {"Last-Modified": resource.last_modified_header}
        if resource.etag is not None:
            headers["ETag"] = resource.etag
        return headers

    def _precondition_failed(
        self, resource: FileResource, headers: Headers
    ) -> bool:
        if_match = headers.get("if-match")
        if if_match is not None:
            return not _strong_match(_parse_etags(if_match), resource.etag)
        if_unmodified_since = headers.get("if-unmodified-since")
        if if_unmodified_since is not None:
            since = _parse_http_date(if_unmodified_since)
            return since is not None and resource.last_modified_seconds > since
        return False

    def _not_modified(self, resource: FileResource, headers: Headers) -> bool:
        if_none_match = headers.get("if-none-match")
        if if_none_match is not None:
            return _weak_match(_parse_etags(if_none_match), resource.etag)
        if_modified_since = headers.get("if-modified-since")
        if if_modified_since is not None:
            since = _parse_http_date(if_modified_since)
            return since is not None and resource.last_modified_seconds <= since
        return False

    def _if_range_matches(self, resource: FileResource, value: str) -> bool:
        value = value.strip()
        if value.startswith(('"', "W/")):
            return _strong_match([value], resource.etag)
        since = _parse_http_date(value)
        return since is not None and since == resource.last_modified_seconds

    def select_ranges(
        self, resource: FileResource, headers: Headers
    ) -> Optional[List[ByteRange]]:
        """Resolve the ranges to serve; None means the full resource."""
        range_header = headers.get("range")
        if range_header is None:
            return None
        if_range = headers.get("if-range")
        if if_range is not None and not self._if_range_matches(
            resource, if_range
        ):
            logger.debug(
                "If-Range validator is stale, ignoring Range header",
                extra={"if_range": if_range, "etag": resource.etag},
            )
            return None
        ranges = parse_range_header(range_header, resource.length)
        if ranges is None:
            logger.debug(
                "Ignoring malformed Range header",
                extra={"range": range_header},
            )
            return None
        ranges = coalesce_ranges(ranges)
        if len(ranges) > self.max_ranges:
            logger.info(
                "Too many ranges requested, serving the full resource",
                extra={"part_count": len(ranges), "max_ranges": self.max_ranges},
            )
            return None
        return ranges

    def serve(
        self,
        resource: FileResource,
        request_headers: Mapping[str, str],
        method: str = "GET",
    ) -> Response:
        """Build the response for one request against one resource.

        Args:
            resource: The resource to deliver
            request_headers: Inbound request headers (any case)
            method: ``GET`` or ``HEAD``; HEAD gets the same headers and no
                body

        Returns:
            A starlette Response ready to be returned from an endpoint
        """
        if isinstance(request_headers, Headers):
            headers = request_headers
        else:
            headers = Headers(headers=dict(request_headers))
        validators = self._validator_headers(resource)

        if self._precondition_failed(resource, headers):
            logger.debug(
                "Precondition failed",
                extra={"etag": resource.etag, "file_name": resource.file_name},
            )
            return Response(status_code=412, headers=validators)

        if self._not_modified(resource, headers):
            logger.debug(
                "Resource not modified",
                extra={"etag": resource.etag, "file_name": resource.file_name},
            )
            return Response(status_code=304, headers=validators)

        ranges = self.select_ranges(resource, headers)
        if ranges is not None and not ranges:
            logger.info(
                "Requested range not satisfiable",
                extra={
                    "range": headers.get("range"),
                    "length": resource.length,
                },
            )
            return Response(
                status_code=416,
                headers={
                    "Content-Range": f"bytes */{resource.length}",
                    "Accept-Ranges": "bytes",
                },
            )

        response_headers = {
            "Accept-Ranges": "bytes",
            **validators,
        }
        if resource.file_name:
            response_headers["Content-Disposition"] = _content_disposition(
                resource.file_name
            )
        content_type = header_safe(resource.content_type, DEFAULT_CONTENT_TYPE)
        send_body = method.upper() != "HEAD"

        if not ranges:
            response_headers["Content-Type"] = content_type
            response_headers["Content-Length"] = str(resource.length)
            return RangeFileResponse(
                resource,
                200,
                response_headers,
                chunk_size=self.chunk_size,
                send_body=send_body,
            )

        if len(ranges) == 1:
            byte_range = ranges[0]
            response_headers["Content-Type"] = content_type
            response_headers["Content-Range"] = byte_range.content_range(
                resource.length
            )
            response_headers["Content-Length"] = str(byte_range.length)
            logger.debug(
                "Serving single range",
                extra={"range": response_headers["Content-Range"]},
            )
            return RangeFileResponse(
                resource,
                206,
                response_headers,
                ranges=ranges,
                chunk_size=self.chunk_size,
                send_body=send_body,
            )

        boundary = secrets.token_hex(16)
        response_headers["Content-Type"] = (
            f"multipart/byteranges; boundary={boundary}"
        )
        response = RangeFileResponse(
            resource,
            206,
            response_headers,
            ranges=ranges,
            boundary=boundary,
            chunk_size=self.chunk_size,
            send_body=send_body,
        )
        response.headers["Content-Length"] = str(response.multipart_length())
        logger.debug(
            "Serving multiple ranges",
            extra={"part_count": len(ranges), "boundary": boundary},
        )
        return response

