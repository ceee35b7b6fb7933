"""
Serialization of document metadata to a flat key/value record.

Each stored document carries a ``metadata.properties`` record next to its
content artifact. The record is a Java-properties style text file: one
``key=value`` entry per line, ``#`` comments, backslash escapes. Records
are written as UTF-8.

Keys:

- ``uuid``: document id
- ``file-name``: original file name, also the artifact name on disk
- ``person-name``: person the document belongs to
- ``content-type``: content type supplied at upload
- ``document-date``: calendar date as ``YYYY-MM-DD``, no time or zone

Decoding is lenient about dates: a date that no longer parses is logged
and left unset, so that a corrupt value does not hide the document from
queries. A record without ``uuid`` or ``file-name`` cannot identify its
artifact and is rejected with MetadataDecodeError.
"""

import logging
import re
from datetime import date
from typing import Dict, Iterator, Mapping, Optional, Tuple

from pydantic import ValidationError

from .document import DocumentMetadata
from .exceptions import MetadataDecodeError

logger = logging.getLogger(__name__)

PROP_UUID = "uuid"
PROP_FILE_NAME = "file-name"
PROP_PERSON_NAME = "person-name"
PROP_CONTENT_TYPE = "content-type"
PROP_DOCUMENT_DATE = "document-date"

DATE_FORMAT = "YYYY-MM-DD"
HEADER_COMMENT = "Document meta data"

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_WHITESPACE = " \t\f"
_SEPARATORS = "=:"

_ESCAPES = {
    "\\": "\\\\",
    "\t": "\\t",
    "\n": "\\n",
    "\r": "\\r",
    "\f": "\\f",
    "=": "\\=",
    ":": "\\:",
    "#": "\\#",
    "!": "\\!",
}
_UNESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def format_date(value: date) -> str:
    """Format a date as the fixed-width ``YYYY-MM-DD`` record value."""
    return value.isoformat()


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` record value.

    Raises:
        ValueError: If the value is not a valid fixed-width calendar date
    """
    if not _DATE_PATTERN.match(value):
        raise ValueError(f"Date {value!r} does not match {DATE_FORMAT}")
    return date.fromisoformat(value)


def encode(metadata: DocumentMetadata) -> Dict[str, str]:
    """Encode metadata as a key/value record. Unset values are omitted."""
    record = {
        PROP_UUID: metadata.document_id,
        PROP_FILE_NAME: metadata.file_name,
    }
    if metadata.person_name is not None:
        record[PROP_PERSON_NAME] = metadata.person_name
    if metadata.content_type is not None:
        record[PROP_CONTENT_TYPE] = metadata.content_type
    if metadata.document_date is not None:
        record[PROP_DOCUMENT_DATE] = format_date(metadata.document_date)
    return record


def decode(record: Mapping[str, str]) -> DocumentMetadata:
    """Decode a key/value record into metadata.

    Raises:
        MetadataDecodeError: If the record lacks an id or a usable file name
    """
    document_id = record.get(PROP_UUID)
    file_name = record.get(PROP_FILE_NAME)
    if not document_id or not file_name:
        raise MetadataDecodeError(
            f"Metadata record is missing {PROP_UUID!r} or {PROP_FILE_NAME!r}"
        )

    document_date: Optional[date] = None
    date_string = record.get(PROP_DOCUMENT_DATE)
    if date_string is not None:
        try:
            document_date = parse_date(date_string)
        except ValueError:
            logger.error(
                "Error while parsing document date, leaving it unset",
                extra={
                    "document_id": document_id,
                    "date_string": date_string,
                    "date_format": DATE_FORMAT,
                },
                exc_info=True,
            )

    try:
        return DocumentMetadata(
            document_id=document_id,
            file_name=file_name,
            document_date=document_date,
            person_name=record.get(PROP_PERSON_NAME),
            content_type=record.get(PROP_CONTENT_TYPE),
        )
    except ValidationError as e:
        raise MetadataDecodeError(
            f"Metadata record for {document_id} is invalid: {e}"
        ) from e


def _escape(text: str, is_key: bool) -> str:
    out = []
    for index, ch in enumerate(text):
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch == " " and (is_key or index == 0):
            out.append("\\ ")
        else:
            out.append(ch)
    return "".join(out)


def _unescape(text: str) -> str:
    out = []
    index = 0
    length = len(text)
    while index < length:
        ch = text[index]
        if ch != "\\" or index + 1 == length:
            out.append(ch)
            index += 1
            continue
        escaped = text[index + 1]
        if escaped == "u":
            digits = text[index + 2 : index + 6]
            if len(digits) != 4:
                raise MetadataDecodeError(
                    f"Malformed \\uxxxx escape: {digits!r}"
                )
            try:
                out.append(chr(int(digits, 16)))
            except ValueError as e:
                raise MetadataDecodeError(
                    f"Malformed \\uxxxx escape: {digits!r}"
                ) from e
            index += 6
            continue
        out.append(_UNESCAPES.get(escaped, escaped))
        index += 2
    return "".join(out)


def _continues(line: str) -> bool:
    # an odd run of trailing backslashes joins the next line
    trailing = len(line) - len(line.rstrip("\\"))
    return trailing % 2 == 1


def _logical_lines(text: str) -> Iterator[str]:
    pending: Optional[str] = None
    for raw in _LINE_BREAK.split(text):
        line = raw.lstrip(_WHITESPACE)
        if pending is None and (not line or line[0] in "#!"):
            continue
        if _continues(line):
            pending = (pending or "") + line[:-1]
            continue
        yield (pending or "") + line
        pending = None
    if pending is not None:
        yield pending


def _split_entry(line: str) -> Tuple[str, str]:
    index = 0
    length = len(line)
    while index < length:
        ch = line[index]
        if ch == "\\":
            index += 2
            continue
        if ch in _SEPARATORS or ch in _WHITESPACE:
            break
        index += 1
    key = line[:index]
    rest = line[index:].lstrip(_WHITESPACE)
    if rest[:1] and rest[0] in _SEPARATORS:
        rest = rest[1:].lstrip(_WHITESPACE)
    return _unescape(key), _unescape(rest)


def dumps(record: Mapping[str, str], comment: str = HEADER_COMMENT) -> str:
    """Render a record in properties text form."""
    lines = [f"#{comment}"] if comment else []
    for key, value in record.items():
        lines.append(f"{_escape(key, True)}={_escape(value, False)}")
    return "\n".join(lines) + "\n"


def loads(text: str) -> Dict[str, str]:
    """Parse properties text into a record. Later keys win."""
    record: Dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_entry(line)
        record[key] = value
    return record


def encode_text(metadata: DocumentMetadata) -> str:
    return dumps(encode(metadata))


def decode_text(text: str) -> DocumentMetadata:
    return decode(loads(text))


def to_bytes(metadata: DocumentMetadata) -> bytes:
    """Encode metadata straight to the on-disk UTF-8 record."""
    return encode_text(metadata).encode("utf-8")


def from_bytes(data: bytes) -> DocumentMetadata:
    """Decode metadata from the on-disk UTF-8 record.

    Raises:
        MetadataDecodeError: If the bytes are not UTF-8 or the record is
            invalid
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MetadataDecodeError("Metadata record is not valid UTF-8") from e
    return decode_text(text)
