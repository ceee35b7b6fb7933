"""
Delivery of stored files over HTTP with byte-range support.
"""

from .file_server import (
    FileResource,
    RangeFileResponse,
    RangeFileServer,
    header_safe,
)
from .ranges import ByteRange, coalesce_ranges, parse_range_header

__all__ = [
    "ByteRange",
    "FileResource",
    "RangeFileResponse",
    "RangeFileServer",
    "coalesce_ranges",
    "header_safe",
    "parse_range_header",
]
