"""
HTTP byte-range parsing.

Parses a ``Range`` request header against a resource length. The result
distinguishes three outcomes:

- ``None``: no usable range. The header is malformed, uses a unit other
  than ``bytes``, or contains a spec with ``start > end``. The caller
  delivers the full resource.
- ``[]``: the header is well formed but no requested range overlaps the
  resource. The caller answers 416 Range Not Satisfiable.
- a non-empty list: the satisfiable ranges, clamped to the resource, in
  request order.

Supported specs are ``start-end``, ``start-`` (to the end of the resource)
and ``-suffix`` (the last ``suffix`` bytes).
"""

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

_RANGE_SPEC = re.compile(r"^(\d*)-(\d*)$", re.ASCII)


class ByteRange(BaseModel):
    """An inclusive byte interval ``[start, end]`` within a resource."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        """Value of the Content-Range header for this range."""
        return f"bytes {self.start}-{self.end}/{total}"


def parse_range_header(header: str, length: int) -> Optional[List[ByteRange]]:
    """Parse a Range header value for a resource of ``length`` bytes."""
    unit, separator, specs = header.partition("=")
    if not separator or unit.strip().lower() != "bytes":
        return None

    ranges: List[ByteRange] = []
    seen_spec = False
    for spec in specs.split(","):
        spec = spec.strip()
        if not spec:
            continue
        match = _RANGE_SPEC.match(spec)
        if match is None:
            return None
        first, last = match.groups()
        if not first and not last:
            return None
        seen_spec = True

        if not first:
            suffix = int(last)
            if suffix == 0:
                continue
            start = max(length - suffix, 0)
            end = length - 1
        else:
            start = int(first)
            if last:
                end = int(last)
                if end < start:
                    return None
                end = min(end, length - 1)
            else:
                end = length - 1

        if start >= length:
            continue
        ranges.append(ByteRange(start=start, end=end))

    if not seen_spec:
        return None
    return ranges


def coalesce_ranges(ranges: List[ByteRange]) -> List[ByteRange]:
    """Merge overlapping or adjacent ranges.

    Ranges that are already disjoint keep their request order. Otherwise
    the merged ranges are returned in ascending order.
    """
    ordered = sorted(ranges, key=lambda r: r.start)
    merged: List[ByteRange] = []
    for byte_range in ordered:
        if merged and byte_range.start <= merged[-1].end + 1:
            last = merged.pop()
            byte_range = ByteRange(
                start=last.start, end=max(last.end, byte_range.end)
            )
        merged.append(byte_range)
    if len(merged) == len(ranges):
        return ranges
    return merged
