"""HTTP byte-range delivery of stored files.

Only single ranges are served. A multi-range header such as
``bytes=0-99,200-299`` is answered with the first segment alone.
Headers that do not parse as a byte range are ignored and the whole
file is sent, as RFC 9110 allows.
"""

from __future__ import annotations

import re
import urllib.parse
from dataclasses import dataclass, field

from cloudshare.core.config import settings
from cloudshare.core.errors import RangeUnsatisfiableError
from cloudshare.services.files import FileRecord
from cloudshare.services.storage import ByteSource, open_byte_source

_BYTE_RANGE = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass
class StreamPlan:
    status: int
    headers: dict[str, str]
    byte_range: ByteRange


@dataclass
class StreamResponse:
    status: int
    headers: dict[str, str]
    byte_range: ByteRange
    source: ByteSource
    media_type: str = field(default="application/octet-stream")


def parse_range(header: str | None, total_size: int) -> ByteRange | None:
    """Resolve a ``Range`` header against a file of ``total_size`` bytes.

    Returns None when there is no usable header (serve the whole file) and
    raises :class:`RangeUnsatisfiableError` when the header is well formed
    but selects nothing.
    """
    if not header:
        return None
    unit, sep, ranges = header.partition("=")
    if not sep or unit.strip().lower() != "bytes":
        return None

    first = ranges.split(",", 1)[0]
    match = _BYTE_RANGE.match(first)
    if not match:
        return None
    raw_start, raw_end = match.groups()
    if not raw_start and not raw_end:
        return None

    if not raw_start:
        suffix = int(raw_end)
        if suffix == 0 or total_size == 0:
            raise RangeUnsatisfiableError(total_size)
        return ByteRange(max(0, total_size - suffix), total_size - 1)

    start = int(raw_start)
    end = int(raw_end) if raw_end else total_size - 1
    if start > total_size - 1 or start > end:
        raise RangeUnsatisfiableError(total_size)
    return ByteRange(start, min(end, total_size - 1))


def is_media_type(mime_type: str) -> bool:
    return mime_type.lower().startswith(settings.MEDIA_TYPE_PREFIXES)


def content_disposition(filename: str) -> str:
    quoted = urllib.parse.quote(filename, safe="")
    fallback = filename.encode("latin-1", "ignore").decode("latin-1").replace('"', "")
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{quoted}'


def plan(mime_type: str, total_size: int, range_header: str | None = None, filename: str | None = None) -> StreamPlan:
    byte_range = parse_range(range_header, total_size)

    if byte_range is None:
        headers = {
            "Content-Type": mime_type,
            "Content-Length": str(total_size),
            "Accept-Ranges": "bytes",
        }
        if not is_media_type(mime_type):
            headers["Content-Disposition"] = content_disposition(filename or "download.bin")
        return StreamPlan(200, headers, ByteRange(0, total_size - 1))

    headers = {
        "Content-Type": mime_type,
        "Content-Range": f"bytes {byte_range.start}-{byte_range.end}/{total_size}",
        "Accept-Ranges": "bytes",
        "Content-Length": str(byte_range.length),
    }
    return StreamPlan(206, headers, byte_range)


async def serve(file: FileRecord, range_header: str | None = None, chunk_size: int | None = None) -> StreamResponse:
    stream_plan = plan(file.mime_type, file.size, range_header, file.original_filename)
    source = await open_byte_source(file, stream_plan.byte_range.start, stream_plan.byte_range.end, chunk_size)
    return StreamResponse(
        status=stream_plan.status,
        headers=stream_plan.headers,
        byte_range=stream_plan.byte_range,
        source=source,
        media_type=file.mime_type,
    )
