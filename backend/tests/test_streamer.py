import pytest

from cloudshare.core.errors import RangeUnsatisfiableError, StorageUnavailableError
from cloudshare.services import storage, streamer
from cloudshare.services.files import FileRecord
from cloudshare.services.streamer import ByteRange, content_disposition, parse_range, plan


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, None),
        ("", None),
        ("items=0-10", None),
        ("bytes", None),
        ("bytes=abc", None),
        ("bytes=-", None),
        ("bytes=0-0", ByteRange(0, 0)),
        ("bytes=0-99", ByteRange(0, 99)),
        ("bytes=900-", ByteRange(900, 999)),
        ("bytes=990-5000", ByteRange(990, 999)),
        ("bytes=-100", ByteRange(900, 999)),
        ("bytes=-5000", ByteRange(0, 999)),
        ("bytes=10-19,50-59", ByteRange(10, 19)),
        ("Bytes = 5 - 9", ByteRange(5, 9)),
    ],
)
def test_parse_range(header, expected):
    assert parse_range(header, 1000) == expected


@pytest.mark.parametrize("header", ["bytes=1000-", "bytes=2000-3000", "bytes=500-400", "bytes=-0"])
def test_parse_range_unsatisfiable(header):
    with pytest.raises(RangeUnsatisfiableError) as exc:
        parse_range(header, 1000)
    assert exc.value.total_size == 1000
    assert exc.value.status_code == 416


def test_any_range_on_empty_file_is_unsatisfiable():
    with pytest.raises(RangeUnsatisfiableError):
        parse_range("bytes=0-", 0)
    with pytest.raises(RangeUnsatisfiableError):
        parse_range("bytes=-10", 0)


def test_full_download_plan_for_document():
    p = plan("application/pdf", 1000, None, "report.pdf")

    assert p.status == 200
    assert p.byte_range == ByteRange(0, 999)
    assert p.headers["Content-Length"] == "1000"
    assert p.headers["Accept-Ranges"] == "bytes"
    assert p.headers["Content-Disposition"].startswith("attachment;")
    assert "report.pdf" in p.headers["Content-Disposition"]
    assert "Content-Range" not in p.headers


def test_full_download_plan_for_media_is_inline():
    p = plan("video/mp4", 1000, None, "clip.mp4")

    assert p.status == 200
    assert "Content-Disposition" not in p.headers
    assert p.headers["Content-Type"] == "video/mp4"


def test_partial_plan_headers():
    p = plan("video/mp4", 1000, "bytes=900-")

    assert p.status == 206
    assert p.headers["Content-Range"] == "bytes 900-999/1000"
    assert p.headers["Content-Length"] == "100"
    assert p.headers["Accept-Ranges"] == "bytes"


def test_content_disposition_encodes_non_ascii_names():
    value = content_disposition("отчёт 2026.pdf")

    assert value.startswith("attachment;")
    assert "filename*=UTF-8''%D0%BE%D1%82%D1%87%D1%91%D1%82%202026.pdf" in value
    value.encode("latin-1")


def test_content_disposition_strips_quotes_from_fallback():
    assert 'filename="a b.txt"' in content_disposition('a "b.txt')


def _record(path, content: bytes, mime_type="application/octet-stream") -> FileRecord:
    path.write_bytes(content)
    return FileRecord(id=1, path=str(path), mime_type=mime_type, size=len(content), original_filename="blob.bin")


async def _drain(source) -> bytes:
    return b"".join([chunk async for chunk in source.iter_chunks()])


@pytest.mark.anyio
async def test_serve_streams_exact_window(tmp_path):
    content = bytes(range(256)) * 4
    record = _record(tmp_path / "data.bin", content)

    full = await streamer.serve(record, None, chunk_size=7)
    assert await _drain(full.source) == content
    assert full.source.closed

    partial = await streamer.serve(record, "bytes=100-199", chunk_size=7)
    assert partial.status == 206
    assert await _drain(partial.source) == content[100:200]
    assert partial.source.bytes_sent == 100
    assert partial.source.closed


@pytest.mark.anyio
async def test_serve_suffix_range(tmp_path):
    content = b"0123456789"
    record = _record(tmp_path / "digits.txt", content, "text/plain")

    stream = await streamer.serve(record, "bytes=-3", chunk_size=2)
    assert await _drain(stream.source) == b"789"


@pytest.mark.anyio
async def test_serve_raises_before_opening_unsatisfiable_range(tmp_path, monkeypatch):
    record = _record(tmp_path / "data.bin", b"x" * 10)

    async def must_not_open(*args, **kwargs):
        raise AssertionError("source opened for an unsatisfiable range")

    monkeypatch.setattr(streamer, "open_byte_source", must_not_open)
    with pytest.raises(RangeUnsatisfiableError):
        await streamer.serve(record, "bytes=50-60")


@pytest.mark.anyio
async def test_serve_missing_file_is_storage_error(tmp_path):
    record = FileRecord(id=9, path=str(tmp_path / "gone.bin"), mime_type="text/plain", size=10, original_filename="gone.bin")

    with pytest.raises(StorageUnavailableError):
        await streamer.serve(record)


@pytest.mark.anyio
async def test_stopping_early_closes_the_source(tmp_path):
    record = _record(tmp_path / "data.bin", b"a" * 100)
    stream = await streamer.serve(record, None, chunk_size=10)

    chunks = stream.source.iter_chunks()
    assert await chunks.__anext__() == b"a" * 10
    await chunks.aclose()

    assert stream.source.closed
    assert stream.source.bytes_sent == 10


@pytest.mark.anyio
async def test_close_is_idempotent(tmp_path):
    record = _record(tmp_path / "data.bin", b"abc")
    stream = await streamer.serve(record)

    await stream.source.close()
    await stream.source.close()
    assert stream.source.closed


class FakeObject:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0
        self.closed = False
        self.released = False

    def read(self, size):
        chunk = self.data[self.pos:self.pos + size]
        self.pos += len(chunk)
        return chunk

    def close(self):
        self.closed = True

    def release_conn(self):
        self.released = True


class FakeMinio:
    def __init__(self, blobs: dict):
        self.blobs = blobs
        self.calls = []
        self.objects = []

    def get_object(self, bucket, object_name, offset=0, length=0):
        self.calls.append((bucket, object_name, offset, length))
        obj = FakeObject(self.blobs[object_name][offset:offset + length])
        self.objects.append(obj)
        return obj


@pytest.mark.anyio
async def test_serve_from_object_storage(monkeypatch):
    content = b"0123456789" * 10
    client = FakeMinio({"obj-1": content})
    monkeypatch.setattr(storage, "minio_client", client)
    record = FileRecord(
        id=3,
        path=None,
        mime_type="audio/mpeg",
        size=len(content),
        original_filename="song.mp3",
        bucket="cloudshare",
        object_name="obj-1",
    )

    stream = await streamer.serve(record, "bytes=10-29", chunk_size=8)

    assert client.calls == [("cloudshare", "obj-1", 10, 20)]
    assert await _drain(stream.source) == content[10:30]
    assert client.objects[0].closed
    assert client.objects[0].released


@pytest.mark.anyio
async def test_source_shorter_than_declared_size_aborts(tmp_path):
    path = tmp_path / "truncated.bin"
    path.write_bytes(b"z" * 400)
    record = FileRecord(id=4, path=str(path), mime_type="application/pdf", size=1000, original_filename="t.pdf")

    stream = await streamer.serve(record, None, chunk_size=128)
    assert stream.headers["Content-Length"] == "1000"

    received = b""
    with pytest.raises(StorageUnavailableError):
        async for chunk in stream.source.iter_chunks():
            received += chunk

    assert received == b"z" * 400
    assert stream.source.closed


def test_byte_source_is_abstract():
    with pytest.raises(TypeError):
        storage.ByteSource(0, 9, 4)
