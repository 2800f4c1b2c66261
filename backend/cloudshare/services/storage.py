"""Bounded readers over stored file bytes.

A source is opened for an inclusive ``[start, end]`` window and hands out
chunks until the window is exhausted. ``iter_chunks`` closes the source on
every exit path, which includes the client going away mid-download.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import AsyncIterator

import anyio
from minio.error import MinioException
from starlette.concurrency import run_in_threadpool

from cloudshare.core.config import settings
from cloudshare.core.errors import StorageUnavailableError
from cloudshare.core.minio_client import minio_client
from cloudshare.services.files import FileRecord

logger = logging.getLogger("cloudshare")


class ByteSource(ABC):
    def __init__(self, start: int, end: int, chunk_size: int) -> None:
        self.start = start
        self.end = end
        self.chunk_size = chunk_size
        self.remaining = max(0, end - start + 1)
        self.bytes_sent = 0
        self.closed = False

    @abstractmethod
    async def _read(self, size: int) -> bytes: ...

    @abstractmethod
    async def _close(self) -> None: ...

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # still runs when the request task is being cancelled by a disconnect
        with anyio.CancelScope(shield=True):
            await self._close()

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            while self.remaining > 0:
                try:
                    chunk = await self._read(min(self.chunk_size, self.remaining))
                except (OSError, MinioException) as e:
                    logger.exception("Read failed after %s bytes: %s", self.bytes_sent, e)
                    raise StorageUnavailableError() from e
                if not chunk:
                    logger.error("Source ended %s bytes short of the requested range", self.remaining)
                    raise StorageUnavailableError()
                self.remaining -= len(chunk)
                self.bytes_sent += len(chunk)
                yield chunk
        finally:
            await self.close()


class LocalFileSource(ByteSource):
    def __init__(self, handle, start: int, end: int, chunk_size: int) -> None:
        super().__init__(start, end, chunk_size)
        self._handle = handle

    @classmethod
    async def open(cls, path: str, start: int, end: int, chunk_size: int) -> "LocalFileSource":
        def _open():
            handle = open(path, "rb")
            try:
                handle.seek(start)
            except OSError:
                handle.close()
                raise
            return handle

        handle = await run_in_threadpool(_open)
        return cls(handle, start, end, chunk_size)

    async def _read(self, size: int) -> bytes:
        return await run_in_threadpool(self._handle.read, size)

    async def _close(self) -> None:
        await run_in_threadpool(self._handle.close)


class MinioObjectSource(ByteSource):
    def __init__(self, response, start: int, end: int, chunk_size: int) -> None:
        super().__init__(start, end, chunk_size)
        self._response = response

    @classmethod
    async def open(cls, client, bucket: str, object_name: str, start: int, end: int, chunk_size: int) -> "MinioObjectSource":
        length = max(0, end - start + 1)
        response = await run_in_threadpool(client.get_object, bucket, object_name, offset=start, length=length)
        return cls(response, start, end, chunk_size)

    async def _read(self, size: int) -> bytes:
        return await run_in_threadpool(self._response.read, size)

    async def _close(self) -> None:
        def _release():
            self._response.close()
            self._response.release_conn()

        await run_in_threadpool(_release)


def resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(settings.STORAGE_ROOT, path)


async def open_byte_source(file: FileRecord, start: int, end: int, chunk_size: int | None = None) -> ByteSource:
    chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE
    try:
        if file.in_object_storage:
            return await MinioObjectSource.open(minio_client, file.bucket, file.object_name, start, end, chunk_size)
        if not file.path:
            raise FileNotFoundError(f"file {file.id} has no storage location")
        return await LocalFileSource.open(resolve_path(file.path), start, end, chunk_size)
    except (OSError, MinioException) as e:
        logger.exception("Could not open stored bytes for file %s: %s", file.id, e)
        raise StorageUnavailableError() from e
