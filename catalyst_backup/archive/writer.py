# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup Archive Writer - Streaming zip container.

The zip is written into an in-memory sink that is drained after every
write, so archive bytes can be sent to the client while later entries
are still being produced. Because the sink is not seekable, every entry
uses a trailing data descriptor instead of patching its local header.
"""

import time
import zipfile
from typing import AsyncIterable, AsyncIterator

import structlog

from catalyst_backup.archive.compressor import run_compression
from catalyst_backup.exceptions import BackupError

logger = structlog.get_logger()


class _ChunkSink:
    """Write-only file object that collects bytes until drained."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, data: bytes) -> int:
        self._buffer += data
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


class ArchiveWriter:
    """
    Builds a zip archive entry by entry.

    Usage:
        writer = ArchiveWriter()
        async for piece in writer.write_entry("arango/ENCRYPTION", source):
            send(piece)
        send(writer.close())
    """

    def __init__(self) -> None:
        self._sink = _ChunkSink()
        self._zip = zipfile.ZipFile(self._sink, mode="w")
        self._entry_open = False
        self._closed = False
        self.entry_count = 0
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def write_entry(
        self,
        name: str,
        chunks: AsyncIterable[bytes],
        compress: bool = True,
        size_hint: int | None = None,
    ) -> AsyncIterator[bytes]:
        """
        Write one entry and yield archive bytes as they become available.

        Args:
            name: Entry path inside the archive
            chunks: Entry content
            compress: Deflate the entry (False stores it as-is)
            size_hint: Expected uncompressed size; without it zip64 is always used

        Raises:
            BackupError: If the writer is closed or another entry is still open
        """
        if self._closed:
            raise BackupError("Archive writer is closed", details={"entry": name})
        if self._entry_open:
            raise BackupError(
                "Another archive entry is still being written",
                details={"entry": name},
            )

        info = zipfile.ZipInfo(name, date_time=time.localtime(time.time())[:6])
        info.compress_type = zipfile.ZIP_DEFLATED if compress else zipfile.ZIP_STORED
        if size_hint is not None:
            info.file_size = size_hint

        self._entry_open = True
        try:
            with self._zip.open(info, mode="w", force_zip64=size_hint is None) as handle:
                async for chunk in chunks:
                    if not chunk:
                        continue
                    # Deflate runs in the compression pool for large chunks
                    await run_compression(handle.write, chunk)
                    piece = self._drain()
                    if piece:
                        yield piece
            self.entry_count += 1
        finally:
            self._entry_open = False

        piece = self._drain()
        if piece:
            yield piece

    async def write_bytes(self, name: str, data: bytes, compress: bool = True) -> AsyncIterator[bytes]:
        """Write a small entry held in memory."""

        async def _single() -> AsyncIterator[bytes]:
            yield data

        async for piece in self.write_entry(
            name, _single(), compress=compress, size_hint=len(data)
        ):
            yield piece

    def write_directory(self, name: str) -> bytes:
        """Write an empty directory entry (name ends with '/') and return its bytes."""
        if self._closed:
            raise BackupError("Archive writer is closed", details={"entry": name})
        if self._entry_open:
            raise BackupError(
                "Another archive entry is still being written",
                details={"entry": name},
            )

        self._zip.mkdir(name)
        self.entry_count += 1
        return self._drain()

    def close(self) -> bytes:
        """
        Finish the archive and return the trailing central directory bytes.

        Raises:
            BackupError: If the writer is already closed or an entry is open
        """
        if self._closed:
            raise BackupError("Archive writer is already closed")
        if self._entry_open:
            raise BackupError("Cannot close archive while an entry is open")

        self._closed = True
        self._zip.close()
        return self._drain()

    def abort(self) -> None:
        """Discard the archive. Safe to call after close()."""
        if self._closed:
            return
        self._closed = True
        try:
            self._zip.close()
        except ValueError as e:
            # An entry handle is still open; the output is discarded anyway
            logger.warning("archive_abort_incomplete", error=str(e))
        self._sink.drain()

    def _drain(self) -> bytes:
        piece = self._sink.drain()
        self.bytes_written += len(piece)
        return piece
