# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup Archive Reader - Random access to archive entries.

Opening parses only the zip central directory. Each entry is
decompressed on demand, so reading one object never touches the others.
"""

import zipfile
import zlib
from dataclasses import dataclass
from typing import IO, AsyncIterator, BinaryIO, List

import structlog

from catalyst_backup.exceptions import CorruptArchive, CorruptDataStream

logger = structlog.get_logger()

DEFAULT_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ArchiveEntry:
    """An entry listed from the archive index."""

    name: str
    size: int
    compressed_size: int


class ArchiveReader:
    """Read-only view of a backup archive."""

    def __init__(self, zip_file: zipfile.ZipFile) -> None:
        self._zip = zip_file
        self._closed = False

    @classmethod
    def open(cls, fileobj: BinaryIO) -> "ArchiveReader":
        """
        Open an archive from a seekable binary file object.

        Raises:
            CorruptArchive: If the zip index cannot be parsed
        """
        try:
            zip_file = zipfile.ZipFile(fileobj, mode="r")
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError, EOFError) as e:
            raise CorruptArchive(f"Cannot read archive index: {e}") from e

        reader = cls(zip_file)
        logger.debug("archive_opened", entries=len(zip_file.infolist()))
        return reader

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._zip.close()

    def names(self) -> List[str]:
        """All file entry names, directories excluded."""
        return [info.filename for info in self._zip.infolist() if not info.is_dir()]

    def list_entries(self, prefix: str = "", include_directories: bool = False) -> List[ArchiveEntry]:
        """List entries whose name starts with ``prefix``, in archive order."""
        return [
            ArchiveEntry(
                name=info.filename,
                size=info.file_size,
                compressed_size=info.compress_size,
            )
            for info in self._zip.infolist()
            if info.filename.startswith(prefix)
            and (include_directories or not info.is_dir())
        ]

    def has_entry(self, name: str) -> bool:
        try:
            self._zip.getinfo(name)
        except KeyError:
            return False
        return True

    def open_entry(self, name: str) -> IO[bytes]:
        """
        Open an entry for streaming reads.

        Raises:
            CorruptArchive: If the entry does not exist or its header is broken
        """
        try:
            return self._zip.open(name, mode="r")
        except KeyError:
            raise CorruptArchive(
                f"Archive entry not found: {name}",
                details={"entry": name},
            ) from None
        except (zipfile.BadZipFile, NotImplementedError, OSError) as e:
            raise CorruptArchive(
                f"Cannot open archive entry {name}: {e}",
                details={"entry": name},
            ) from e

    def read_entry(self, name: str) -> bytes:
        """Read a small entry completely."""
        with self.open_entry(name) as handle:
            try:
                return handle.read()
            except (zipfile.BadZipFile, zlib.error, EOFError) as e:
                raise CorruptDataStream(
                    f"Archive entry {name} is damaged: {e}",
                    details={"entry": name},
                ) from e

    async def iter_chunks(
        self,
        name: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> AsyncIterator[bytes]:
        """
        Stream an entry's content.

        Raises:
            CorruptDataStream: If the entry fails to decompress or its CRC is wrong
        """
        with self.open_entry(name) as handle:
            while True:
                try:
                    chunk = handle.read(chunk_size)
                except (zipfile.BadZipFile, zlib.error, EOFError) as e:
                    raise CorruptDataStream(
                        f"Archive entry {name} is damaged: {e}",
                        details={"entry": name},
                    ) from e
                if not chunk:
                    break
                yield chunk
