# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive Layer - Streaming zip writer, random access reader and entry layout.
"""

from catalyst_backup.archive.reader import ArchiveEntry, ArchiveReader
from catalyst_backup.archive.writer import ArchiveWriter

from catalyst_backup.archive.compressor import (
    gzip_stream,
    gunzip_stream,
)

__all__ = [
    "ArchiveEntry",
    "ArchiveReader",
    "ArchiveWriter",
    "gzip_stream",
    "gunzip_stream",
]
