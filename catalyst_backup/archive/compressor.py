# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup Compressor - Streaming gzip and JSON lines for collection data.

Collection data entries are gzip-compressed JSON lines. Both directions
work chunk by chunk so a collection is never held in memory as a whole.
Large chunks are (de)compressed in a thread pool to keep the event loop
responsive.
"""

import asyncio
import json
import zlib
from concurrent.futures import ThreadPoolExecutor
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict

from catalyst_backup.exceptions import CorruptDataStream

# Thread pool for CPU-bound compression
_executor = ThreadPoolExecutor(max_workers=4)

# Chunks smaller than this are cheaper to handle inline
OFFLOAD_THRESHOLD = 256 * 1024

# wbits for zlib that selects the gzip container
GZIP_WBITS = 16 + zlib.MAX_WBITS

DEFAULT_GZIP_LEVEL = 6

# Legacy arangodump wraps each document as {"type": 2300, "data": {...}}
ARANGODUMP_DOCUMENT_MARKER = 2300

# Keys a legacy arangodump wrapper line may carry
_ARANGODUMP_WRAPPER_KEYS = {"type", "data", "key", "rev"}


async def run_compression(func: Callable[[bytes], Any], data: bytes) -> Any:
    """
    Run a (de)compression step, in the thread pool for large inputs.

    Calls for one compressor object must stay sequential; the caller
    awaits each step before starting the next.
    """
    if len(data) < OFFLOAD_THRESHOLD:
        return func(data)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, func, data)


async def gzip_stream(
    chunks: AsyncIterable[bytes],
    level: int = DEFAULT_GZIP_LEVEL,
) -> AsyncIterator[bytes]:
    """
    Compress a byte stream into a single gzip member.

    An empty input still yields a complete (empty) gzip member.
    """
    compressor = zlib.compressobj(level, zlib.DEFLATED, GZIP_WBITS)

    async for chunk in chunks:
        out = await run_compression(compressor.compress, chunk)
        if out:
            yield out

    yield compressor.flush()


async def gunzip_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    """
    Decompress a gzip byte stream, including concatenated members.

    Raises:
        CorruptDataStream: If the data is not valid gzip or is truncated
    """
    decompressor = zlib.decompressobj(GZIP_WBITS)
    member_open = False

    try:
        async for chunk in chunks:
            while chunk:
                member_open = True
                out = await run_compression(decompressor.decompress, chunk)
                if out:
                    yield out
                if decompressor.eof:
                    member_open = False
                    chunk = decompressor.unused_data
                    decompressor = zlib.decompressobj(GZIP_WBITS)
                else:
                    chunk = b""
    except zlib.error as e:
        raise CorruptDataStream(f"Decompression failed: {e}") from e

    if member_open:
        raise CorruptDataStream("Compressed data stream is truncated")


async def encode_json_lines(documents: AsyncIterable[Dict[str, Any]]) -> AsyncIterator[bytes]:
    """Serialize each document as one compact JSON line."""
    async for document in documents:
        yield json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        yield b"\n"


async def decode_json_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[Dict[str, Any]]:
    """
    Parse a JSON lines byte stream into documents.

    Blank lines are skipped and legacy arangodump wrappers are unwrapped.

    Raises:
        CorruptDataStream: If a line is not a JSON object
    """
    buffer = bytearray()
    line_number = 0

    async for chunk in chunks:
        # Only the new tail can contain the next newline
        search_from = len(buffer)
        buffer += chunk
        start = 0
        while True:
            end = buffer.find(b"\n", search_from)
            if end < 0:
                break
            line_number += 1
            document = _parse_line(bytes(buffer[start:end]), line_number)
            if document is not None:
                yield document
            start = search_from = end + 1
        if start:
            del buffer[:start]

    if buffer.strip():
        document = _parse_line(bytes(buffer), line_number + 1)
        if document is not None:
            yield document


def is_arangodump_wrapper(document: Dict[str, Any]) -> bool:
    """
    True for a legacy arangodump line such as {"type": 2300, "data": {...}}.

    Regular documents always carry ``_key``, and the wrapper has no keys
    besides type/data/key/rev, so user documents with a "type" field are
    never mistaken for one.
    """
    return (
        document.get("type") == ARANGODUMP_DOCUMENT_MARKER
        and isinstance(document.get("data"), dict)
        and "_key" not in document
        and set(document) <= _ARANGODUMP_WRAPPER_KEYS
    )


def _parse_line(line: bytes, line_number: int) -> Dict[str, Any] | None:
    if not line.strip():
        return None
    try:
        document = json.loads(line)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptDataStream(
            f"Invalid JSON on line {line_number}: {e}",
            details={"line": line_number},
        ) from e

    if not isinstance(document, dict):
        raise CorruptDataStream(
            f"Line {line_number} is not a JSON object",
            details={"line": line_number},
        )

    if is_arangodump_wrapper(document):
        return document["data"]
    return document
