# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Collection Dumper - Structure and data streams for one collection.

Backup side produces the structure document and a gzip JSON lines
stream; restore side replays them into the document store.
"""

import json
from typing import Any, AsyncIterable, AsyncIterator, Dict, List

import structlog

from catalyst_backup.archive.compressor import (
    DEFAULT_GZIP_LEVEL,
    decode_json_lines,
    encode_json_lines,
    gunzip_stream,
    gzip_stream,
)
from catalyst_backup.config import KnownCollection
from catalyst_backup.exceptions import BackupCoreError, CorruptDataStream, StoreFailure
from catalyst_backup.stores import DocumentStore

logger = structlog.get_logger()


async def dump_structure(store: DocumentStore, collection: KnownCollection) -> bytes:
    """
    Serialize a collection's properties and indexes.

    Raises:
        StoreFailure: If the collection metadata cannot be read
    """
    try:
        structure = await store.collection_structure(collection.value)
    except BackupCoreError:
        raise
    except Exception as e:
        raise StoreFailure(
            f"Failed to read structure of {collection.value}: {e}",
            details={"collection": collection.value},
        ) from e

    return json.dumps(structure, indent=2, sort_keys=True).encode("utf-8")


async def dump_documents(
    store: DocumentStore,
    collection: KnownCollection,
    batch_size: int,
    level: int = DEFAULT_GZIP_LEVEL,
) -> AsyncIterator[bytes]:
    """
    Stream every document of a collection as gzip-compressed JSON lines.

    Raises:
        StoreFailure: If reading from the collection fails part way
    """
    async for chunk in gzip_stream(
        encode_json_lines(_export(store, collection, batch_size)),
        level=level,
    ):
        yield chunk


async def _export(
    store: DocumentStore,
    collection: KnownCollection,
    batch_size: int,
) -> AsyncIterator[Dict[str, Any]]:
    count = 0
    try:
        async for document in store.export_documents(collection.value, batch_size):
            count += 1
            yield document
    except BackupCoreError:
        raise
    except Exception as e:
        raise StoreFailure(
            f"Failed to export documents of {collection.value}: {e}",
            details={"collection": collection.value, "exported": count},
        ) from e

    logger.debug("collection_exported", collection=collection.value, documents=count)


async def restore_structure(
    store: DocumentStore,
    collection: KnownCollection,
    structure_bytes: bytes,
) -> None:
    """
    Apply a structure document to the live database.

    Raises:
        CorruptDataStream: If the structure document is not a JSON object
        StoreFailure: If the collection or its indexes cannot be created
    """
    try:
        structure = json.loads(structure_bytes)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptDataStream(
            f"Invalid structure document for {collection.value}: {e}",
            details={"collection": collection.value},
        ) from e

    if not isinstance(structure, dict):
        raise CorruptDataStream(
            f"Structure document for {collection.value} is not a JSON object",
            details={"collection": collection.value},
        )

    try:
        await store.apply_structure(collection.value, structure)
    except BackupCoreError:
        raise
    except Exception as e:
        raise StoreFailure(
            f"Failed to apply structure of {collection.value}: {e}",
            details={"collection": collection.value},
        ) from e


async def load_documents(
    store: DocumentStore,
    collection: KnownCollection,
    chunks: AsyncIterable[bytes],
    batch_size: int,
) -> int:
    """
    Decompress a data stream and bulk insert its documents.

    Returns:
        Number of documents inserted

    Raises:
        CorruptDataStream: If the stream fails to decompress or parse
        StoreFailure: If an insert fails
    """
    batch: List[Dict[str, Any]] = []
    inserted = 0

    async for document in decode_json_lines(gunzip_stream(chunks)):
        batch.append(document)
        if len(batch) >= batch_size:
            await _insert(store, collection, batch)
            inserted += len(batch)
            batch = []

    if batch:
        await _insert(store, collection, batch)
        inserted += len(batch)

    return inserted


async def _insert(
    store: DocumentStore,
    collection: KnownCollection,
    documents: List[Dict[str, Any]],
) -> None:
    try:
        await store.insert_documents(collection.value, documents)
    except BackupCoreError:
        raise
    except Exception as e:
        raise StoreFailure(
            f"Failed to insert documents into {collection.value}: {e}",
            details={"collection": collection.value, "batch_size": len(documents)},
        ) from e
