# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Restore Manager - Rebuild both stores from a backup archive.

Restore is strictly ordered and NOT transactional:

1. open the archive and validate its layout (nothing is touched yet)
2. truncate every known collection
3. recreate buckets and write every object
4. apply each collection's structure, then insert its documents

A failure in steps 2-4 leaves the stores in whatever state was reached;
there is no rollback. Run the restore again to converge.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Set, Tuple

import structlog

from catalyst_backup.archive.layout import (
    ENCRYPTION_ENTRY,
    MANIFEST_ENTRY,
    MINIO_PREFIX,
    DumpPair,
    collect_dump_pairs,
    parse_object_entry,
)
from catalyst_backup.archive.reader import ArchiveEntry, ArchiveReader
from catalyst_backup.config import BackupConfig, KnownCollection
from catalyst_backup.core import BackupState, create_s3_client, exclusive_operation
from catalyst_backup.exceptions import BackupCoreError, InvalidUpload, StoreFailure
from catalyst_backup.stores import DocumentStore
from catalyst_backup.stores.dumper import load_documents, restore_structure
from catalyst_backup.stores.mirror import ensure_bucket, put_object_stream

logger = structlog.get_logger()


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    run_id: str | None
    restored_collections: List[str]
    empty_collections: List[str]
    documents_restored: int
    buckets_restored: List[str]
    buckets_created: int
    objects_restored: int
    encryption: str | None
    duration_seconds: float = 0.0
    restored_keys: List[str] = field(default_factory=list)


@dataclass
class _RestorePlan:
    pairs: Dict[KnownCollection, DumpPair]
    buckets: List[str]
    objects: List[Tuple[str, str, ArchiveEntry]]
    encryption: str | None
    manifest: Dict[str, Any] | None


async def restore_archive(
    config: BackupConfig,
    state: BackupState,
    fileobj: BinaryIO,
) -> RestoreResult:
    """
    Restore the full system state from an archive.

    This is the main entry point for restores. Live data is only touched
    after the archive opened and its layout validated.

    Args:
        config: Backup configuration
        state: Runtime state
        fileobj: Seekable binary file object holding the zip archive

    Returns:
        RestoreResult with operation details

    Raises:
        CorruptArchive: Archive index unreadable or layout invalid
        MissingCollectionDump: Structure/data pair incomplete
        CorruptDataStream: Entry fails to decompress or parse
        StoreFailure: Database or object storage operation failed
    """
    async with exclusive_operation(state, "restore"):
        start_time = datetime.now(UTC)

        with ArchiveReader.open(fileobj) as reader:
            plan = _plan_restore(reader)

            logger.info(
                "restore_started",
                run_id=_run_id(plan),
                collections=len(plan.pairs),
                buckets=len(plan.buckets),
                objects=len(plan.objects),
                encryption=plan.encryption,
            )

            try:
                result = await _apply_plan(config, state, reader, plan)
            except Exception as e:
                state["last_error"] = str(e)
                logger.error(
                    "restore_failed",
                    error=str(e),
                    kind=getattr(e, "kind", type(e).__name__),
                )
                raise

        result.duration_seconds = (datetime.now(UTC) - start_time).total_seconds()
        state["last_restore_at"] = datetime.now(UTC)
        state["total_restores"] += 1

        logger.info(
            "restore_completed",
            run_id=result.run_id,
            collections=len(result.restored_collections),
            documents=result.documents_restored,
            objects=result.objects_restored,
            duration=result.duration_seconds,
        )
        return result


async def restore_from_path(
    config: BackupConfig,
    state: BackupState,
    path: Path,
) -> RestoreResult:
    """
    Restore from an archive stored on local disk.

    Raises:
        InvalidUpload: If the file does not exist or is empty
    """
    if not path.is_file() or path.stat().st_size == 0:
        raise InvalidUpload(
            f"Backup file not found or empty: {path}",
            details={"path": str(path)},
        )

    with path.open("rb") as f:
        return await restore_archive(config, state, f)


def _plan_restore(reader: ArchiveReader) -> _RestorePlan:
    """Validate the archive layout and collect everything to restore."""
    pairs = collect_dump_pairs(reader.names())

    buckets: Set[str] = set()
    objects: List[Tuple[str, str, ArchiveEntry]] = []
    for entry in reader.list_entries(MINIO_PREFIX, include_directories=True):
        if entry.name == MINIO_PREFIX:
            continue
        bucket, key = parse_object_entry(entry.name)
        buckets.add(bucket)
        if key:
            objects.append((bucket, key, entry))

    encryption = None
    if reader.has_entry(ENCRYPTION_ENTRY):
        encryption = reader.read_entry(ENCRYPTION_ENTRY).decode("utf-8", "replace").strip()

    manifest = None
    if reader.has_entry(MANIFEST_ENTRY):
        try:
            manifest = json.loads(reader.read_entry(MANIFEST_ENTRY))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            # Informational only; the entries themselves drive the restore
            logger.warning("manifest_unreadable", error=str(e))

    return _RestorePlan(
        pairs=pairs,
        buckets=sorted(buckets),
        objects=objects,
        encryption=encryption,
        manifest=manifest if isinstance(manifest, dict) else None,
    )


async def _apply_plan(
    config: BackupConfig,
    state: BackupState,
    reader: ArchiveReader,
    plan: _RestorePlan,
) -> RestoreResult:
    store = state["document_store"]

    # Step 1: Truncate every known collection
    for collection in KnownCollection:
        await _truncate(store, collection)
    logger.info("collections_truncated", count=len(KnownCollection))

    # Step 2: Buckets and objects
    buckets_created = 0
    restored_keys: List[str] = []
    async with create_s3_client(config, state) as s3_client:
        for bucket in plan.buckets:
            if await ensure_bucket(s3_client, bucket, config.s3_region):
                buckets_created += 1

        for bucket, key, entry in plan.objects:
            await put_object_stream(
                s3_client,
                bucket,
                key,
                reader.iter_chunks(entry.name, config.object_chunk_size),
                entry.size,
                multipart_threshold=config.multipart_threshold,
                part_size=config.multipart_part_size,
            )
            restored_keys.append(f"{bucket}/{key}")
            logger.debug("object_restored", bucket=bucket, key=key, size=entry.size)

    # Step 3: Structure first, then data, per collection
    restored: List[str] = []
    empty: List[str] = []
    documents = 0
    for collection in KnownCollection:
        pair = plan.pairs.get(collection)
        if pair is None:
            empty.append(collection.value)
            logger.warning("collection_missing_from_archive", collection=collection.value)
            continue

        await restore_structure(store, collection, reader.read_entry(pair.structure_entry))
        count = await load_documents(
            store,
            collection,
            reader.iter_chunks(pair.data_entry, config.object_chunk_size),
            config.insert_batch_size,
        )
        documents += count
        restored.append(collection.value)
        logger.debug("collection_restored", collection=collection.value, documents=count)

    return RestoreResult(
        run_id=_run_id(plan),
        restored_collections=restored,
        empty_collections=empty,
        documents_restored=documents,
        buckets_restored=plan.buckets,
        buckets_created=buckets_created,
        objects_restored=len(restored_keys),
        encryption=plan.encryption,
        restored_keys=restored_keys,
    )


async def _truncate(store: DocumentStore, collection: KnownCollection) -> None:
    try:
        await store.truncate(collection.value)
    except BackupCoreError:
        raise
    except Exception as e:
        raise StoreFailure(
            f"Failed to truncate {collection.value}: {e}",
            details={"collection": collection.value},
        ) from e


def _run_id(plan: _RestorePlan) -> str | None:
    if plan.manifest and plan.manifest.get("runId"):
        return str(plan.manifest["runId"])
    suffixes = {pair.suffix for pair in plan.pairs.values()}
    if len(suffixes) == 1:
        return suffixes.pop()
    return None
