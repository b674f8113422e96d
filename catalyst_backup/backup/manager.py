# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup Manager - Full-system backup into one zip archive.

A backup run walks both stores in a fixed order and streams the
archive as it goes:

1. structure + data entry for every known collection
2. every bucket and every object under ``minio/``
3. the encryption marker and the dump manifest
4. the zip central directory

If any step fails the stream stops before the central directory is
written, so a truncated download never opens as a valid archive.
"""

import json
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List

import aiofiles
import structlog
from ulid import ULID

from catalyst_backup.archive.layout import (
    ENCRYPTION_ENTRY,
    MANIFEST_ENTRY,
    bucket_entry_name,
    data_entry_name,
    object_entry_name,
    structure_entry_name,
)
from catalyst_backup.archive.writer import ArchiveWriter
from catalyst_backup.config import BackupConfig, KnownCollection
from catalyst_backup.core import BackupState, create_s3_client, exclusive_operation
from catalyst_backup.exceptions import BackupError
from catalyst_backup.stores.dumper import dump_documents, dump_structure
from catalyst_backup.stores.mirror import list_buckets, list_objects, read_object

logger = structlog.get_logger()

ARCHIVE_MEDIA_TYPE = "application/zip"


@dataclass
class BackupResult:
    """Result of a finished backup run."""

    run_id: str
    collections: List[str]
    buckets: List[str]
    object_count: int
    object_bytes: int
    archive_bytes: int
    encryption: str
    duration_seconds: float = 0.0
    archive_path: str | None = None


class BackupRun:
    """
    One backup, consumed as an async iterator of archive bytes.

    The run id is known before iteration starts so callers can name the
    download; ``result`` is set once the last chunk has been produced.
    """

    def __init__(self, config: BackupConfig, state: BackupState, run_id: str | None = None):
        self.config = config
        self.state = state
        self.run_id = run_id or str(ULID())
        self.result: BackupResult | None = None

    @property
    def filename(self) -> str:
        return f"catalyst-backup-{self.run_id}.zip"

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._stream()

    async def _stream(self) -> AsyncIterator[bytes]:
        async with exclusive_operation(self.state, "backup"):
            start_time = datetime.now(UTC)
            writer = ArchiveWriter()
            collections: List[str] = []
            buckets: List[str] = []
            object_count = 0
            object_bytes = 0

            logger.info("backup_started", run_id=self.run_id)

            try:
                for collection in KnownCollection:
                    async with aclosing(self._write_collection(writer, collection)) as pieces:
                        async for piece in pieces:
                            yield piece
                    collections.append(collection.value)

                async with create_s3_client(self.config, self.state) as s3_client:
                    for bucket in await list_buckets(s3_client):
                        objects = await list_objects(
                            s3_client, bucket, self.config.s3_list_page_size
                        )
                        piece = writer.write_directory(bucket_entry_name(bucket))
                        if piece:
                            yield piece

                        for obj in objects:
                            source = read_object(
                                s3_client, obj.bucket, obj.key, self.config.object_chunk_size
                            )
                            async with aclosing(
                                writer.write_entry(
                                    object_entry_name(obj.bucket, obj.key),
                                    source,
                                    size_hint=obj.size,
                                )
                            ) as pieces:
                                async for piece in pieces:
                                    yield piece
                            object_count += 1
                            object_bytes += obj.size
                            logger.debug(
                                "object_mirrored", bucket=obj.bucket, key=obj.key, size=obj.size
                            )

                        buckets.append(bucket)
                        logger.debug("bucket_mirrored", bucket=bucket, objects=len(objects))

                async for piece in writer.write_bytes(
                    ENCRYPTION_ENTRY, self.config.encryption_marker.encode("utf-8")
                ):
                    yield piece

                manifest = self._manifest(collections, buckets, object_count, start_time)
                async for piece in writer.write_bytes(MANIFEST_ENTRY, manifest):
                    yield piece

                yield writer.close()

            except Exception as e:
                self.state["last_error"] = str(e)
                logger.error("backup_failed", run_id=self.run_id, error=str(e))
                raise
            finally:
                writer.abort()

            duration = (datetime.now(UTC) - start_time).total_seconds()
            self.state["last_backup_at"] = datetime.now(UTC)
            self.state["total_backups"] += 1

            self.result = BackupResult(
                run_id=self.run_id,
                collections=collections,
                buckets=buckets,
                object_count=object_count,
                object_bytes=object_bytes,
                archive_bytes=writer.bytes_written,
                encryption=self.config.encryption_marker,
                duration_seconds=duration,
            )

            logger.info(
                "backup_completed",
                run_id=self.run_id,
                collections=len(collections),
                buckets=len(buckets),
                objects=object_count,
                archive_bytes=writer.bytes_written,
                duration=duration,
            )

    async def _write_collection(
        self,
        writer: ArchiveWriter,
        collection: KnownCollection,
    ) -> AsyncIterator[bytes]:
        """Write the structure/data pair of one collection."""
        structure = await dump_structure(self.state["document_store"], collection)
        async for piece in writer.write_bytes(
            structure_entry_name(collection, self.run_id), structure
        ):
            yield piece

        documents = dump_documents(
            self.state["document_store"],
            collection,
            self.config.export_batch_size,
            level=self.config.compress_level,
        )
        # Already gzip, stored without a second compression pass
        async with aclosing(
            writer.write_entry(
                data_entry_name(collection, self.run_id), documents, compress=False
            )
        ) as pieces:
            async for piece in pieces:
                yield piece

        logger.debug("collection_dumped", run_id=self.run_id, collection=collection.value)

    def _manifest(
        self,
        collections: List[str],
        buckets: List[str],
        object_count: int,
        start_time: datetime,
    ) -> bytes:
        manifest: Dict[str, Any] = {
            "database": self.config.arango_database,
            "runId": self.run_id,
            "createdAt": start_time.isoformat(),
            "encryption": self.config.encryption_marker,
            "collections": [
                {
                    "name": name,
                    "structure": structure_entry_name(KnownCollection(name), self.run_id),
                    "data": data_entry_name(KnownCollection(name), self.run_id),
                }
                for name in collections
            ],
            "buckets": buckets,
            "objectCount": object_count,
        }
        return json.dumps(manifest, indent=2).encode("utf-8")


def stream_backup(config: BackupConfig, state: BackupState) -> BackupRun:
    """
    Start a backup run.

    Iterate the returned run to receive the archive bytes.
    """
    return BackupRun(config, state)


async def write_backup_file(
    config: BackupConfig,
    state: BackupState,
    path: Path,
) -> BackupResult:
    """
    Write a full backup archive to a local file.

    The archive is written to a temporary file and renamed only after
    the run finished, so ``path`` never holds a partial archive.

    Args:
        config: Backup configuration
        state: Runtime state
        path: Destination file

    Returns:
        BackupResult of the run
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    run = BackupRun(config, state)

    try:
        async with aiofiles.open(temp_path, "wb") as f:
            async for piece in run:
                await f.write(piece)
        temp_path.replace(path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise

    if run.result is None:
        raise BackupError("Backup finished without a result", details={"run_id": run.run_id})

    run.result.archive_path = str(path)
    logger.info("backup_file_written", path=str(path), run_id=run.run_id)
    return run.result
