# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object Mirror - Enumerate and replay every bucket and object.

Works against an aiobotocore S3 client (MinIO in production). Buckets and
keys are visited in lexical order so archives are reproducible, and
object bodies are always moved in chunks.
"""

from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Dict, List

import structlog
from botocore.exceptions import ClientError

from catalyst_backup.exceptions import BackupCoreError, StoreFailure

logger = structlog.get_logger()

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


@dataclass(frozen=True)
class MirroredObject:
    """An object discovered in object storage."""

    bucket: str
    key: str
    size: int


async def list_buckets(s3_client: Any) -> List[str]:
    """List all bucket names, sorted."""
    try:
        response = await s3_client.list_buckets()
    except Exception as e:
        raise StoreFailure(f"Failed to list buckets: {e}") from e

    return sorted(bucket["Name"] for bucket in response.get("Buckets", []))


async def list_objects(
    s3_client: Any,
    bucket: str,
    page_size: int = 1000,
) -> List[MirroredObject]:
    """
    List every object in a bucket, sorted by key.

    The full listing is collected before any body is read so a failing
    bucket never yields a partial inventory.
    """
    objects: List[MirroredObject] = []
    paginator = s3_client.get_paginator("list_objects_v2")

    try:
        async for page in paginator.paginate(Bucket=bucket, MaxKeys=page_size):
            for obj in page.get("Contents", []):
                objects.append(
                    MirroredObject(bucket=bucket, key=obj["Key"], size=obj.get("Size", 0))
                )
    except Exception as e:
        raise StoreFailure(
            f"Failed to list objects in bucket {bucket}: {e}",
            details={"bucket": bucket, "listed": len(objects)},
        ) from e

    objects.sort(key=lambda o: o.key)
    return objects


async def read_object(
    s3_client: Any,
    bucket: str,
    key: str,
    chunk_size: int = 1024 * 1024,
) -> AsyncIterator[bytes]:
    """Stream an object's body in chunks."""
    try:
        response = await s3_client.get_object(Bucket=bucket, Key=key)
        async with response["Body"] as stream:
            while True:
                chunk = await stream.read(chunk_size)
                if not chunk:
                    break
                yield chunk
    except BackupCoreError:
        raise
    except Exception as e:
        raise StoreFailure(
            f"Failed to read object {bucket}/{key}: {e}",
            details={"bucket": bucket, "key": key},
        ) from e


async def ensure_bucket(s3_client: Any, bucket: str, region: str = "us-east-1") -> bool:
    """
    Create a bucket unless it already exists.

    Returns:
        True if the bucket was created
    """
    try:
        await s3_client.head_bucket(Bucket=bucket)
        return False
    except ClientError as e:
        code = str(e.response.get("Error", {}).get("Code", ""))
        if code not in _MISSING_BUCKET_CODES:
            raise StoreFailure(
                f"Failed to check bucket {bucket}: {e}",
                details={"bucket": bucket},
            ) from e
    except Exception as e:
        raise StoreFailure(
            f"Failed to check bucket {bucket}: {e}",
            details={"bucket": bucket},
        ) from e

    kwargs: Dict[str, Any] = {"Bucket": bucket}
    if region != "us-east-1":
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}

    try:
        await s3_client.create_bucket(**kwargs)
    except Exception as e:
        raise StoreFailure(
            f"Failed to create bucket {bucket}: {e}",
            details={"bucket": bucket},
        ) from e

    logger.info("bucket_created", bucket=bucket)
    return True


async def put_object_stream(
    s3_client: Any,
    bucket: str,
    key: str,
    chunks: AsyncIterable[bytes],
    size: int,
    multipart_threshold: int = 8 * 1024 * 1024,
    part_size: int = 8 * 1024 * 1024,
) -> None:
    """
    Write an object, overwriting any existing object with the same key.

    Objects up to ``multipart_threshold`` bytes go through a single
    put_object; larger ones are uploaded in parts of ``part_size``.
    """
    if size <= multipart_threshold:
        body = b"".join([chunk async for chunk in chunks])
        try:
            await s3_client.put_object(Bucket=bucket, Key=key, Body=body)
        except Exception as e:
            raise StoreFailure(
                f"Failed to write object {bucket}/{key}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e
        return

    await _multipart_upload(s3_client, bucket, key, chunks, part_size)


async def _multipart_upload(
    s3_client: Any,
    bucket: str,
    key: str,
    chunks: AsyncIterable[bytes],
    part_size: int,
) -> None:
    try:
        upload = await s3_client.create_multipart_upload(Bucket=bucket, Key=key)
    except Exception as e:
        raise StoreFailure(
            f"Failed to start multipart upload for {bucket}/{key}: {e}",
            details={"bucket": bucket, "key": key},
        ) from e

    upload_id = upload["UploadId"]
    parts: List[Dict[str, Any]] = []
    buffer = bytearray()

    async def _send_part(data: bytes) -> None:
        number = len(parts) + 1
        response = await s3_client.upload_part(
            Bucket=bucket,
            Key=key,
            PartNumber=number,
            UploadId=upload_id,
            Body=data,
        )
        parts.append({"ETag": response["ETag"], "PartNumber": number})

    try:
        async for chunk in chunks:
            buffer += chunk
            while len(buffer) >= part_size:
                await _send_part(bytes(buffer[:part_size]))
                del buffer[:part_size]

        if buffer or not parts:
            await _send_part(bytes(buffer))

        await s3_client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )
    except BaseException as e:
        try:
            await s3_client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
        except Exception as abort_error:
            logger.warning(
                "multipart_abort_failed",
                bucket=bucket,
                key=key,
                error=str(abort_error),
            )
        if isinstance(e, BackupCoreError) or not isinstance(e, Exception):
            raise
        raise StoreFailure(
            f"Failed to upload object {bucket}/{key}: {e}",
            details={"bucket": bucket, "key": key, "parts": len(parts)},
        ) from e

    logger.debug("multipart_upload_completed", bucket=bucket, key=key, parts=len(parts))
