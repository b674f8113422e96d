# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for Catalyst Backup tests.

Provides in-memory stand-ins for the ArangoDB document store and the
aiobotocore S3 client, plus configuration and state helpers.
"""

import copy
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Generator, List

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError

from catalyst_backup.config import BackupConfig, KnownCollection

# Set test environment variables
os.environ["CATALYST_BACKUP_API_KEY"] = "test-api-key-12345"

TICKET_NAME = "phishing from selenafadel@von.com detected"


# ============================================================================
# Fake document store
# ============================================================================

class FakeDocumentStore:
    """In-memory DocumentStore with failure injection."""

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.fail_on: Dict[str, set] = {
            "structure": set(),
            "export": set(),
            "truncate": set(),
            "apply": set(),
            "insert": set(),
        }
        self.calls: List[tuple] = []
        self.closed = False

        for collection in KnownCollection:
            self.create(collection.value)

    def create(self, name: str, indexes: List[dict] | None = None) -> None:
        self.collections[name] = {
            "structure": {
                "parameters": {"name": name, "type": 2, "waitForSync": False},
                "indexes": indexes or [],
            },
            "documents": {},
        }

    def add(self, name: str, document: dict) -> None:
        self.collections[name]["documents"][document["_key"]] = copy.deepcopy(document)

    def documents(self, name: str) -> List[dict]:
        if name not in self.collections:
            return []
        docs = self.collections[name]["documents"]
        return [docs[key] for key in sorted(docs)]

    def _check(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        if collection in self.fail_on[operation]:
            raise RuntimeError(f"injected {operation} failure on {collection}")

    async def collection_structure(self, collection: str) -> Dict[str, Any]:
        self._check("structure", collection)
        return copy.deepcopy(self.collections[collection]["structure"])

    async def export_documents(self, collection: str, batch_size: int) -> AsyncIterator[Dict[str, Any]]:
        self.calls.append(("export", collection))
        for index, document in enumerate(self.documents(collection)):
            if collection in self.fail_on["export"] and index >= 1:
                raise RuntimeError(f"injected export failure on {collection}")
            yield copy.deepcopy(document)
        if collection in self.fail_on["export"]:
            raise RuntimeError(f"injected export failure on {collection}")

    async def truncate(self, collection: str) -> None:
        self._check("truncate", collection)
        if collection in self.collections:
            self.collections[collection]["documents"].clear()

    async def apply_structure(self, collection: str, structure: Dict[str, Any]) -> None:
        self._check("apply", collection)
        if collection not in self.collections:
            self.create(collection)
        self.collections[collection]["structure"] = copy.deepcopy(structure)

    async def insert_documents(self, collection: str, documents: List[Dict[str, Any]]) -> None:
        self._check("insert", collection)
        for document in documents:
            self.add(collection, document)

    async def close(self) -> None:
        self.closed = True

    def truncate_all(self) -> None:
        for data in self.collections.values():
            data["documents"].clear()


# ============================================================================
# Fake S3 (aiobotocore-shaped)
# ============================================================================

def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeBody:
    """Async streaming body like aiobotocore's StreamingBody."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0
        self.closed = False

    async def __aenter__(self) -> "FakeBody":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True

    async def read(self, amt: int | None = None) -> bytes:
        if amt is None:
            amt = len(self._data) - self._offset
        chunk = self._data[self._offset:self._offset + amt]
        self._offset += len(chunk)
        return chunk


class FakePaginator:
    def __init__(self, client: "FakeS3Client") -> None:
        self._client = client

    async def paginate(self, Bucket: str, MaxKeys: int = 1000, **kwargs) -> AsyncIterator[dict]:
        if Bucket in self._client.fail_list:
            raise _client_error("InternalError", "ListObjectsV2")
        if Bucket not in self._client.buckets:
            raise _client_error("NoSuchBucket", "ListObjectsV2")
        keys = sorted(self._client.buckets[Bucket])
        for start in range(0, max(len(keys), 1), MaxKeys):
            page = keys[start:start + MaxKeys]
            yield {
                "Contents": [
                    {"Key": key, "Size": len(self._client.buckets[Bucket][key])}
                    for key in page
                ]
            }


class FakeS3Client:
    """In-memory S3 client exposing the calls backup and restore use."""

    def __init__(self) -> None:
        self.buckets: Dict[str, Dict[str, bytes]] = {}
        self.fail_list: set = set()
        self.fail_put: set = set()
        self.multipart_uploads: Dict[str, dict] = {}
        self.completed_multipart: List[str] = []
        self.aborted_multipart: List[str] = []
        self.put_calls: List[str] = []

    async def list_buckets(self) -> dict:
        # Deliberately unsorted to check the mirror orders buckets itself
        return {"Buckets": [{"Name": name} for name in reversed(list(self.buckets))]}

    def get_paginator(self, operation: str) -> FakePaginator:
        assert operation == "list_objects_v2"
        return FakePaginator(self)

    async def get_object(self, Bucket: str, Key: str) -> dict:
        try:
            data = self.buckets[Bucket][Key]
        except KeyError:
            raise _client_error("NoSuchKey", "GetObject") from None
        return {"Body": FakeBody(data), "ContentLength": len(data)}

    async def head_bucket(self, Bucket: str) -> dict:
        if Bucket not in self.buckets:
            raise _client_error("404", "HeadBucket")
        return {}

    async def create_bucket(self, Bucket: str, **kwargs) -> dict:
        if Bucket in self.buckets:
            raise _client_error("BucketAlreadyOwnedByYou", "CreateBucket")
        self.buckets[Bucket] = {}
        return {}

    async def delete_bucket(self, Bucket: str) -> dict:
        del self.buckets[Bucket]
        return {}

    async def put_object(self, Bucket: str, Key: str, Body: bytes = b"", **kwargs) -> dict:
        if Bucket not in self.buckets:
            raise _client_error("NoSuchBucket", "PutObject")
        if Key in self.fail_put:
            raise _client_error("InternalError", "PutObject")
        self.put_calls.append(f"{Bucket}/{Key}")
        self.buckets[Bucket][Key] = bytes(Body)
        return {}

    async def create_multipart_upload(self, Bucket: str, Key: str, **kwargs) -> dict:
        upload_id = f"upload-{len(self.multipart_uploads) + 1}"
        self.multipart_uploads[upload_id] = {"bucket": Bucket, "key": Key, "parts": {}}
        return {"UploadId": upload_id}

    async def upload_part(
        self, Bucket: str, Key: str, PartNumber: int, UploadId: str, Body: bytes
    ) -> dict:
        if Key in self.fail_put:
            raise _client_error("InternalError", "UploadPart")
        self.multipart_uploads[UploadId]["parts"][PartNumber] = bytes(Body)
        return {"ETag": f'"etag-{PartNumber}"'}

    async def complete_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str, MultipartUpload: dict
    ) -> dict:
        upload = self.multipart_uploads.pop(UploadId)
        numbers = [part["PartNumber"] for part in MultipartUpload["Parts"]]
        self.buckets[Bucket][Key] = b"".join(upload["parts"][n] for n in numbers)
        self.completed_multipart.append(f"{Bucket}/{Key}")
        return {}

    async def abort_multipart_upload(self, Bucket: str, Key: str, UploadId: str) -> dict:
        self.multipart_uploads.pop(UploadId, None)
        self.aborted_multipart.append(f"{Bucket}/{Key}")
        return {}

    def delete_all_buckets(self) -> None:
        self.buckets.clear()


class FakeS3Session:
    """Stands in for aiobotocore's session.create_client()."""

    def __init__(self, client: FakeS3Client) -> None:
        self.client = client
        self.client_kwargs: List[dict] = []

    @asynccontextmanager
    async def create_client(self, service: str, **kwargs) -> AsyncIterator[FakeS3Client]:
        assert service == "s3"
        self.client_kwargs.append(kwargs)
        yield self.client


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def document_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def test_config() -> BackupConfig:
    """Create a test configuration with small batches and part sizes."""
    return BackupConfig(
        arango_url="http://arangodb:8529",
        arango_database="catalyst",
        s3_endpoint_url="http://minio:9000",
        export_batch_size=2,
        insert_batch_size=2,
        s3_list_page_size=2,
        object_chunk_size=4,
        multipart_threshold=5 * 1024 * 1024,
        multipart_part_size=5 * 1024 * 1024,
    )


@pytest_asyncio.fixture
async def test_state(test_config, document_store, s3_client):
    """Create initialized backup state wired to the fakes."""
    from catalyst_backup.core import initialize_backup_state

    state = await initialize_backup_state(
        test_config,
        document_store=document_store,
        s3_session=FakeS3Session(s3_client),
    )
    yield state


def seed_catalyst(document_store: FakeDocumentStore, s3_client: FakeS3Client) -> None:
    """Populate both stores with the ticket/file scenario data."""
    s3_client.buckets["catalyst-8125"] = {"test.txt": b"test text"}
    document_store.add(
        "tickets",
        {"_key": "8125", "name": TICKET_NAME, "type": "incident", "files": [{"key": "test.txt"}]},
    )
    document_store.add("tickets", {"_key": "8126", "name": "malware detected", "type": "alert"})
    document_store.add("users", {"_key": "bob", "apikey": False, "roles": ["analyst"]})
    document_store.add("tickettypes", {"_key": "incident", "name": "Incidents"})


async def collect(stream: AsyncIterator[bytes]) -> bytes:
    """Join every chunk of an async byte stream."""
    return b"".join([chunk async for chunk in stream])
