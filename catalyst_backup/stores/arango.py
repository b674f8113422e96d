# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ArangoDB Document Store - python-arango adapter for backup and restore.

python-arango is synchronous, so every call runs in a small thread pool
to keep the event loop responsive while large collections stream.

Structure documents use ArangoDB's own (camelCase) property names, the
same shape arangodump writes:

    {"parameters": {"name": ..., "type": 2, "keyOptions": {...}},
     "indexes": [{"type": "persistent", "fields": [...], ...}]}
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, AsyncIterator, Callable, Dict, List

import structlog
from arango import ArangoClient
from arango.exceptions import ArangoError

from catalyst_backup.config import BackupConfig
from catalyst_backup.exceptions import StoreFailure

logger = structlog.get_logger()

# Thread pool for blocking ArangoDB HTTP calls
_executor = ThreadPoolExecutor(max_workers=4)

EDGE_COLLECTION_TYPE = 3
DOCUMENT_COLLECTION_TYPE = 2

# Indexes ArangoDB maintains by itself
_IMPLICIT_INDEX_TYPES = {"primary", "edge"}

# python-arango's formatted index keys mapped back to server names
_INDEX_KEY_MAP = {
    "type": "type",
    "fields": "fields",
    "name": "name",
    "unique": "unique",
    "sparse": "sparse",
    "deduplicate": "deduplicate",
    "expiry_time": "expireAfter",
    "geo_json": "geoJson",
    "legacy_polygons": "legacyPolygons",
    "min_length": "minLength",
    "cache_enabled": "cacheEnabled",
    "stored_values": "storedValues",
}

_EXPORT_QUERY = "FOR doc IN @@collection RETURN doc"


class ArangoDocumentStore:
    """DocumentStore backed by a python-arango database handle."""

    def __init__(self, database: Any, client: ArangoClient | None = None) -> None:
        self._db = database
        self._client = client

    @classmethod
    def from_config(cls, config: BackupConfig) -> "ArangoDocumentStore":
        client = ArangoClient(hosts=config.arango_url)
        database = client.db(
            config.arango_database,
            username=config.arango_username,
            password=config.arango_password,
        )
        return cls(database, client)

    async def close(self) -> None:
        if self._client is not None:
            await self._run("client", self._client.close)
            self._client = None

    async def collection_structure(self, collection: str) -> Dict[str, Any]:
        col = self._db.collection(collection)
        properties = await self._run(collection, col.properties)
        indexes = await self._run(collection, col.indexes)

        return {
            "parameters": _server_parameters(collection, properties),
            "indexes": [
                _server_index(index)
                for index in indexes
                if index.get("type") not in _IMPLICIT_INDEX_TYPES
            ],
        }

    async def export_documents(
        self,
        collection: str,
        batch_size: int,
    ) -> AsyncIterator[Dict[str, Any]]:
        cursor = await self._run(
            collection,
            self._db.aql.execute,
            _EXPORT_QUERY,
            bind_vars={"@collection": collection},
            batch_size=batch_size,
            stream=True,
        )
        try:
            while True:
                batch = cursor.batch()
                while batch:
                    yield batch.popleft()
                if not cursor.has_more():
                    break
                await self._run(collection, cursor.fetch)
        finally:
            await self._run(collection, cursor.close, ignore_missing=True)

    async def truncate(self, collection: str) -> None:
        exists = await self._run(collection, self._db.has_collection, collection)
        if not exists:
            logger.debug("truncate_skipped_missing_collection", collection=collection)
            return
        await self._run(collection, self._db.collection(collection).truncate)

    async def apply_structure(self, collection: str, structure: Dict[str, Any]) -> None:
        parameters = structure.get("parameters") or {}

        exists = await self._run(collection, self._db.has_collection, collection)
        if not exists:
            key_options = parameters.get("keyOptions") or {}
            await self._run(
                collection,
                self._db.create_collection,
                collection,
                edge=parameters.get("type") == EDGE_COLLECTION_TYPE,
                sync=bool(parameters.get("waitForSync", False)),
                key_generator=key_options.get("type", "traditional"),
                user_keys=key_options.get("allowUserKeys", True),
                schema=parameters.get("schema") or None,
            )
            logger.debug("collection_created", collection=collection)

        col = self._db.collection(collection)
        for index in structure.get("indexes") or []:
            if index.get("type") in _IMPLICIT_INDEX_TYPES:
                continue
            await self._run(collection, col.add_index, dict(index))

    async def insert_documents(self, collection: str, documents: List[Dict[str, Any]]) -> None:
        if not documents:
            return
        col = self._db.collection(collection)
        await self._run(
            collection,
            col.import_bulk,
            documents,
            on_duplicate="replace",
            halt_on_error=True,
        )

    async def _run(self, collection: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking python-arango call in the thread pool."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(_executor, partial(func, *args, **kwargs))
        except (ArangoError, OSError) as e:
            raise StoreFailure(
                f"ArangoDB operation failed on {collection}: {e}",
                details={"collection": collection, "operation": getattr(func, "__name__", "call")},
            ) from e


def _server_parameters(collection: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    """Convert python-arango collection properties to server parameter names."""
    edge = properties.get("edge") is True or properties.get("type") in (
        EDGE_COLLECTION_TYPE,
        "edge",
    )
    key_options = properties.get("key_options") or {}

    parameters: Dict[str, Any] = {
        "name": properties.get("name", collection),
        "type": EDGE_COLLECTION_TYPE if edge else DOCUMENT_COLLECTION_TYPE,
        "waitForSync": bool(properties.get("sync", properties.get("wait_for_sync", False))),
        "keyOptions": {
            "type": key_options.get("key_generator", "traditional"),
            "allowUserKeys": key_options.get("user_keys", True),
        },
    }
    if properties.get("schema"):
        parameters["schema"] = properties["schema"]
    return parameters


def _server_index(index: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a python-arango formatted index to an add_index() definition."""
    definition = {
        server_key: index[key]
        for key, server_key in _INDEX_KEY_MAP.items()
        if key in index and index[key] is not None
    }
    # hash and skiplist are aliases of persistent since ArangoDB 3.9
    if definition.get("type") in ("hash", "skiplist"):
        definition["type"] = "persistent"
    return definition
