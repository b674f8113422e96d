# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ArangoDB Document Store Tests.

The python-arango database handle is replaced by small stand-ins that
record calls, so these tests cover the adapter's translation and cursor
handling without a server.
"""

from collections import deque

import pytest
from arango.exceptions import ArangoError

from catalyst_backup.exceptions import StoreFailure
from catalyst_backup.stores.arango import ArangoDocumentStore


class StubCursor:
    """Streams pre-split batches the way a python-arango cursor does."""

    def __init__(self, batches):
        self._pending = deque(deque(batch) for batch in batches)
        self._batch = self._pending.popleft() if self._pending else deque()
        self.fetches = 0
        self.closed_with = None

    def batch(self):
        return self._batch

    def has_more(self):
        return bool(self._pending)

    def fetch(self):
        self.fetches += 1
        self._batch.extend(self._pending.popleft())

    def close(self, ignore_missing=False):
        self.closed_with = {"ignore_missing": ignore_missing}
        return True


class StubCollection:
    def __init__(self, properties=None, indexes=None, fail=None):
        self._properties = properties or {}
        self._indexes = indexes or []
        self._fail = fail or set()
        self.added_indexes = []
        self.imported = []
        self.truncated = False

    def _check(self, operation):
        if operation in self._fail:
            raise ArangoError(f"{operation} boom")

    def properties(self):
        self._check("properties")
        return dict(self._properties)

    def indexes(self):
        self._check("indexes")
        return list(self._indexes)

    def add_index(self, data):
        self._check("add_index")
        self.added_indexes.append(data)
        return data

    def import_bulk(self, documents, **kwargs):
        self._check("import_bulk")
        self.imported.append((list(documents), kwargs))
        return {"created": len(documents)}

    def truncate(self):
        self._check("truncate")
        self.truncated = True
        return True


class StubAQL:
    def __init__(self):
        self.cursor = None
        self.executed = []

    def execute(self, query, **kwargs):
        self.executed.append((query, kwargs))
        return self.cursor


class StubDatabase:
    def __init__(self, collections=None):
        self.collections = collections or {}
        self.created = []
        self.aql = StubAQL()

    def collection(self, name):
        return self.collections.setdefault(name, StubCollection())

    def has_collection(self, name):
        return name in self.collections

    def create_collection(self, name, **kwargs):
        self.created.append((name, kwargs))
        self.collections[name] = StubCollection()
        return self.collections[name]


# ============================================================================
# Structure
# ============================================================================

@pytest.mark.asyncio
async def test_collection_structure_uses_server_names():
    """Properties and indexes come back in arangodump's camelCase shape."""
    db = StubDatabase({
        "tickets": StubCollection(
            properties={
                "name": "tickets",
                "type": "document",
                "edge": False,
                "sync": True,
                "key_options": {"key_generator": "autoincrement", "user_keys": False},
                "schema": {"rule": {"type": "object"}, "level": "moderate"},
            },
            indexes=[
                {"id": "tickets/0", "type": "primary", "fields": ["_key"], "unique": True},
                {
                    "id": "tickets/1",
                    "type": "hash",
                    "fields": ["status"],
                    "unique": False,
                    "sparse": True,
                    "name": "idx_status",
                },
                {"id": "tickets/2", "type": "ttl", "fields": ["created"], "expiry_time": 3600},
            ],
        ),
    })
    store = ArangoDocumentStore(db)

    structure = await store.collection_structure("tickets")

    assert structure["parameters"] == {
        "name": "tickets",
        "type": 2,
        "waitForSync": True,
        "keyOptions": {"type": "autoincrement", "allowUserKeys": False},
        "schema": {"rule": {"type": "object"}, "level": "moderate"},
    }
    assert structure["indexes"] == [
        {
            "type": "persistent",
            "fields": ["status"],
            "name": "idx_status",
            "unique": False,
            "sparse": True,
        },
        {"type": "ttl", "fields": ["created"], "expireAfter": 3600},
    ]


@pytest.mark.asyncio
async def test_related_is_an_edge_collection():
    db = StubDatabase({
        "related": StubCollection(
            properties={"name": "related", "type": "edge", "edge": True},
            indexes=[
                {"type": "primary", "fields": ["_key"]},
                {"type": "edge", "fields": ["_from", "_to"]},
            ],
        ),
    })
    store = ArangoDocumentStore(db)

    structure = await store.collection_structure("related")

    assert structure["parameters"]["type"] == 3
    assert structure["parameters"]["keyOptions"] == {"type": "traditional", "allowUserKeys": True}
    assert "schema" not in structure["parameters"]
    # Implicit indexes are rebuilt by the server
    assert structure["indexes"] == []


@pytest.mark.asyncio
async def test_apply_structure_creates_edge_collection():
    db = StubDatabase()
    store = ArangoDocumentStore(db)

    await store.apply_structure("related", {
        "parameters": {
            "name": "related",
            "type": 3,
            "waitForSync": True,
            "keyOptions": {"type": "uuid", "allowUserKeys": False},
        },
        "indexes": [
            {"type": "primary", "fields": ["_key"]},
            {"type": "persistent", "fields": ["kind"]},
        ],
    })

    assert db.created == [(
        "related",
        {
            "edge": True,
            "sync": True,
            "key_generator": "uuid",
            "user_keys": False,
            "schema": None,
        },
    )]
    assert db.collections["related"].added_indexes == [{"type": "persistent", "fields": ["kind"]}]


@pytest.mark.asyncio
async def test_apply_structure_keeps_existing_collection():
    db = StubDatabase({"tickets": StubCollection()})
    store = ArangoDocumentStore(db)

    await store.apply_structure("tickets", {"parameters": {"type": 2}, "indexes": []})

    assert db.created == []


# ============================================================================
# Documents
# ============================================================================

@pytest.mark.asyncio
async def test_export_reads_every_cursor_batch():
    """All batches are drained and the server cursor is released."""
    db = StubDatabase({"logs": StubCollection()})
    db.aql.cursor = StubCursor([
        [{"_key": "1"}, {"_key": "2"}],
        [{"_key": "3"}, {"_key": "4"}],
        [{"_key": "5"}],
    ])
    store = ArangoDocumentStore(db)

    documents = [doc async for doc in store.export_documents("logs", batch_size=2)]

    assert [doc["_key"] for doc in documents] == ["1", "2", "3", "4", "5"]
    assert db.aql.cursor.fetches == 2
    assert db.aql.cursor.closed_with == {"ignore_missing": True}

    query, kwargs = db.aql.executed[0]
    assert "@@collection" in query
    assert kwargs["bind_vars"] == {"@collection": "logs"}
    assert kwargs["batch_size"] == 2
    assert kwargs["stream"] is True


@pytest.mark.asyncio
async def test_export_closes_cursor_when_abandoned():
    db = StubDatabase({"logs": StubCollection()})
    db.aql.cursor = StubCursor([[{"_key": "1"}, {"_key": "2"}], [{"_key": "3"}]])
    store = ArangoDocumentStore(db)

    stream = store.export_documents("logs", batch_size=2)
    assert (await anext(stream))["_key"] == "1"
    await stream.aclose()

    assert db.aql.cursor.closed_with == {"ignore_missing": True}


@pytest.mark.asyncio
async def test_export_empty_collection():
    db = StubDatabase({"jobs": StubCollection()})
    db.aql.cursor = StubCursor([])
    store = ArangoDocumentStore(db)

    documents = [doc async for doc in store.export_documents("jobs", batch_size=10)]

    assert documents == []
    assert db.aql.cursor.fetches == 0


@pytest.mark.asyncio
async def test_insert_documents_replaces_duplicates():
    db = StubDatabase({"tickets": StubCollection()})
    store = ArangoDocumentStore(db)

    await store.insert_documents("tickets", [{"_key": "1"}, {"_key": "2"}])
    await store.insert_documents("tickets", [])

    assert db.collections["tickets"].imported == [(
        [{"_key": "1"}, {"_key": "2"}],
        {"on_duplicate": "replace", "halt_on_error": True},
    )]


@pytest.mark.asyncio
async def test_truncate_skips_missing_collection():
    db = StubDatabase({"tickets": StubCollection()})
    store = ArangoDocumentStore(db)

    await store.truncate("tickets")
    await store.truncate("playbooks")

    assert db.collections["tickets"].truncated
    assert "playbooks" not in db.collections


# ============================================================================
# Errors
# ============================================================================

@pytest.mark.asyncio
async def test_driver_errors_become_store_failures():
    db = StubDatabase({"tickets": StubCollection(fail={"properties"})})
    store = ArangoDocumentStore(db)

    with pytest.raises(StoreFailure) as exc_info:
        await store.collection_structure("tickets")

    assert exc_info.value.details == {"collection": "tickets", "operation": "properties"}
    assert isinstance(exc_info.value.__cause__, ArangoError)


@pytest.mark.asyncio
async def test_insert_error_names_collection():
    db = StubDatabase({"logs": StubCollection(fail={"import_bulk"})})
    store = ArangoDocumentStore(db)

    with pytest.raises(StoreFailure) as exc_info:
        await store.insert_documents("logs", [{"_key": "1"}])

    assert exc_info.value.details["collection"] == "logs"
    assert exc_info.value.details["operation"] == "import_bulk"


@pytest.mark.asyncio
async def test_close_without_client_is_noop():
    store = ArangoDocumentStore(StubDatabase())
    await store.close()
