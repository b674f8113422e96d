# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Store Layer - Narrow interfaces to the document database and object storage.
"""

from typing import Any, AsyncIterator, Dict, List, Protocol


class DocumentStore(Protocol):
    """Protocol for the per-collection operations backup and restore need."""

    async def collection_structure(self, collection: str) -> Dict[str, Any]:
        """
        Return ``{"parameters": {...}, "indexes": [...]}`` for a collection.

        Must not scan documents.
        """
        ...

    def export_documents(self, collection: str, batch_size: int) -> AsyncIterator[Dict[str, Any]]:
        """Yield every document of a collection through a batched cursor."""
        ...

    async def truncate(self, collection: str) -> None:
        """Remove all documents; creates nothing and succeeds on empty collections."""
        ...

    async def apply_structure(self, collection: str, structure: Dict[str, Any]) -> None:
        """Create the collection if missing and ensure its indexes exist."""
        ...

    async def insert_documents(self, collection: str, documents: List[Dict[str, Any]]) -> None:
        """Bulk insert documents, replacing documents with the same key."""
        ...


__all__ = [
    "DocumentStore",
]
