# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive Layout - Entry names inside a backup archive.

    arango/ENCRYPTION                              encryption marker
    arango/dump.json                               dump manifest
    arango/<collection>_<suffix>.structure.json    collection properties/indexes
    arango/<collection>_<suffix>.data.json.gz      gzip JSON lines
    minio/<bucket>/<key>                           raw object bytes

Structure and data entries of one collection share the same suffix.
Readers locate them by pattern, never by position in the archive.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from catalyst_backup.config import KnownCollection
from catalyst_backup.exceptions import CorruptArchive, MissingCollectionDump

ARANGO_PREFIX = "arango/"
MINIO_PREFIX = "minio/"

ENCRYPTION_ENTRY = ARANGO_PREFIX + "ENCRYPTION"
MANIFEST_ENTRY = ARANGO_PREFIX + "dump.json"

STRUCTURE_SUFFIX = ".structure.json"
DATA_SUFFIX = ".data.json.gz"

_COLLECTION_ENTRY = re.compile(
    r"^arango/(?P<collection>[^/]+)_(?P<suffix>[^_/]+)"
    r"(?P<kind>\.structure\.json|\.data\.json\.gz)$"
)


@dataclass(frozen=True)
class CollectionEntry:
    """A structure or data entry matched by name."""

    name: str
    collection: str
    suffix: str
    kind: str  # "structure" or "data"


@dataclass(frozen=True)
class DumpPair:
    """Matched structure/data entries of one collection."""

    collection: KnownCollection
    suffix: str
    structure_entry: str
    data_entry: str


def structure_entry_name(collection: KnownCollection, suffix: str) -> str:
    return f"{ARANGO_PREFIX}{collection.value}_{suffix}{STRUCTURE_SUFFIX}"


def data_entry_name(collection: KnownCollection, suffix: str) -> str:
    return f"{ARANGO_PREFIX}{collection.value}_{suffix}{DATA_SUFFIX}"


def object_entry_name(bucket: str, key: str) -> str:
    """Entry path of an object: exactly ``minio/<bucket>/<key>``."""
    return f"{MINIO_PREFIX}{bucket}/{key}"


def bucket_entry_name(bucket: str) -> str:
    """Directory entry recording a bucket, so empty buckets survive a restore."""
    return f"{MINIO_PREFIX}{bucket}/"


def parse_object_entry(name: str) -> Tuple[str, str]:
    """
    Split ``minio/<bucket>/<key>`` back into (bucket, key).

    A bucket directory entry ``minio/<bucket>/`` returns an empty key.

    Raises:
        CorruptArchive: If the name has no bucket part
    """
    if not name.startswith(MINIO_PREFIX):
        raise CorruptArchive(f"Not an object entry: {name}", details={"entry": name})

    bucket, sep, key = name[len(MINIO_PREFIX):].partition("/")
    if not bucket or not sep:
        raise CorruptArchive(
            f"Object entry without bucket: {name}",
            details={"entry": name},
        )
    return bucket, key


def match_collection_entry(name: str) -> CollectionEntry | None:
    """Match a collection structure/data entry name, or return None."""
    match = _COLLECTION_ENTRY.match(name)
    if not match:
        return None
    kind = "structure" if match.group("kind") == STRUCTURE_SUFFIX else "data"
    return CollectionEntry(
        name=name,
        collection=match.group("collection"),
        suffix=match.group("suffix"),
        kind=kind,
    )


def collect_dump_pairs(names: Iterable[str]) -> Dict[KnownCollection, DumpPair]:
    """
    Group archive entry names into per-collection dump pairs.

    Collections without any entry are simply absent from the result.

    Raises:
        CorruptArchive: Unknown collection name, or several dumps of one collection
        MissingCollectionDump: Structure without data or data without structure
    """
    grouped: Dict[Tuple[str, str], Dict[str, str]] = {}

    for name in names:
        entry = match_collection_entry(name)
        if entry is None:
            continue
        grouped.setdefault((entry.collection, entry.suffix), {})[entry.kind] = name

    pairs: Dict[KnownCollection, DumpPair] = {}

    for (collection_name, suffix), kinds in sorted(grouped.items()):
        try:
            collection = KnownCollection.parse(collection_name)
        except ValueError:
            raise CorruptArchive(
                f"Archive contains unknown collection: {collection_name}",
                details={"collection": collection_name},
            ) from None

        missing: List[str] = [k for k in ("structure", "data") if k not in kinds]
        if missing:
            raise MissingCollectionDump(
                f"Collection {collection_name} has no {missing[0]} entry",
                details={
                    "collection": collection_name,
                    "suffix": suffix,
                    "missing": missing[0],
                },
            )

        if collection in pairs:
            raise CorruptArchive(
                f"Archive contains more than one dump of collection {collection_name}",
                details={
                    "collection": collection_name,
                    "suffixes": [pairs[collection].suffix, suffix],
                },
            )

        pairs[collection] = DumpPair(
            collection=collection,
            suffix=suffix,
            structure_entry=kinds["structure"],
            data_entry=kinds["data"],
        )

    return pairs
