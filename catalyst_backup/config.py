# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so a running
backup or restore always sees the settings it started with.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List

from catalyst_backup.errors import explain_invalid_api_prefix

# S3 rejects multipart parts smaller than 5 MiB (except the last one)
MIN_MULTIPART_PART_SIZE = 5 * 1024 * 1024


class KnownCollection(str, Enum):
    """
    Collections that make up the application state.

    Member order is the order collections are dumped in.
    """

    AUTOMATIONS = "automations"
    JOBS = "jobs"
    LOGS = "logs"
    MIGRATIONS = "migrations"
    PLAYBOOKS = "playbooks"
    RELATED = "related"
    TEMPLATES = "templates"
    TICKETS = "tickets"
    TICKETTYPES = "tickettypes"
    USERDATA = "userdata"
    USERS = "users"

    @classmethod
    def parse(cls, name: str) -> "KnownCollection":
        """Return the member for ``name`` or raise ValueError for unknown names."""
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown collection: {name!r}") from None


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for backup and restore.

    The database and object storage settings are only used when the
    runtime state builds its own clients; tests and host applications
    may inject ready-made clients instead.
    """

    # ArangoDB connection
    arango_url: str = "http://localhost:8529"
    arango_database: str = "catalyst"
    arango_username: str = "root"
    arango_password: str = ""

    # S3-compatible object storage (MinIO)
    s3_endpoint_url: str | None = None
    s3_region: str = "us-east-1"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None

    # HTTP prefix the create/restore routes are mounted under
    api_prefix: str = "/api/backup"

    # Documents fetched per cursor batch during export
    export_batch_size: int = 1000

    # Documents per bulk insert during restore
    insert_batch_size: int = 1000

    # Keys per list_objects_v2 page
    s3_list_page_size: int = 1000

    # Bytes read per chunk when streaming object bodies
    object_chunk_size: int = 1024 * 1024

    # Objects larger than this are restored with a multipart upload
    multipart_threshold: int = 8 * 1024 * 1024
    multipart_part_size: int = 8 * 1024 * 1024

    # Encryption-at-rest algorithm of the source database, recorded in the
    # archive marker only
    database_encryption: str | None = None

    # gzip level for collection data streams
    compress_level: int = 6

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.arango_url:
            errors.append("arango_url must not be empty")

        if not self.arango_database:
            errors.append("arango_database must not be empty")

        if not self.api_prefix.startswith("/") or self.api_prefix.endswith("/"):
            errors.append(explain_invalid_api_prefix(self.api_prefix))

        for name in (
            "export_batch_size",
            "insert_batch_size",
            "s3_list_page_size",
            "object_chunk_size",
        ):
            value = getattr(self, name)
            if value < 1:
                errors.append(f"{name} must be >= 1, got {value}")

        if self.s3_list_page_size > 1000:
            errors.append(
                f"s3_list_page_size must be <= 1000, got {self.s3_list_page_size}"
            )

        if self.multipart_part_size < MIN_MULTIPART_PART_SIZE:
            errors.append(
                f"multipart_part_size must be >= {MIN_MULTIPART_PART_SIZE}, "
                f"got {self.multipart_part_size}"
            )

        if self.multipart_threshold < self.multipart_part_size:
            errors.append("multipart_threshold must be >= multipart_part_size")

        if not 0 <= self.compress_level <= 9:
            errors.append(f"compress_level must be between 0 and 9, got {self.compress_level}")

        if errors:
            from catalyst_backup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def encryption_marker(self) -> str:
        """Content of the archive's ENCRYPTION entry."""
        return self.database_encryption or "none"

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return BackupConfig(**current)
