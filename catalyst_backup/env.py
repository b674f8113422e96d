# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helper.

Builds a BackupConfig from the same environment variables the host
service uses to reach ArangoDB and MinIO.
"""

from __future__ import annotations

import os

from catalyst_backup.config import BackupConfig
from catalyst_backup.errors import (
    explain_invalid_integer_env,
    explain_missing_arango_url_env,
    explain_missing_s3_endpoint_env,
)
from catalyst_backup.exceptions import ConfigurationError


def _parse_int(name: str, default: int, minimum: int = 1) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_integer_env(name, value, minimum)) from exc
    if number < minimum:
        raise ConfigurationError(explain_invalid_integer_env(name, value, minimum))
    return number


def create_config_from_env() -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    Required:
        - CATALYST_ARANGO_URL: ArangoDB endpoint, e.g. http://arangodb:8529
        - CATALYST_S3_ENDPOINT: S3/MinIO endpoint, e.g. http://minio:9000

    Optional environment variables:
        - CATALYST_ARANGO_DATABASE (default: catalyst)
        - CATALYST_ARANGO_USER (default: root)
        - CATALYST_ARANGO_PASSWORD (default: empty)
        - CATALYST_S3_REGION (default: us-east-1)
        - CATALYST_S3_ACCESS_KEY / CATALYST_S3_SECRET_KEY
        - CATALYST_BACKUP_PREFIX: HTTP prefix (default: /api/backup)
        - CATALYST_BACKUP_EXPORT_BATCH: documents per export batch
        - CATALYST_BACKUP_INSERT_BATCH: documents per bulk insert
        - CATALYST_BACKUP_CHUNK_SIZE: bytes per object read
        - CATALYST_ARANGO_ENCRYPTION: encryption-at-rest algorithm, if any
    """

    arango_url = os.getenv("CATALYST_ARANGO_URL")
    if not arango_url:
        raise ConfigurationError(explain_missing_arango_url_env())

    s3_endpoint = os.getenv("CATALYST_S3_ENDPOINT")
    if not s3_endpoint:
        raise ConfigurationError(explain_missing_s3_endpoint_env())

    return BackupConfig(
        arango_url=arango_url,
        arango_database=os.getenv("CATALYST_ARANGO_DATABASE", "catalyst"),
        arango_username=os.getenv("CATALYST_ARANGO_USER", "root"),
        arango_password=os.getenv("CATALYST_ARANGO_PASSWORD", ""),
        s3_endpoint_url=s3_endpoint,
        s3_region=os.getenv("CATALYST_S3_REGION", "us-east-1"),
        s3_access_key_id=os.getenv("CATALYST_S3_ACCESS_KEY"),
        s3_secret_access_key=os.getenv("CATALYST_S3_SECRET_KEY"),
        api_prefix=os.getenv("CATALYST_BACKUP_PREFIX", "/api/backup"),
        export_batch_size=_parse_int("CATALYST_BACKUP_EXPORT_BATCH", 1000),
        insert_batch_size=_parse_int("CATALYST_BACKUP_INSERT_BATCH", 1000),
        object_chunk_size=_parse_int("CATALYST_BACKUP_CHUNK_SIZE", 1024 * 1024),
        database_encryption=os.getenv("CATALYST_ARANGO_ENCRYPTION") or None,
    )
