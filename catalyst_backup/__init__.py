# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup - Full-system backup and restore for ArangoDB + S3.

Produces one zip archive holding every known collection (structure and
gzip JSON lines data) and every object of every bucket, and rebuilds
both stores from such an archive. Package name: catalyst_backup.
"""

__version__ = "0.1.0"

# Configuration
from catalyst_backup.config import BackupConfig, KnownCollection
from catalyst_backup.env import create_config_from_env

# Runtime state
from catalyst_backup.core import (
    initialize_backup_state,
    shutdown_backup_state,
)

# Orchestration
from catalyst_backup.backup import (
    BackupResult,
    RestoreResult,
    restore_archive,
    restore_from_path,
    stream_backup,
    write_backup_file,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "BackupConfig",
    "KnownCollection",
    "create_config_from_env",
    # Runtime state
    "initialize_backup_state",
    "shutdown_backup_state",
    # Backup and restore
    "BackupResult",
    "RestoreResult",
    "stream_backup",
    "write_backup_file",
    "restore_archive",
    "restore_from_path",
]
