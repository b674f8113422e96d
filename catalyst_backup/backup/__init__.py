# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Full-system backup and restore orchestration.
"""

from catalyst_backup.backup.manager import (
    ARCHIVE_MEDIA_TYPE,
    BackupResult,
    BackupRun,
    stream_backup,
    write_backup_file,
)

from catalyst_backup.backup.restore import (
    restore_archive,
    restore_from_path,
    RestoreResult,
)

__all__ = [
    # Manager
    "ARCHIVE_MEDIA_TYPE",
    "BackupResult",
    "BackupRun",
    "stream_backup",
    "write_backup_file",
    # Restore
    "restore_archive",
    "restore_from_path",
    "RestoreResult",
]
