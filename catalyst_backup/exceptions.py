# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup Exceptions - Error taxonomy for backup and restore.

Every error carries a ``kind`` (stable identifier reported to HTTP
clients) and a ``status_code`` so operators can tell bad input from
internal store failures.
"""


class BackupCoreError(Exception):
    """Base exception for all backup/restore errors."""

    kind = "BackupCoreError"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "details": self.details}


class ConfigurationError(BackupCoreError):
    """Raised when configuration is invalid."""

    kind = "ConfigurationError"


class BackupError(BackupCoreError):
    """Raised when the archive writer is misused or cannot produce output."""

    kind = "BackupError"


class InvalidUpload(BackupCoreError):
    """Raised when the multipart restore payload is missing or malformed."""

    kind = "InvalidUpload"
    status_code = 400


class CorruptArchive(BackupCoreError):
    """Raised when the archive index cannot be parsed or its layout is invalid."""

    kind = "CorruptArchive"
    status_code = 400


class MissingCollectionDump(BackupCoreError):
    """Raised when a collection has a structure entry without data or vice versa."""

    kind = "MissingCollectionDump"
    status_code = 422


class CorruptDataStream(BackupCoreError):
    """Raised when a data entry fails to decompress or parse mid-stream."""

    kind = "CorruptDataStream"
    status_code = 422


class StoreFailure(BackupCoreError):
    """Raised when a database or object-storage operation fails."""

    kind = "StoreFailure"
    status_code = 502


class OperationInProgress(BackupCoreError):
    """Raised when a backup or restore is already running."""

    kind = "OperationInProgress"
    status_code = 409
