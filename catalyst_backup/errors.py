# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for Catalyst Backup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_arango_url_env() -> str:
    """
    Explain that the ArangoDB URL environment variable is missing.
    """

    return (
        "ArangoDB is not configured. "
        "Set the CATALYST_ARANGO_URL environment variable or pass arango_url=... to BackupConfig()."
    )


def explain_missing_s3_endpoint_env() -> str:
    """
    Explain that the object storage endpoint is missing.
    """

    return (
        "Object storage is not configured. "
        "Set the CATALYST_S3_ENDPOINT environment variable (for example http://minio:9000) "
        "or pass s3_endpoint_url=... to BackupConfig()."
    )


def explain_invalid_integer_env(name: str, value: str | None, minimum: int) -> str:
    """
    Explain that a numeric environment variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        f"It must be an integer greater than or equal to {minimum}."
    )


def explain_invalid_api_prefix(value: str) -> str:
    """
    Explain that the HTTP prefix is malformed.
    """

    return (
        f"Invalid api_prefix value: {value!r}. "
        "It must start with '/' and must not end with '/', e.g. '/api/backup'."
    )
