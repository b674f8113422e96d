# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup Core - Runtime state shared by backup and restore.

The state holds the borrowed collaborators (document store, S3 session)
plus a lock that lets only one backup or restore run at a time.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, TypedDict

import structlog

from catalyst_backup.config import BackupConfig
from catalyst_backup.exceptions import OperationInProgress
from catalyst_backup.stores import DocumentStore

logger = structlog.get_logger()


class BackupState(TypedDict):
    """Runtime state for backup and restore operations."""

    document_store: DocumentStore
    s3_session: Any  # aiobotocore session
    operation_lock: asyncio.Lock
    running_operation: str | None
    last_backup_at: datetime | None
    last_restore_at: datetime | None
    total_backups: int
    total_restores: int
    last_error: str | None


async def initialize_backup_state(
    config: BackupConfig,
    document_store: DocumentStore | None = None,
    s3_session: Any = None,
) -> BackupState:
    """
    Initialize runtime state.

    Clients that are not passed in are built from the configuration:
    an ArangoDocumentStore and an aiobotocore session.

    Args:
        config: Backup configuration
        document_store: Optional ready-made document store
        s3_session: Optional object with aiobotocore's create_client()

    Returns:
        Initialized BackupState dictionary
    """
    if document_store is None:
        from catalyst_backup.stores.arango import ArangoDocumentStore

        document_store = ArangoDocumentStore.from_config(config)

    if s3_session is None:
        from aiobotocore.session import get_session

        s3_session = get_session()

    logger.debug(
        "backup_state_initialized",
        arango_database=config.arango_database,
        s3_endpoint=config.s3_endpoint_url,
    )

    return BackupState(
        document_store=document_store,
        s3_session=s3_session,
        operation_lock=asyncio.Lock(),
        running_operation=None,
        last_backup_at=None,
        last_restore_at=None,
        total_backups=0,
        total_restores=0,
        last_error=None,
    )


def create_s3_client(config: BackupConfig, state: BackupState) -> Any:
    """Return an async context manager yielding an S3 client for one operation."""
    return state["s3_session"].create_client(
        "s3",
        region_name=config.s3_region,
        endpoint_url=config.s3_endpoint_url,
        aws_access_key_id=config.s3_access_key_id,
        aws_secret_access_key=config.s3_secret_access_key,
    )


@asynccontextmanager
async def exclusive_operation(state: BackupState, operation: str) -> AsyncIterator[None]:
    """
    Hold the operation lock for the duration of a backup or restore.

    Raises:
        OperationInProgress: If another operation already holds the lock
    """
    if state["operation_lock"].locked():
        raise OperationInProgress(
            f"Cannot start {operation}: {state['running_operation']} is in progress",
            details={"running": state["running_operation"]},
        )

    async with state["operation_lock"]:
        state["running_operation"] = operation
        try:
            yield
        finally:
            state["running_operation"] = None


async def shutdown_backup_state(state: BackupState) -> None:
    """Cleanup resources."""
    close = getattr(state["document_store"], "close", None)
    if close is not None:
        try:
            await close()
        except Exception as e:
            logger.warning("document_store_close_failed", error=str(e))

    logger.info("backup_state_shutdown_complete")
