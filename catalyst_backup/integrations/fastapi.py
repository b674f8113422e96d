# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Catalyst Backup FastAPI Integration - Backup and restore endpoints.

This module provides:
- GET  {prefix}/create   stream a full backup archive
- POST {prefix}/restore  restore from an uploaded archive (form field "backup")
- GET  {prefix}/status   last run times and counters
- Lifespan management for the runtime state
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, AsyncIterator, Callable

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.datastructures import FormData
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from catalyst_backup.backup.manager import ARCHIVE_MEDIA_TYPE, BackupRun
from catalyst_backup.backup.restore import restore_archive
from catalyst_backup.config import BackupConfig
from catalyst_backup.core import (
    BackupState,
    initialize_backup_state,
    shutdown_backup_state,
)
from catalyst_backup.exceptions import BackupCoreError, BackupError, InvalidUpload

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)

PERMISSION_CREATE = "backup:create"
PERMISSION_RESTORE = "backup:restore"

# Multipart field holding the uploaded archive
UPLOAD_FIELD = "backup"

# Builds a FastAPI dependency that enforces one permission
Authorizer = Callable[[str], Callable[..., Any]]


def require_permission(permission: str) -> Callable[..., Any]:
    """
    Default authorizer: a Bearer API key that grants every backup permission.

    The API key is read from the CATALYST_BACKUP_API_KEY environment variable.
    Host applications with real role checks pass their own authorizer to
    register_backup_routes().
    """

    async def verify_api_key(
        credentials: HTTPAuthorizationCredentials | None = Depends(security),
    ) -> bool:
        api_key = os.getenv("CATALYST_BACKUP_API_KEY")

        if not api_key:
            raise HTTPException(
                status_code=500,
                detail="CATALYST_BACKUP_API_KEY environment variable not set",
            )

        if not credentials:
            raise HTTPException(
                status_code=401,
                detail="Authorization header required",
            )

        if credentials.credentials != api_key:
            raise HTTPException(
                status_code=403,
                detail=f"Missing permission {permission}",
            )

        return True

    return verify_api_key


def error_response(error: BackupCoreError) -> JSONResponse:
    """Render an error with its kind so clients can tell bad input from store failures."""
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def _read_upload_form(request: Request) -> FormData:
    """
    Parse the restore request body as multipart form data.

    Raises:
        InvalidUpload: If the body is not multipart or cannot be parsed
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        raise InvalidUpload(
            "Restore expects a multipart/form-data upload",
            details={"content_type": content_type},
        )

    try:
        return await request.form()
    except (StarletteHTTPException, MultiPartException, ValueError, KeyError) as e:
        # Starlette reports parser errors as HTTP 400 without an error kind
        raise InvalidUpload(
            f"Malformed multipart upload: {getattr(e, 'detail', e)}",
            details={"content_type": content_type},
        ) from e


def register_backup_routes(
    app: FastAPI,
    config: BackupConfig,
    state: BackupState,
    authorize: Authorizer = require_permission,
) -> None:
    """
    Register backup endpoints on a FastAPI app.

    Args:
        app: FastAPI application
        config: Backup configuration
        state: Runtime state
        authorize: Factory turning a permission name into a dependency
    """
    prefix = config.api_prefix

    @app.get(f"{prefix}/create", dependencies=[Depends(authorize(PERMISSION_CREATE))])
    async def create_backup():
        """
        Stream a full backup archive.

        The first chunk is produced before the response starts, so
        failures in the first collection dump return a JSON error. Later
        failures abort the transfer and leave a truncated, unreadable zip.
        """
        run = BackupRun(config, state)
        stream = aiter(run)

        try:
            first = await anext(stream)
        except StopAsyncIteration:
            return error_response(BackupError("Backup produced no data"))
        except BackupCoreError as e:
            return error_response(e)

        return StreamingResponse(
            _prepend(first, stream),
            media_type=ARCHIVE_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{run.filename}"'},
        )

    @app.post(f"{prefix}/restore", dependencies=[Depends(authorize(PERMISSION_RESTORE))])
    async def restore_backup(request: Request):
        """
        Restore the whole system from an uploaded archive.

        Expects a multipart form with the archive in the file field
        "backup". Existing collections are truncated and objects overwritten.
        """
        form = None
        try:
            form = await _read_upload_form(request)
            backup = form.get(UPLOAD_FIELD)
            if backup is None:
                raise InvalidUpload(f"Multipart form field '{UPLOAD_FIELD}' is required")
            if not isinstance(backup, StarletteUploadFile):
                raise InvalidUpload(
                    f"Multipart form field '{UPLOAD_FIELD}' must be a file",
                    details={"field": UPLOAD_FIELD},
                )

            backup.file.seek(0, os.SEEK_END)
            size = backup.file.tell()
            backup.file.seek(0)
            if size == 0:
                raise InvalidUpload(
                    "Uploaded backup file is empty",
                    details={"filename": backup.filename},
                )

            result = await restore_archive(config, state, backup.file)
        except BackupCoreError as e:
            return error_response(e)
        finally:
            if form is not None:
                await form.close()

        return asdict(result)

    @app.get(f"{prefix}/status", dependencies=[Depends(authorize(PERMISSION_CREATE))])
    async def get_status() -> dict:
        """
        Get current backup status.

        Returns last run times, totals and the running operation, if any.
        """
        return {
            "running_operation": state["running_operation"],
            "last_backup_at": (
                state["last_backup_at"].isoformat() if state["last_backup_at"] else None
            ),
            "last_restore_at": (
                state["last_restore_at"].isoformat() if state["last_restore_at"] else None
            ),
            "total_backups": state["total_backups"],
            "total_restores": state["total_restores"],
            "last_error": state["last_error"],
        }


async def _prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Re-attach the already produced first chunk; closes the run on disconnect."""
    try:
        yield first
        async for chunk in rest:
            yield chunk
    finally:
        await rest.aclose()


@asynccontextmanager
async def backup_lifespan(
    app: FastAPI,
    config: BackupConfig,
    authorize: Authorizer = require_permission,
):
    """
    Lifespan context manager for FastAPI.

        app = FastAPI(lifespan=lambda app: backup_lifespan(app, config))

    Args:
        app: FastAPI application
        config: Backup configuration
        authorize: Factory turning a permission name into a dependency
    """
    logger.info("backup_lifespan_starting", prefix=config.api_prefix)

    state = await initialize_backup_state(config)
    app.state.backup_state = state
    app.state.backup_config = config

    register_backup_routes(app, config, state, authorize)

    logger.info("backup_lifespan_started")

    try:
        yield
    finally:
        logger.info("backup_lifespan_stopping")
        await shutdown_backup_state(state)
        logger.info("backup_lifespan_stopped")


def setup_backup_plugin(
    app: FastAPI,
    config: BackupConfig,
    authorize: Authorizer = require_permission,
) -> None:
    """
    Set up the backup plugin on an existing app.

    Wraps the app's current lifespan so the backup state is created
    before it starts and disposed after it stops.

    Args:
        app: FastAPI application
        config: Backup configuration
        authorize: Factory turning a permission name into a dependency
    """
    app.state.backup_config = config
    app.state.backup_state = None
    app_lifespan = app.router.lifespan_context

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with backup_lifespan(app, config, authorize):
            async with app_lifespan(app) as app_state:
                yield app_state

    app.router.lifespan_context = lifespan


def get_backup_state(app: FastAPI) -> BackupState:
    """
    Get backup state from a FastAPI app.

    Raises:
        RuntimeError: If the backup lifespan has not run
    """
    state = getattr(app.state, "backup_state", None)
    if not state:
        raise RuntimeError("Catalyst backup not initialized. Use backup_lifespan first.")
    return state
