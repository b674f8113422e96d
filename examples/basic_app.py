# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with Catalyst Backup.

Mounts the backup and restore endpoints next to the application's own
routes. The runtime state (ArangoDB client, S3 session) is created in
the lifespan and closed on shutdown.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    CATALYST_ARANGO_URL: ArangoDB endpoint, e.g. http://arangodb:8529
    CATALYST_S3_ENDPOINT: MinIO endpoint, e.g. http://minio:9000
    CATALYST_S3_ACCESS_KEY / CATALYST_S3_SECRET_KEY: MinIO credentials
    CATALYST_BACKUP_API_KEY: Bearer token for the backup endpoints

Download a backup and restore it again:
    curl -H "Authorization: Bearer $KEY" -o backup.zip \\
        http://localhost:8000/api/backup/create
    curl -H "Authorization: Bearer $KEY" -F backup=@backup.zip \\
        http://localhost:8000/api/backup/restore
"""

from fastapi import FastAPI

from catalyst_backup.config import BackupConfig
from catalyst_backup.env import create_config_from_env
from catalyst_backup.exceptions import ConfigurationError
from catalyst_backup.integrations.fastapi import backup_lifespan, get_backup_state


# Initialize configuration
try:
    backup_config = create_config_from_env()
except ConfigurationError as e:
    print(f"Failed to create backup config: {e}")
    # Local docker-compose defaults for development
    backup_config = BackupConfig(
        arango_url="http://localhost:8529",
        s3_endpoint_url="http://localhost:9000",
        s3_access_key_id="minio",
        s3_secret_access_key="minio123",
    )


app = FastAPI(
    title="Catalyst with Backup",
    description="Example application exposing full-system backup and restore",
    version="1.0.0",
    lifespan=lambda app: backup_lifespan(app, backup_config),
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to Catalyst",
        "docs": "/docs",
        "backup": f"{backup_config.api_prefix}/create",
    }


@app.get("/health")
async def health():
    """Report whether a backup or restore is currently running."""
    state = get_backup_state(app)
    return {
        "status": "busy" if state["running_operation"] else "idle",
        "running_operation": state["running_operation"],
    }


# ============================================================================
# Backup Endpoints (registered by backup_lifespan)
# ============================================================================
#
# GET  /api/backup/create   - Stream a zip of every collection and object
# POST /api/backup/restore  - Restore from a multipart upload (field "backup")
# GET  /api/backup/status   - Last run times and counters


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
