# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI routes for backup and restore.
"""

from catalyst_backup.integrations.fastapi import (
    backup_lifespan,
    register_backup_routes,
    require_permission,
    setup_backup_plugin,
)

__all__ = [
    "backup_lifespan",
    "register_backup_routes",
    "require_permission",
    "setup_backup_plugin",
]
