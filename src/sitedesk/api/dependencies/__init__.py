"""FastAPI dependency injection definitions."""

# Auth
from src.sitedesk.api.dependencies.auth import AdminAccess, require_admin_key

# Database
from src.sitedesk.api.dependencies.db import DBSession, get_db_session

# Services
from src.sitedesk.api.dependencies.services import (
    MaintenanceServiceDep,
    get_maintenance_service,
)

__all__ = [
    # Database
    "DBSession",
    "get_db_session",
    # Auth
    "AdminAccess",
    "require_admin_key",
    # Services
    "MaintenanceServiceDep",
    "get_maintenance_service",
]
