"""Service factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.sitedesk.api.dependencies.db import DBSession
from src.sitedesk.services.maintenance_service import MaintenanceService


def get_maintenance_service(session: DBSession) -> MaintenanceService:
    """Get maintenance service."""
    return MaintenanceService(session)


MaintenanceServiceDep = Annotated[MaintenanceService, Depends(get_maintenance_service)]
