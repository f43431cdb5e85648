from src.sitedesk.services.cascade_delete import ProjectCascadeDeleter
from src.sitedesk.services.maintenance_service import MaintenanceService
from src.sitedesk.services.reconcile import FinancialSnapshotReconciler, ProgressReconciler
from src.sitedesk.services.resilient_update import ResilientUpdater

__all__ = [
    "FinancialSnapshotReconciler",
    "MaintenanceService",
    "ProgressReconciler",
    "ProjectCascadeDeleter",
    "ResilientUpdater",
]
