"""Repository layer - data access abstraction."""

from src.sitedesk.repositories.base import BaseRepository
from src.sitedesk.repositories.finance import PaymentRepository, ProjectFinancialRepository
from src.sitedesk.repositories.owned_records import OwnedRecordRepository
from src.sitedesk.repositories.project import ProjectRepository

__all__ = [
    "BaseRepository",
    "OwnedRecordRepository",
    "PaymentRepository",
    "ProjectFinancialRepository",
    "ProjectRepository",
]
