"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import ProjectFactory, PaymentFactory, ...
"""

from tests.factories.base import BaseFactory, generate_uuid, utc_now
from tests.factories.project import (
    MilestoneFactory,
    PaymentFactory,
    ProjectFactory,
    ProjectFinancialFactory,
    UserFactory,
)

__all__ = [
    # Base
    "BaseFactory",
    "generate_uuid",
    "utc_now",
    # Projects
    "MilestoneFactory",
    "ProjectFactory",
    "UserFactory",
    # Finance
    "PaymentFactory",
    "ProjectFinancialFactory",
]
