"""Test utilities package."""

from tests.utils.cleanup import (
    MAINTENANCE_TABLES,
    install_payment_guard,
    truncate_maintenance_tables,
)
from tests.utils.rows import count_rows, insert_owned

__all__ = [
    "MAINTENANCE_TABLES",
    "count_rows",
    "insert_owned",
    "install_payment_guard",
    "truncate_maintenance_tables",
]
