"""Storage layer for persistent data."""

from zkmixer.storage.database import (
    Account,
    Base,
    DatabaseManager,
    SqlLedger,
    Transfer,
    TransferType,
    get_db_manager,
    reset_db_manager,
)

__all__ = [
    "Account",
    "Base",
    "DatabaseManager",
    "SqlLedger",
    "Transfer",
    "TransferType",
    "get_db_manager",
    "reset_db_manager",
]
