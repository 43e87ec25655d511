"""Infrastructure layer exports."""

from .records import InMemoryRecordRepository, RecordRepository
from .sheets import (
    HttpSheetsSyncClient,
    NoOpSheetsSyncClient,
    SheetsSyncClient,
    SyncResult,
    configure_sheets_client,
    get_sheets_client,
)

__all__ = [
    "InMemoryRecordRepository",
    "RecordRepository",
    "HttpSheetsSyncClient",
    "NoOpSheetsSyncClient",
    "SheetsSyncClient",
    "SyncResult",
    "configure_sheets_client",
    "get_sheets_client",
]
