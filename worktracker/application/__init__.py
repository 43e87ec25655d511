"""Application services."""

from .records import RecordService, get_record_service, reset_record_state

__all__ = [
    "RecordService",
    "get_record_service",
    "reset_record_state",
]
