"""Wire models for the accounting import API."""

from ledgerimport.models.accounting import ExistingLedger, LedgerEntry, MatchingStatistics
from ledgerimport.models.files import SpreadsheetFile
from ledgerimport.models.import_job import (
    FAILURE_STATUSES,
    TERMINAL_STATUSES,
    ImportJob,
    ImportRowError,
    ImportStatus,
    UploadReceipt,
)
from ledgerimport.models.staging import (
    ColumnMapping,
    DetectedColumn,
    ImportFormat,
    MappingField,
    StagedImportSession,
)

__all__ = [
    # Jobs
    "ImportJob",
    "ImportRowError",
    "ImportStatus",
    "UploadReceipt",
    "TERMINAL_STATUSES",
    "FAILURE_STATUSES",
    # Staging
    "ColumnMapping",
    "DetectedColumn",
    "ImportFormat",
    "MappingField",
    "StagedImportSession",
    # Accounting
    "ExistingLedger",
    "LedgerEntry",
    "MatchingStatistics",
    # Files
    "SpreadsheetFile",
]
