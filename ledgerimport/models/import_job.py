"""Import job models mirroring the server's bulk upload job state."""

from enum import Enum

from pydantic import Field, field_validator

from ledgerimport.models.base import WireModel


class ImportStatus(str, Enum):
    """Status of a server-side import job."""

    QUEUED = "Queued"
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ERROR = "Error"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_failure(self) -> bool:
        return self in FAILURE_STATUSES


TERMINAL_STATUSES = frozenset({ImportStatus.COMPLETED, ImportStatus.FAILED, ImportStatus.ERROR})
FAILURE_STATUSES = frozenset({ImportStatus.FAILED, ImportStatus.ERROR})


class ImportJob(WireModel):
    """Client-side copy of a server import job.

    The server is the only writer; the client replaces its cached copy with
    every status response it receives.
    """

    job_id: int = Field(alias="jobID")
    status: ImportStatus = ImportStatus.QUEUED
    file_name: str | None = None
    total_records: int = 0
    processed_records: int = 0
    successful_records: int = 0
    failed_records: int = 0
    percentage_complete: float = 0.0
    error_message: str | None = None

    @field_validator("percentage_complete", mode="before")
    @classmethod
    def _clamp_percentage(cls, value: object) -> object:
        if value is None:
            return 0.0
        if isinstance(value, (int, float)):
            return min(max(float(value), 0.0), 100.0)
        return value

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_failure(self) -> bool:
        return self.status.is_failure

    @property
    def has_row_errors(self) -> bool:
        """Whether the per-row error list is worth fetching."""
        return self.failed_records > 0 or self.is_failure


class ImportRowError(WireModel):
    """A single rejected input row reported by the server."""

    row_number: int
    column_name: str | None = None
    error_message: str
    error_type: str | None = None

    def __str__(self) -> str:
        location = f"Row {self.row_number}"
        if self.column_name:
            location += f" [{self.column_name}]"
        return f"{location}: {self.error_message}"


class UploadReceipt(WireModel):
    """Response to a direct (unstaged) spreadsheet upload."""

    job_id: int = Field(alias="jobID")
    message: str | None = None
    success: bool = True
