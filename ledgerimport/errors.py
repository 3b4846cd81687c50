"""Exception hierarchy for LedgerImport."""


class LedgerImportError(Exception):
    """Base exception for all LedgerImport errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(LedgerImportError):
    """Configuration file could not be read or validated."""


class ApiError(LedgerImportError):
    """A REST call to the accounting API failed.

    ``status_code`` is None for transport failures (connection refused,
    timeouts) where no HTTP response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class InvalidJobId(LedgerImportError, ValueError):
    """Job id is not a positive integer."""

    def __init__(self, job_id: object) -> None:
        super().__init__(f"Invalid import job id: {job_id!r}")
        self.job_id = job_id


class PollerError(LedgerImportError):
    """Job status poller used incorrectly."""


class SubmissionError(LedgerImportError):
    """Upload was rejected before a job was created."""


class StagingError(LedgerImportError):
    """Staging or committing a spreadsheet was rejected."""


class CommitNotAllowed(StagingError):
    """Commit attempted before every required target field is mapped."""

    def __init__(self, missing_fields: list[str]) -> None:
        if missing_fields:
            message = "Required fields are not mapped: " + ", ".join(missing_fields)
        else:
            message = "Nothing has been staged for import"
        super().__init__(message)
        self.missing_fields = missing_fields


class SheetError(LedgerImportError):
    """Workbook could not be read or the requested sheet does not exist."""
