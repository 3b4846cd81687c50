"""Direct spreadsheet uploads that queue a server-side import job."""

import logging
from enum import Enum
from typing import TYPE_CHECKING

from ledgerimport.errors import ApiError, SubmissionError
from ledgerimport.models import SpreadsheetFile, UploadReceipt

if TYPE_CHECKING:
    from ledgerimport.client import AccountingClient

logger = logging.getLogger(__name__)


class UploadTarget(str, Enum):
    """Which chart of accounts a direct upload replaces."""

    MASTER_CHART = "master-chart"
    PROGRAM_CHART = "program-chart"


class UploadSubmitter:
    """Send a (program, file, sheet) tuple to the server and get a job handle."""

    def __init__(self, client: "AccountingClient") -> None:
        self.client = client

    async def submit(
        self,
        target: UploadTarget,
        program_id: int,
        source: SpreadsheetFile,
        sheet_name: str | None = None,
    ) -> UploadReceipt:
        """Upload ``source`` and return the receipt carrying the job id.

        Raises:
            SubmissionError: If the server rejects the upload or does not
                return a usable job id.
        """
        logger.info(
            "Uploading %s (sheet %s) to %s for program %d",
            source.filename,
            sheet_name or "<first>",
            target.value,
            program_id,
        )
        try:
            if target is UploadTarget.MASTER_CHART:
                receipt = await self.client.import_master_chart(program_id, source, sheet_name)
            else:
                receipt = await self.client.import_program_chart(program_id, source, sheet_name)
        except ApiError as e:
            raise SubmissionError(f"Failed to upload {source.filename}: {e}") from e

        if not receipt.success or receipt.job_id <= 0:
            raise SubmissionError(receipt.message or f"Upload of {source.filename} was not accepted")

        logger.info("Upload accepted as import job %d", receipt.job_id)
        return receipt
