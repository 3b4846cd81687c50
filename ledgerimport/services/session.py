"""Three-step general ledger import workflow.

The controller sequences the operator through context selection, file upload
and column mapping, enforcing the gate on each step. Rejections from the
server become danger notifications and the workflow stays where it is so the
operator can correct and retry.
"""

import logging
from collections.abc import Callable
from datetime import date
from enum import IntEnum
from typing import TYPE_CHECKING

from ledgerimport.errors import ApiError, InvalidJobId, SheetError, StagingError
from ledgerimport.models import (
    ExistingLedger,
    ImportFormat,
    ImportJob,
    MatchingStatistics,
    SpreadsheetFile,
    StagedImportSession,
)
from ledgerimport.services.context import ImportSessionContext
from ledgerimport.services.notifications import Notifier
from ledgerimport.services.poller import JobStatusPoller, RefreshCallback
from ledgerimport.services.sheets import WorkbookAnalysis, analyze_workbook
from ledgerimport.services.staging import ImportKind, StagingMapper

if TYPE_CHECKING:
    from ledgerimport.client import AccountingClient
    from ledgerimport.config import Settings

logger = logging.getLogger(__name__)

WorkbookAnalyzer = Callable[[SpreadsheetFile], WorkbookAnalysis]
PollerFactory = Callable[[], JobStatusPoller]


class WorkflowStep(IntEnum):
    """Steps of the general ledger import workflow."""

    SELECT_CONTEXT = 0
    UPLOAD = 1
    MAPPING = 2

    @property
    def title(self) -> str:
        return STEP_TITLES[self]


STEP_TITLES = {
    WorkflowStep.SELECT_CONTEXT: "Select Program & Date",
    WorkflowStep.UPLOAD: "Upload Excel File",
    WorkflowStep.MAPPING: "Column Mapping & Import",
}


class ImportSessionController:
    """Drive one operator through select context -> upload -> map and import.

    Args:
        client: Accounting API client.
        notifier: Receives inline errors and the import outcome.
        mapper: Staging mapper; a general ledger mapper on ``client`` by default.
        analyzer: Callable listing the sheets of a workbook.
        on_refresh: Passed to the poller; reloads the imported rows.
        poller_factory: Builds the poller for a committed job.
        settings: Polling defaults for the default poller factory.
    """

    def __init__(
        self,
        client: "AccountingClient",
        notifier: Notifier,
        mapper: StagingMapper | None = None,
        analyzer: WorkbookAnalyzer | None = None,
        on_refresh: RefreshCallback | None = None,
        poller_factory: PollerFactory | None = None,
        settings: "Settings | None" = None,
    ) -> None:
        self.client = client
        self.notifier = notifier
        self.mapper = mapper or StagingMapper(client, ImportKind.GENERAL_LEDGER)
        self.analyzer = analyzer or analyze_workbook
        self.on_refresh = on_refresh
        self.poller_factory = poller_factory or self._default_poller
        self.settings = settings

        self.context = ImportSessionContext()
        self.step = WorkflowStep.SELECT_CONTEXT
        self.can_proceed = False
        self.statistics: MatchingStatistics | None = None
        self.existing_ledger: ExistingLedger | None = None
        self.source: SpreadsheetFile | None = None
        self.workbook: WorkbookAnalysis | None = None
        self.sheet_name: str | None = None
        self.poller: JobStatusPoller | None = None
        self.job: ImportJob | None = None

    def _default_poller(self) -> JobStatusPoller:
        return JobStatusPoller(
            self.client,
            self.notifier,
            on_refresh=self.on_refresh,
            settings=self.settings,
        )

    @property
    def staged(self) -> StagedImportSession | None:
        return self.mapper.session

    # =========================================================================
    # Step 0: program, shops and period
    # =========================================================================

    def _invalidate_prerequisites(self) -> None:
        self.can_proceed = False
        self.statistics = None
        self.existing_ledger = None

    def _context_changed(self) -> None:
        """A new selection needs a new check; a staged file belongs to the old one."""
        self._invalidate_prerequisites()
        if self.mapper.session is not None:
            logger.info("Selection changed, discarding staged job %d", self.mapper.session.job_id)
            self.mapper.discard()
        self.step = WorkflowStep.SELECT_CONTEXT

    def select_program(self, program_id: int) -> None:
        """Select the program. Changing it clears the shop selection."""
        if program_id != self.context.program_id:
            self.context.shop_ids = []
        self.context.program_id = program_id
        self._context_changed()

    def select_shops(self, shop_ids: list[int]) -> None:
        self.context.shop_ids = list(shop_ids)
        self._context_changed()

    def select_period(self, period: date) -> None:
        self.context.period = period
        self._context_changed()

    async def check_prerequisites(self) -> bool:
        """Check whether a general ledger may be imported for the selection.

        Looks for ledger entries already stored for the period (a warning
        only) and requires the shop chart of accounts to be fully matched
        against the master chart.

        Returns:
            The new value of ``can_proceed``.
        """
        self._invalidate_prerequisites()
        if not self.context.is_complete:
            return False

        program_id, shop_id, _ = self.context.require()
        from_date, to_date = self.context.period_bounds()

        try:
            self.existing_ledger = await self.client.get_existing_ledger(
                shop_id, program_id, from_date, to_date
            )
        except ApiError as e:
            logger.warning("Could not check for an existing general ledger: %s", e)
        else:
            if self.existing_ledger.exists:
                self.notifier.warning(
                    f"A general ledger already exists for {self.context.period_label} "
                    f"({self.existing_ledger.total_records or len(self.existing_ledger.entries)} "
                    "entries). Importing will replace the existing entries.",
                    title="Existing Data",
                )

        try:
            self.statistics = await self.client.get_matching_statistics(shop_id, program_id)
        except ApiError as e:
            self.notifier.danger(f"Error checking chart of accounts matching: {e}")
            return False

        self.can_proceed = self.statistics.can_proceed
        if not self.can_proceed:
            self.notifier.warning(
                f"The shop chart of accounts is not fully matched "
                f"({self.statistics.matched_accounts} of {self.statistics.total_shop_accounts} "
                f"matched, {self.statistics.unmatched_accounts} unmatched). "
                "Complete the account matching before importing a general ledger.",
                title="Matching Required",
            )
        return self.can_proceed

    # =========================================================================
    # Navigation
    # =========================================================================

    def blocking_reason(self, step: WorkflowStep | None = None) -> str | None:
        """Why ``step`` (the current step by default) cannot be completed yet."""
        step = self.step if step is None else step

        if step is WorkflowStep.SELECT_CONTEXT:
            if self.context.program_id is None:
                return "Select a program"
            if not self.context.shop_ids:
                return "Select at least one shop"
            if self.context.period is None:
                return "Select a period"
            if not self.can_proceed:
                return "The shop chart of accounts must be fully matched first"
        elif step is WorkflowStep.UPLOAD:
            if self.mapper.session is None:
                return "Upload and stage a file"
        elif step is WorkflowStep.MAPPING:
            if self.mapper.session is None:
                return "Nothing has been staged for import"
            if self.mapper.format_type is None:
                return "Select an import format"
            if not self.mapper.schema_loaded:
                return "Load the target fields"
            missing = self.mapper.missing_required_fields()
            if missing:
                return "Map the required fields: " + ", ".join(missing)
        return None

    def can_complete(self, step: WorkflowStep | None = None) -> bool:
        return self.blocking_reason(step) is None

    def next(self) -> bool:
        """Advance one step if the current step's gate is satisfied.

        The last step is completed by ``commit()``, not ``next()``.
        """
        if self.step is WorkflowStep.MAPPING:
            return False
        reason = self.blocking_reason()
        if reason is not None:
            logger.debug("Cannot leave step %s: %s", self.step.title, reason)
            return False
        self.step = WorkflowStep(self.step + 1)
        return True

    def previous(self) -> bool:
        """Go back one step. Selections, file and mappings are kept."""
        if self.step is WorkflowStep.SELECT_CONTEXT:
            return False
        self.step = WorkflowStep(self.step - 1)
        return True

    def reset(self) -> None:
        """Discard every selection and return to the first step."""
        self.close()
        self.context.clear()
        self.mapper.reset()
        self._invalidate_prerequisites()
        self.source = None
        self.workbook = None
        self.sheet_name = None
        self.job = None
        self.step = WorkflowStep.SELECT_CONTEXT

    def cancel(self) -> None:
        self.reset()

    def close(self) -> None:
        """Stop watching the committed job (the operator navigated away)."""
        if self.poller is not None:
            self.poller.stop()

    # =========================================================================
    # Step 1: file upload and staging
    # =========================================================================

    def open_file(self, source: SpreadsheetFile) -> WorkbookAnalysis | None:
        """Read the sheet names of ``source``; a single sheet is selected.

        Returns None (after a danger notification) if the workbook cannot be
        read.
        """
        self.source = None
        self.workbook = None
        self.sheet_name = None
        try:
            workbook = self.analyzer(source)
        except SheetError as e:
            self.notifier.danger(str(e))
            return None

        self.source = source
        self.workbook = workbook
        self.sheet_name = workbook.single_sheet
        return workbook

    def select_sheet(self, sheet_name: str) -> bool:
        if self.workbook is None or sheet_name not in self.workbook.sheet_names:
            self.notifier.danger(f'Sheet "{sheet_name}" not found')
            return False
        self.sheet_name = sheet_name
        return True

    async def stage(self, sheet_name: str | None = None) -> StagedImportSession | None:
        """Stage the opened file and move on to the mapping step.

        On failure the workflow stays on the upload step.
        """
        if self.step is not WorkflowStep.UPLOAD:
            self.notifier.warning("Complete the previous steps first")
            return None
        reason = self.blocking_reason(WorkflowStep.SELECT_CONTEXT)
        if reason is not None:
            self.notifier.warning(reason)
            return None
        if self.source is None:
            self.notifier.danger("Select an Excel file to upload")
            return None
        if sheet_name is not None and not self.select_sheet(sheet_name):
            return None
        if self.sheet_name is None:
            self.notifier.danger("Select a sheet to import")
            return None

        try:
            session = await self.mapper.stage(self.source, self.sheet_name, self.context)
        except StagingError as e:
            self.notifier.danger(str(e))
            return None

        self.step = WorkflowStep.MAPPING
        self.notifier.success(
            f"File staged: {session.total_rows} rows, "
            f"{len(session.detected_columns)} columns detected."
        )
        return session

    # =========================================================================
    # Step 2: mapping and import
    # =========================================================================

    async def list_formats(self) -> list[ImportFormat]:
        try:
            return await self.mapper.list_formats()
        except StagingError as e:
            self.notifier.danger(str(e))
            return []

    async def select_format(self, format_type: str) -> bool:
        try:
            await self.mapper.list_target_fields(format_type)
        except StagingError as e:
            self.notifier.danger(str(e))
            return False
        return True

    def set_mapping(self, target_field: str, source_column: str) -> None:
        self.mapper.set_mapping(target_field, source_column)

    def clear_mapping(self, target_field: str) -> None:
        self.mapper.clear_mapping(target_field)

    def suggest_mappings(self) -> dict[str, str]:
        return self.mapper.suggest_mappings()

    async def commit(self) -> ImportJob | None:
        """Commit the mappings and start watching the import job.

        Returns the queued job, or None when a gate is not met or the server
        rejects the import (the workflow stays on the mapping step).
        """
        if self.step is not WorkflowStep.MAPPING:
            self.notifier.warning("Complete the previous steps first")
            return None
        for step in WorkflowStep:
            reason = self.blocking_reason(step)
            if reason is not None:
                self.notifier.warning(reason)
                return None

        try:
            job = await self.mapper.commit(self.context)
        except StagingError as e:
            self.notifier.danger(str(e))
            return None

        self.job = job
        self.close()
        poller = self.poller_factory()
        try:
            poller.start(job.job_id)
        except InvalidJobId as e:
            logger.error("Import was accepted without a usable job id: %s", e)
            self.notifier.danger(f"The import was accepted but cannot be followed: {e}")
            self.poller = None
            return None
        self.poller = poller
        self.notifier.info(
            f"Import job {job.job_id} started. You will be notified when it finishes.",
            title="Import Started",
        )
        return job

    async def wait(self) -> ImportJob | None:
        """Wait for the committed job's poller to finish."""
        if self.poller is None:
            return self.job
        job = await self.poller.wait()
        if job is not None:
            self.job = job
        return self.job
