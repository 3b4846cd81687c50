"""Stage -> map -> commit protocol for spreadsheet imports."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from ledgerimport.errors import ApiError, CommitNotAllowed, StagingError
from ledgerimport.models import (
    ColumnMapping,
    ImportFormat,
    ImportJob,
    MappingField,
    SpreadsheetFile,
    StagedImportSession,
)
from ledgerimport.services.context import ImportSessionContext

from .mapping import suggest_column_mapping

if TYPE_CHECKING:
    from ledgerimport.client import AccountingClient

logger = logging.getLogger(__name__)


class ImportKind(str, Enum):
    """What a staged spreadsheet is committed as."""

    GENERAL_LEDGER = "general-ledger"
    SHOP_CHART_OF_ACCOUNTS = "shop-chart-of-accounts"


class StagingMapper:
    """Reconcile a spreadsheet's columns with a fixed target schema, then commit.

    One mapper holds at most one staged session. Staging again discards the
    previous session together with its mappings.
    """

    def __init__(
        self,
        client: "AccountingClient",
        kind: ImportKind = ImportKind.GENERAL_LEDGER,
    ) -> None:
        self.client = client
        self.kind = kind
        self.session: StagedImportSession | None = None
        self.format_type: str | None = None
        self.fields: list[MappingField] = []
        self.schema_loaded = False
        self.mappings: dict[str, ColumnMapping] = {}
        self._fields_cache: dict[str | None, list[MappingField]] = {}
        self._formats: list[ImportFormat] | None = None

    # =========================================================================
    # Staging
    # =========================================================================

    async def stage(
        self,
        source: SpreadsheetFile,
        sheet_name: str | None,
        context: ImportSessionContext,
        import_date: datetime | None = None,
    ) -> StagedImportSession:
        """Upload a sheet for staging and keep the resulting session.

        Raises:
            StagingError: If the context is incomplete, the server rejects the
                sheet, or no columns were detected.
        """
        self.discard()

        program_id = context.program_id
        shop_id = context.primary_shop_id
        if program_id is None or shop_id is None:
            raise StagingError("Select a program and shop before staging a file")

        try:
            if self.kind is ImportKind.GENERAL_LEDGER:
                if context.period is None:
                    raise StagingError("Select a period before staging a general ledger")
                session = await self.client.stage_general_ledger(
                    shop_id,
                    program_id,
                    source,
                    sheet_name,
                    import_date or datetime.now(timezone.utc),
                    context.period,
                )
            else:
                session = await self.client.stage_shop_chart(shop_id, program_id, source, sheet_name)
        except ApiError as e:
            raise StagingError(f"Failed to stage {source.filename}: {e}") from e

        if not session.detected_columns:
            raise StagingError(
                f"No columns were detected in {source.filename}"
                + (f" sheet '{sheet_name}'" if sheet_name else "")
            )

        for warning in session.warnings:
            logger.warning("Staging %s: %s", source.filename, warning)
        for error in session.errors:
            logger.warning("Staging %s reported: %s", source.filename, error)

        logger.info(
            "Staged %s as job %d: %d rows, %d columns",
            source.filename,
            session.job_id,
            session.total_rows,
            len(session.detected_columns),
        )
        self.session = session
        return session

    def discard(self) -> None:
        """Forget the staged session and all mappings."""
        self.session = None
        self.mappings = {}

    def reset(self) -> None:
        """Forget the session, mappings and selected format. Caches are kept."""
        self.discard()
        self.format_type = None
        self.fields = []
        self.schema_loaded = False

    # =========================================================================
    # Target schema
    # =========================================================================

    async def list_formats(self) -> list[ImportFormat]:
        """General ledger import formats offered by the server (cached)."""
        if self._formats is None:
            try:
                self._formats = await self.client.get_import_formats()
            except ApiError as e:
                raise StagingError(f"Failed to load import formats: {e}") from e
        return self._formats

    async def list_target_fields(self, format_type: str | None = None) -> list[MappingField]:
        """Load the target fields of an import format and make it current.

        Fields are fetched once per format. Mappings for fields the new format
        does not have are dropped.

        Raises:
            StagingError: If no format is given for a general ledger import
                or the fields cannot be loaded.
        """
        if self.kind is ImportKind.GENERAL_LEDGER:
            if not format_type:
                raise StagingError("Select an import format first")
        else:
            format_type = None

        fields = self._fields_cache.get(format_type)
        if fields is None:
            try:
                if format_type is None:
                    fields = await self.client.get_chart_mapping_fields()
                else:
                    fields = await self.client.get_ledger_mapping_fields(format_type)
            except ApiError as e:
                raise StagingError(f"Failed to load mapping fields: {e}") from e
            self._fields_cache[format_type] = fields

        self.format_type = format_type
        self.fields = fields
        self.schema_loaded = True

        known = {field.field_name: field for field in fields}
        self.mappings = {
            target: mapping.model_copy(update={"is_required": known[target].is_required})
            for target, mapping in self.mappings.items()
            if target in known
        }
        return fields

    def _field(self, target_field: str) -> MappingField | None:
        for field in self.fields:
            if field.field_name == target_field:
                return field
        return None

    # =========================================================================
    # Mapping
    # =========================================================================

    def set_mapping(self, target_field: str, source_column: str) -> ColumnMapping:
        """Map ``source_column`` onto ``target_field``, replacing any earlier choice.

        The same source column may feed several target fields.
        """
        field = self._field(target_field)
        if field is None:
            logger.debug("Mapping unknown target field '%s'", target_field)
        mapping = ColumnMapping(
            target_field=target_field,
            source_column=source_column,
            is_required=field.is_required if field else False,
        )
        self.mappings[target_field] = mapping
        return mapping

    def clear_mapping(self, target_field: str) -> None:
        self.mappings.pop(target_field, None)

    def suggest_mappings(self) -> dict[str, str]:
        """Fill unmapped target fields from header suggestions.

        Operator choices are never overwritten.

        Returns:
            The suggestions that were applied (target field -> column).
        """
        if self.session is None or not self.fields:
            return {}

        applied: dict[str, str] = {}
        suggestions = suggest_column_mapping(self.session.detected_columns, self.fields)
        for target, column in suggestions.items():
            if target in self.mappings:
                continue
            self.set_mapping(target, column)
            applied[target] = column
        return applied

    def missing_required_fields(self) -> list[str]:
        """Required target fields without a non-empty source column."""
        missing = []
        for field in self.fields:
            if not field.is_required:
                continue
            mapping = self.mappings.get(field.field_name)
            if mapping is None or not mapping.source_column.strip():
                missing.append(field.field_name)
        return missing

    def is_committable(self) -> bool:
        """True iff the target fields are loaded and every required one is mapped."""
        return self.schema_loaded and not self.missing_required_fields()

    # =========================================================================
    # Commit
    # =========================================================================

    async def commit(
        self,
        context: ImportSessionContext,
        import_date: datetime | None = None,
    ) -> ImportJob:
        """Send the mappings and start the server-side import.

        The staged session is consumed whether or not the job later succeeds;
        there is no partial commit or resume.

        Raises:
            CommitNotAllowed: Nothing staged or required fields unmapped.
            StagingError: No format selected, target fields not loaded, or the
                server rejected the commit.
        """
        if self.session is None:
            raise CommitNotAllowed([])
        if self.kind is ImportKind.GENERAL_LEDGER and self.format_type is None:
            raise StagingError("Select an import format before importing")
        if not self.schema_loaded:
            raise StagingError("Load the target fields before importing")
        missing = self.missing_required_fields()
        if missing:
            raise CommitNotAllowed(missing)

        program_id = context.program_id
        shop_id = context.primary_shop_id
        if program_id is None or shop_id is None:
            raise StagingError("Select a program and shop before importing")

        mappings = [m for m in self.mappings.values() if m.source_column.strip()]
        job_id = self.session.job_id

        logger.info("Committing staged job %d with %d column mapping(s)", job_id, len(mappings))
        try:
            if self.kind is ImportKind.GENERAL_LEDGER:
                if context.period is None:
                    raise StagingError("Select a period before importing")
                job = await self.client.apply_ledger_mappings(
                    job_id,
                    shop_id,
                    program_id,
                    mappings,
                    import_date or datetime.now(timezone.utc),
                    context.period,
                )
            else:
                job = await self.client.apply_chart_mappings(job_id, program_id, mappings)
        except ApiError as e:
            raise StagingError(f"Import of staged job {job_id} failed: {e}") from e

        self.discard()
        return job
