"""Staging and column-mapping models."""

from typing import Any

from pydantic import ConfigDict, Field

from ledgerimport.models.base import WireModel


class DetectedColumn(WireModel):
    """A spreadsheet column found by the server while staging."""

    column_name: str
    column_index: int
    sample_values: list[str] = Field(default_factory=list)
    suggested_mapping: str | None = None


class StagedImportSession(WireModel):
    """Result of staging a sheet: detected columns plus preview rows.

    Immutable; staging the sheet again produces a new session.
    """

    model_config = ConfigDict(frozen=True)

    job_id: int
    file_name: str | None = None
    total_rows: int = 0
    detected_columns: list[DetectedColumn] = Field(default_factory=list)
    preview_rows: list[dict[str, Any]] = Field(default_factory=list, alias="previewData")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return [column.column_name for column in self.detected_columns]


class MappingField(WireModel):
    """A target field of an import format."""

    field_name: str
    display_name: str = ""
    description: str = ""
    is_required: bool = False
    data_type: str | None = None


class ColumnMapping(WireModel):
    """Operator association of a spreadsheet column with a target field."""

    target_field: str
    source_column: str
    is_required: bool = False


class ImportFormat(WireModel):
    """A general ledger import format offered by the server."""

    format_type: str
    description: str = ""
    required_fields: list[str] = Field(default_factory=list)
