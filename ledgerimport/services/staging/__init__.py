"""Staging package: stage a sheet, map its columns, commit the import."""

from .constants import HEADER_ALIASES
from .mapper import ImportKind, StagingMapper
from .mapping import normalize_header, suggest_column_mapping, suggest_target_field

__all__ = [
    "HEADER_ALIASES",
    "ImportKind",
    "StagingMapper",
    "normalize_header",
    "suggest_column_mapping",
    "suggest_target_field",
]
