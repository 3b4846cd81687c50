"""Column mapping suggestions for staged imports."""

import logging

from ledgerimport.models import DetectedColumn, MappingField

from .constants import HEADER_ALIASES, IGNORED_HEADER_CHARS

logger = logging.getLogger(__name__)

_STRIP_TABLE = str.maketrans("", "", IGNORED_HEADER_CHARS)


def normalize_header(header: str) -> str:
    """Lowercase a header and drop separators ("Acct. No" -> "acctno")."""
    return header.lower().translate(_STRIP_TABLE).strip()


def _field_lookup(fields: list[MappingField]) -> dict[str, str]:
    """Map normalized field and display names to the field's canonical name."""
    lookup: dict[str, str] = {}
    for field in fields:
        lookup.setdefault(normalize_header(field.field_name), field.field_name)
        if field.display_name:
            lookup.setdefault(normalize_header(field.display_name), field.field_name)
    return lookup


def suggest_target_field(column: DetectedColumn, fields: list[MappingField]) -> str | None:
    """Suggest the target field a detected column most likely feeds.

    Order of preference: the server's own suggestion, an exact match on the
    field or display name, then the static alias table.

    Args:
        column: Column detected during staging.
        fields: Target fields of the selected import format.

    Returns:
        A field name from ``fields`` or None.
    """
    lookup = _field_lookup(fields)

    if column.suggested_mapping:
        match = lookup.get(normalize_header(column.suggested_mapping))
        if match:
            return match

    normalized = normalize_header(column.column_name)
    if normalized in lookup:
        return lookup[normalized]

    alias = HEADER_ALIASES.get(normalized)
    if alias:
        return lookup.get(normalize_header(alias))
    return None


def suggest_column_mapping(
    columns: list[DetectedColumn],
    fields: list[MappingField],
) -> dict[str, str]:
    """Suggest a source column for as many target fields as possible.

    Args:
        columns: Columns detected during staging, in sheet order.
        fields: Target fields of the selected import format.

    Returns:
        Dict mapping target field name -> source column name. When several
        columns suggest the same field, the leftmost one wins.
    """
    suggestions: dict[str, str] = {}
    for column in sorted(columns, key=lambda c: c.column_index):
        target = suggest_target_field(column, fields)
        if target and target not in suggestions:
            suggestions[target] = column.column_name
    logger.debug("Suggested %d of %d field mappings", len(suggestions), len(fields))
    return suggestions
