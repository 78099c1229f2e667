"""Row Converter — turns a raw cell grid into canonical link rows.

Pipeline per sheet: locate the header row, reconstruct it horizontally,
resolve headers against the map, then for every data row apply vertical
carry on merge-eligible columns, run transformations, validate, and build a
CanonicalRow. Rows with neither identity field are rejected, not dropped.
"""

import logging
from typing import Any, Optional, Sequence

from fabriclink.core.config import settings
from fabriclink.core.conversion_map import ConversionMap
from fabriclink.core.field_validator import validate_field_values
from fabriclink.core.header_resolver import HeaderResolution, normalize_header, resolve_headers
from fabriclink.core.id_gen import generate_id
from fabriclink.core.merged_cells import (
    carry_forward,
    cell_to_str,
    empty_carry,
    is_category_row,
    is_empty_cell,
    reconstruct_row,
)
from fabriclink.core.models import (
    CanonicalRow,
    ConversionOptions,
    ConversionResult,
    ConvertedRow,
    ErrorSeverity,
    RejectedRow,
    TableColumnDefinition,
    ValidationIssue,
)
from fabriclink.core.transformation_engine import TransformationEngine

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ("switch_label", "switch_ifname")
CANONICAL_FIELDS = tuple(CanonicalRow.model_fields)

REJECT_MISSING_IDENTITY = "missing_identity_fields"

_TRUE_TOKENS = {"yes", "y", "true", "1", "x"}
_FALSE_TOKENS = {"no", "n", "false", "0"}

PREFERRED_COLUMN_ORDER = (
    "blueprint",
    "server_label",
    "switch_label",
    "switch_ifname",
    "server_ifname",
    "link_speed",
    "link_group_lag_mode",
    "link_group_ct_names",
    "link_group_ifname",
    "is_external",
    "server_tags",
    "switch_tags",
    "link_tags",
    "comment",
)


def find_header_index(grid: Sequence[Sequence[Any]], header_row: Optional[int]) -> Optional[int]:
    """0-based index of the header row.

    Uses the 1-based `header_row` when given, otherwise the first row with
    any non-empty cell. None when the grid has no such row.
    """
    if header_row is not None:
        index = header_row - 1
        return index if index < len(grid) else None
    for index, row in enumerate(grid):
        if any(not is_empty_cell(cell) for cell in row):
            return index
    return None


def merge_columns_for(
    resolution: HeaderResolution,
    merge_fields: Sequence[str],
    merge_headers: Sequence[str] = (),
) -> list[int]:
    """Columns eligible for vertical carry, by canonical field or raw header."""
    wanted_fields = set(merge_fields)
    wanted_headers = {normalize_header(h) for h in merge_headers}
    columns = []
    for col, header in enumerate(resolution.headers):
        if resolution.column_fields[col] in wanted_fields or (
            wanted_headers and normalize_header(header) in wanted_headers
        ):
            columns.append(col)
    return columns


def parse_is_external(value: str) -> Optional[bool]:
    """Boolean reading of an "external" cell; None when not recognised."""
    token = value.strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


def build_canonical_row(field_values: dict[str, str]) -> tuple[CanonicalRow, list[ValidationIssue]]:
    """Project field values onto the canonical row shape."""
    data: dict[str, Any] = {}
    issues: list[ValidationIssue] = []
    for name in CANONICAL_FIELDS:
        value = (field_values.get(name) or "").strip()
        if not value:
            continue
        if name == "is_external":
            parsed = parse_is_external(value)
            if parsed is None:
                issues.append(ValidationIssue(
                    field=name,
                    message=f"Unrecognised boolean value '{value}'; leaving is_external unset",
                    severity=ErrorSeverity.WARNING,
                ))
                continue
            data[name] = parsed
        else:
            data[name] = value
    return CanonicalRow(**data), issues


def _missing_identity(field_values: dict[str, str]) -> bool:
    return all(not (field_values.get(name) or "").strip() for name in IDENTITY_FIELDS)


def _pad(row: Sequence[Any], width: int) -> list[Any]:
    cells = list(row[:width])
    cells.extend([None] * (width - len(cells)))
    return cells


def convert_grid(
    grid: Sequence[Sequence[Any]],
    conversion_map: ConversionMap,
    options: Optional[ConversionOptions] = None,
    engine: Optional[TransformationEngine] = None,
    sheet_name: Optional[str] = None,
    source_file: Optional[str] = None,
) -> ConversionResult:
    """Convert a raw grid (rows of typed cells) into canonical rows."""
    options = options or ConversionOptions()
    engine = engine or TransformationEngine()
    max_distance = settings.merge_max_distance if options.max_merge_distance is None else options.max_merge_distance
    merge_fields = settings.merge_fields if options.merge_fields is None else options.merge_fields

    result = ConversionResult(
        conversion_id=generate_id("conv_"),
        sheet_name=sheet_name,
        source_file=source_file,
    )
    stats = {
        "total_rows": 0,
        "accepted": 0,
        "rejected": 0,
        "empty_skipped": 0,
        "transformation_failures": 0,
        "validation_errors": 0,
        "validation_warnings": 0,
    }

    header_index = find_header_index(grid, conversion_map.header_row)
    if header_index is None:
        message = (
            f"Header row {conversion_map.header_row} is beyond the end of the sheet"
            if conversion_map.header_row is not None else "Sheet has no non-empty rows"
        )
        logger.warning(f"{sheet_name or 'grid'}: {message}")
        result.warnings.append(ValidationIssue(field="header_row", message=message, severity=ErrorSeverity.WARNING))
        result.stats = stats
        return result

    header_cells = reconstruct_row(grid[header_index], max_distance)
    resolution = resolve_headers(header_cells, conversion_map, options.fuzzy_min_confidence)
    result.header = resolution.to_view(header_index + 1)
    result.warnings.extend(resolution.issues)

    for field_name in conversion_map.field_names():
        field_def = conversion_map.field_definitions[field_name]
        if field_def.is_required and resolution.column_of(field_name) is None:
            result.warnings.append(ValidationIssue(
                field=field_name,
                message=f"Required field '{field_name}' has no matching column",
                severity=ErrorSeverity.WARNING,
            ))

    width = len(header_cells)
    merge_columns = merge_columns_for(resolution, merge_fields, options.merge_headers)
    mapped_columns = [(col, name) for col, name in enumerate(resolution.column_fields) if name is not None]
    carry = empty_carry(width)

    for offset, raw_row in enumerate(grid[header_index + 1:]):
        row_number = header_index + offset + 2
        stats["total_rows"] += 1
        cells = _pad(raw_row, width)

        if all(is_empty_cell(cell) for cell in cells):
            stats["empty_skipped"] += 1
            continue
        if is_category_row(cells):
            logger.debug(f"Row {row_number}: sparse row, merge carry reset")
            carry = empty_carry(width)
        else:
            if options.reconstruct_data_rows:
                cells = reconstruct_row(cells, max_distance)
            cells, carry = carry_forward(cells, carry, merge_columns)

        field_values = {name: cell_to_str(cells[col]) for col, name in mapped_columns}
        report = engine.apply_all(field_values, conversion_map)
        stats["transformation_failures"] += len(report.failures)

        if _missing_identity(report.values):
            logger.warning(f"Row {row_number}: rejected, no switch name or switch interface")
            result.rejected_rows.append(RejectedRow(row_index=row_number, reason=REJECT_MISSING_IDENTITY))
            stats["rejected"] += 1
            continue

        validation = validate_field_values(report.values, conversion_map)
        canonical, row_issues = build_canonical_row(report.values)
        stats["validation_errors"] += len(validation.errors)
        stats["validation_warnings"] += len(validation.warnings) + len(row_issues)

        result.rows.append(ConvertedRow(
            row_index=row_number,
            row=canonical,
            is_valid=validation.is_valid,
            issues=validation.errors + validation.warnings + row_issues,
            transformation_failures=report.failures,
        ))
        stats["accepted"] += 1

    result.stats = stats
    logger.info(
        f"Converted {sheet_name or 'grid'}: {stats['accepted']} accepted, "
        f"{stats['rejected']} rejected, {stats['empty_skipped']} empty"
    )
    return result


def generate_table_columns(conversion_map: ConversionMap) -> list[TableColumnDefinition]:
    """Column descriptors for displaying converted rows."""
    defined = conversion_map.field_definitions
    ordered = [name for name in PREFERRED_COLUMN_ORDER if name in defined]
    ordered += [name for name in sorted(defined) if name not in PREFERRED_COLUMN_ORDER]

    columns = []
    for name in ordered:
        field_def = defined[name]
        ui = field_def.ui_config
        columns.append(TableColumnDefinition(
            field_name=name,
            display_name=field_def.display_name,
            data_type=field_def.data_type.value,
            width=ui.column_width if ui else 120,
            sortable=ui.sortable if ui else True,
            filterable=ui.filterable if ui else True,
            hidden=ui.hidden if ui else False,
            required=field_def.is_required,
        ))
    return columns
