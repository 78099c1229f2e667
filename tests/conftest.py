"""Shared test helpers for the FabricLink test suite."""

import tempfile
from pathlib import Path
from typing import Optional

import openpyxl

from fabriclink.core.conversion_map import (
    ConversionMap,
    FieldDefinition,
    MappingType,
    TransformationRule,
    ValidationRules,
    XlsxMapping,
)


def make_field(
    *patterns: str,
    mapping_type: MappingType = MappingType.EXACT,
    priority: int = 100,
    display_name: Optional[str] = None,
    is_required: bool = False,
    transformations: Optional[list[str]] = None,
    validation_rules: Optional[ValidationRules] = None,
) -> FieldDefinition:
    """Helper to create a field definition with one mapping per pattern."""
    return FieldDefinition(
        display_name=display_name if display_name is not None else (patterns[0] if patterns else "field"),
        is_required=is_required,
        xlsx_mappings=[
            XlsxMapping(pattern=p, mapping_type=mapping_type, priority=priority)
            for p in patterns
        ],
        transformations=transformations,
        validation_rules=validation_rules or ValidationRules(),
    )


def make_map(
    fields: dict[str, FieldDefinition],
    rules: Optional[dict[str, TransformationRule]] = None,
    header_row: Optional[int] = 1,
) -> ConversionMap:
    """Helper to create a conversion map for testing."""
    return ConversionMap(
        version="1.0.0",
        header_row=header_row,
        field_definitions=fields,
        transformation_rules=rules or {},
    )


def create_test_workbook(rows: list[list], sheet_name: str = "Cabling", extra_sheets: Optional[dict] = None) -> Path:
    """Create a test Excel file with the given rows on one sheet."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_name
    for row in rows:
        ws.append(row)
    for name, sheet_rows in (extra_sheets or {}).items():
        extra = wb.create_sheet(name)
        for row in sheet_rows:
            extra.append(row)
    path = Path(tempfile.mktemp(suffix=".xlsx"))
    wb.save(path)
    wb.close()
    return path
