"""Pydantic models for canonical rows, conversion results and API request/response schemas."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from fabriclink.core.conversion_map import ConversionMap, TransformationRule


class ErrorSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class MapFormat(str, Enum):
    ENHANCED = "enhanced"
    SIMPLE = "simple"


# --- Issue records ---


class ValidationIssue(BaseModel):
    field: str
    message: str
    severity: ErrorSeverity


class FieldValidationSummary(BaseModel):
    is_valid: bool = True
    error_count: int = 0
    warning_count: int = 0


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    field_summary: dict[str, FieldValidationSummary] = {}


class TransformationFailure(BaseModel):
    field: str
    rule: str
    message: str


# --- Canonical output ---


class CanonicalRow(BaseModel):
    """One physical link, in the shape the fabric controller consumes."""
    blueprint: Optional[str] = None
    server_label: Optional[str] = None
    is_external: Optional[bool] = None
    server_tags: Optional[str] = None
    link_group_ifname: Optional[str] = None
    link_group_lag_mode: Optional[str] = None
    link_group_ct_names: Optional[str] = None
    link_group_tags: Optional[str] = None
    link_speed: Optional[str] = None
    server_ifname: Optional[str] = None
    switch_label: Optional[str] = None
    switch_ifname: Optional[str] = None
    link_tags: Optional[str] = None
    comment: Optional[str] = None


class ConvertedRow(BaseModel):
    row_index: int
    row: CanonicalRow
    is_valid: bool = True
    issues: list[ValidationIssue] = []
    transformation_failures: list[TransformationFailure] = []


class RejectedRow(BaseModel):
    row_index: int
    reason: str


class HeaderResolutionView(BaseModel):
    header_row: int
    headers: list[str] = []
    converted_headers: dict[str, str] = {}
    mapping_confidence: dict[str, float] = {}
    applied_transformations: dict[str, str] = {}
    unmatched_headers: list[str] = []
    used_fallback: bool = False


class ConversionOptions(BaseModel):
    """Row-assembly knobs. Unset values fall back to settings."""
    merge_fields: Optional[list[str]] = None
    merge_headers: list[str] = []
    reconstruct_data_rows: bool = False
    max_merge_distance: Optional[int] = Field(default=None, ge=0)
    fuzzy_min_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class ConversionResult(BaseModel):
    conversion_id: str
    sheet_name: Optional[str] = None
    source_file: Optional[str] = None
    header: Optional[HeaderResolutionView] = None
    rows: list[ConvertedRow] = []
    rejected_rows: list[RejectedRow] = []
    warnings: list[ValidationIssue] = []
    stats: dict[str, int] = {}

    @property
    def canonical_rows(self) -> list[CanonicalRow]:
        return [r.row for r in self.rows]


class TableColumnDefinition(BaseModel):
    field_name: str
    display_name: str
    data_type: str
    width: int = 120
    sortable: bool = True
    filterable: bool = True
    hidden: bool = False
    required: bool = False


class ExtractionError(BaseModel):
    field: str
    message: str
    path: str


class ApiExtractionResult(BaseModel):
    extracted_data: dict[str, Any] = {}
    extraction_errors: list[ExtractionError] = []
    success_count: int = 0
    total_fields: int = 0


# --- API request/response models ---


class MapCreate(BaseModel):
    name: str = Field(
        ..., pattern=r"^[a-z0-9_]+$", max_length=64,
        description="Map name (lowercase alphanumeric + underscore)"
    )
    document: dict[str, Any]


class MapSummary(BaseModel):
    name: str
    version: str
    header_row: Optional[int] = None
    field_names: list[str] = []
    rule_names: list[str] = []


class HeaderResolveRequest(BaseModel):
    headers: list[str]
    map_name: Optional[str] = None
    fuzzy_min_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class TransformationTestRequest(BaseModel):
    input_value: str
    rule: TransformationRule
    context: dict[str, str] = {}


class TransformationTestResponse(BaseModel):
    output_value: str
    applied: bool
    failures: list[str] = []


class GridConversionRequest(BaseModel):
    grid: list[list[Any]]
    sheet_name: Optional[str] = None
    map_name: Optional[str] = None
    conversion_map: Optional[ConversionMap] = None
    options: ConversionOptions = ConversionOptions()
