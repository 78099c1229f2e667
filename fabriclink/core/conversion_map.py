"""Conversion Map Format Definition.

Defines the document that tells the converter how to:
1. Recognize spreadsheet headers (exact / partial / regex / fuzzy patterns)
2. Label each recognized column with a canonical field name
3. Rewrite extracted values through named transformation rules
4. Validate the resulting field values

Enum values are serialized in lower/snake case only. A document using any
other casing (e.g. "Exact", "ValueMapping") is rejected at parse time.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class ConversionMapError(ValueError):
    """Raised when a Conversion Map document is malformed."""


class MappingType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    REGEX = "regex"
    FUZZY = "fuzzy"


class DataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    JSON = "json"


class TransformationType(str, Enum):
    VALUE_MAPPING = "value_mapping"
    TEMPLATE = "template"
    FUNCTION = "function"
    PIPELINE = "pipeline"
    STATIC = "static"
    DYNAMIC = "dynamic"
    CONDITIONAL = "conditional"


class XlsxMapping(BaseModel):
    pattern: str
    mapping_type: MappingType
    priority: int = 0
    case_sensitive: bool = False
    transform: Optional[str] = None


class ApiMapping(BaseModel):
    primary_path: str
    fallback_paths: list[str] = []
    transformation: Optional[str] = None


class NumericRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


class ValidationRules(BaseModel):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    allowed_values: Optional[list[str]] = None
    numeric_range: Optional[NumericRange] = None
    custom_validators: Optional[list[str]] = None


class UiConfig(BaseModel):
    column_width: int = 120
    sortable: bool = True
    filterable: bool = True
    hidden: bool = False


class FieldDefinition(BaseModel):
    display_name: str
    description: str = ""
    data_type: DataType = DataType.STRING
    is_required: bool = False
    is_key_field: bool = False
    xlsx_mappings: list[XlsxMapping] = []
    api_mappings: list[ApiMapping] = []
    validation_rules: ValidationRules = ValidationRules()
    ui_config: Optional[UiConfig] = None
    transformations: Optional[list[str]] = None

    @property
    def header_mappings(self) -> list[XlsxMapping]:
        return self.xlsx_mappings


# --- Transformation logic (tagged by "type") ---


class ValueMapLogic(BaseModel):
    type: Literal["value_map"] = "value_map"
    mappings: dict[str, str]


class TemplateLogic(BaseModel):
    type: Literal["template"] = "template"
    template: str


class FunctionLogic(BaseModel):
    type: Literal["function"] = "function"
    name: str


class TransformationStep(BaseModel):
    step_type: str
    parameters: dict[str, Any] = {}


class PipelineLogic(BaseModel):
    type: Literal["pipeline"] = "pipeline"
    steps: list[TransformationStep]


TransformationLogic = Annotated[
    Union[ValueMapLogic, TemplateLogic, FunctionLogic, PipelineLogic],
    Field(discriminator="type"),
]


class TransformationRule(BaseModel):
    name: str
    description: str = ""
    rule_type: TransformationType
    conditions: Optional[dict[str, Any]] = None
    logic: TransformationLogic
    priority: int = 0


class ConversionMap(BaseModel):
    version: str
    header_row: Optional[int] = Field(default=None, ge=1)
    field_definitions: dict[str, FieldDefinition]
    transformation_rules: dict[str, TransformationRule] = {}
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def get_field_definition(self, field_name: str) -> Optional[FieldDefinition]:
        return self.field_definitions.get(field_name)

    def get_transformation_rule(self, rule_name: str) -> Optional[TransformationRule]:
        return self.transformation_rules.get(rule_name)

    def field_names(self) -> list[str]:
        """Field names in a stable (lexicographic) order."""
        return sorted(self.field_definitions)

    def touch(self) -> "ConversionMap":
        """Return a copy with updated_at set to now."""
        return self.model_copy(update={"updated_at": _now_iso()})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_conversion_map(header_row: Optional[int] = 2) -> ConversionMap:
    """Create an empty map stamped with creation time."""
    now = _now_iso()
    return ConversionMap(
        version="1.0.0",
        header_row=header_row,
        field_definitions={},
        transformation_rules={},
        created_at=now,
        updated_at=now,
    )
