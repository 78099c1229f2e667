"""Legacy simple-map support.

Older configurations are flat `{"<excel header>": "<field>"}` dictionaries,
optionally with a "header_row" entry or a nested "mappings" object. These
helpers upgrade them to full ConversionMaps and back.
"""

import logging
from typing import Any, Optional

from fabriclink.core.conversion_map import (
    ApiMapping,
    ConversionMap,
    DataType,
    FieldDefinition,
    MappingType,
    UiConfig,
    XlsxMapping,
    new_conversion_map,
)
from fabriclink.core.models import MapFormat

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {"blueprint", "server_label", "switch_label", "switch_ifname"}


def detect_map_format(document: dict[str, Any]) -> MapFormat:
    if "field_definitions" in document or "transformation_rules" in document:
        return MapFormat.ENHANCED
    return MapFormat.SIMPLE


def read_simple_map(document: dict[str, Any]) -> tuple[Optional[int], dict[str, str]]:
    """Split a simple-map document into (header_row, header -> field mappings).

    Both the nested {"mappings": {...}} shape and the flat shape are accepted;
    non-string values are ignored.
    """
    header_row = None
    mappings: dict[str, str] = {}
    for key, value in document.items():
        if key == "header_row":
            header_row = int(value) if value is not None else None
        elif key == "mappings" and isinstance(value, dict):
            for header, target in value.items():
                if isinstance(target, str):
                    mappings[header] = target
        elif isinstance(value, str):
            mappings[key] = value
    return header_row, mappings


def _infer_data_type(field_name: str) -> DataType:
    if "_count" in field_name or "_number" in field_name:
        return DataType.NUMBER
    if field_name.startswith("is_") or field_name.endswith("_enabled"):
        return DataType.BOOLEAN
    if "_tags" in field_name or "_list" in field_name:
        return DataType.ARRAY
    if "_config" in field_name or "_metadata" in field_name:
        return DataType.JSON
    return DataType.STRING


def field_definition_from_mapping(excel_header: str, field_name: str) -> FieldDefinition:
    """Basic field definition with one exact, case-insensitive header mapping."""
    api_mappings = []
    if field_name.startswith(("server_", "switch_", "link_")):
        api_mappings.append(ApiMapping(primary_path=f"$.{field_name}"))
    return FieldDefinition(
        display_name=excel_header,
        description=f"Field definition for {field_name}",
        data_type=_infer_data_type(field_name),
        is_required=field_name in REQUIRED_FIELDS,
        is_key_field=field_name in ("switch_label", "switch_ifname"),
        xlsx_mappings=[XlsxMapping(pattern=excel_header, mapping_type=MappingType.EXACT, priority=100)],
        api_mappings=api_mappings,
        ui_config=UiConfig(),
    )


def upgrade_simple_map(mappings: dict[str, str], header_row: Optional[int] = None) -> ConversionMap:
    """Build a ConversionMap from header -> field mappings.

    Several headers pointing at one field become several exact mappings on
    the same definition.
    """
    conversion_map = new_conversion_map(header_row)
    definitions: dict[str, FieldDefinition] = {}
    for excel_header, field_name in mappings.items():
        existing = definitions.get(field_name)
        if existing is None:
            definitions[field_name] = field_definition_from_mapping(excel_header, field_name)
        else:
            existing.xlsx_mappings.append(
                XlsxMapping(pattern=excel_header, mapping_type=MappingType.EXACT, priority=100)
            )
    return conversion_map.model_copy(update={"field_definitions": definitions})


def downgrade_to_simple_map(conversion_map: ConversionMap) -> dict[str, Any]:
    """Flatten a ConversionMap to a simple-map document.

    Each field contributes its first exact pattern, or its first pattern when
    it has no exact one.
    """
    mappings: dict[str, str] = {}
    for field_name in conversion_map.field_names():
        field_def = conversion_map.field_definitions[field_name]
        primary = next(
            (m for m in field_def.xlsx_mappings if m.mapping_type == MappingType.EXACT),
            field_def.xlsx_mappings[0] if field_def.xlsx_mappings else None,
        )
        if primary is not None:
            mappings[primary.pattern] = field_name
    document: dict[str, Any] = {"mappings": mappings}
    if conversion_map.header_row is not None:
        document["header_row"] = conversion_map.header_row
    return document


def merge_simple_into_map(mappings: dict[str, str], conversion_map: ConversionMap) -> ConversionMap:
    """Add fields from a simple map that the ConversionMap lacks; existing definitions win."""
    definitions = dict(conversion_map.field_definitions)
    added = []
    for excel_header, field_name in mappings.items():
        if field_name not in definitions:
            definitions[field_name] = field_definition_from_mapping(excel_header, field_name)
            added.append(field_name)
    if added:
        logger.info(f"Merged {len(added)} field(s) from simple map: {', '.join(added)}")
    return conversion_map.model_copy(update={"field_definitions": definitions}).touch()
