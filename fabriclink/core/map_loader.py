"""Conversion Map Loader — parses, serializes, loads and saves map documents.

Documents are JSON (the interchange format) or YAML. Any malformed document
raises ConversionMapError; nothing is partially recovered.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from fabriclink.core.conversion_map import ConversionMap, ConversionMapError

logger = logging.getLogger(__name__)

DEFAULT_MAP_PATH = Path(__file__).parent.parent / "data" / "default_conversion_map.json"

_FORMATS_BY_SUFFIX = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def format_for_path(path: Path) -> str:
    fmt = _FORMATS_BY_SUFFIX.get(path.suffix.lower())
    if fmt is None:
        raise ConversionMapError(f"Unsupported conversion map file type: {path.suffix or path.name}")
    return fmt


def parse_map_data(data: Any) -> ConversionMap:
    """Build a ConversionMap from already-decoded document data."""
    if not isinstance(data, dict):
        raise ConversionMapError("Conversion map document must be a mapping")
    try:
        return ConversionMap.model_validate(data)
    except ValidationError as e:
        raise ConversionMapError(f"Invalid conversion map: {e}") from e


def parse_map_document(text: str, fmt: str = "json") -> ConversionMap:
    """Parse JSON or YAML text into a ConversionMap."""
    try:
        if fmt == "json":
            data = json.loads(text)
        elif fmt == "yaml":
            data = yaml.safe_load(text)
        else:
            raise ConversionMapError(f"Unsupported conversion map format: {fmt}")
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConversionMapError(f"Failed to parse conversion map: {e}") from e
    return parse_map_data(data)


def dump_map_document(conversion_map: ConversionMap, fmt: str = "json") -> str:
    """Serialize a ConversionMap to JSON or YAML text."""
    data = conversion_map.model_dump(mode="json")
    if fmt == "json":
        return json.dumps(data, indent=2)
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    raise ConversionMapError(f"Unsupported conversion map format: {fmt}")


def load_map_file(path: Union[str, Path]) -> ConversionMap:
    """Load a map document from disk; the format is picked by file suffix."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Conversion map not found: {path}")
    conversion_map = parse_map_document(path.read_text(encoding="utf-8"), format_for_path(path))
    logger.info(f"Loaded conversion map from {path} with {len(conversion_map.field_definitions)} field definitions")
    return conversion_map


def save_map_file(conversion_map: ConversionMap, path: Union[str, Path]) -> Path:
    """Write a map document to disk, creating parent directories."""
    path = Path(path)
    content = dump_map_document(conversion_map, format_for_path(path))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info(f"Saved conversion map to {path}")
    return path


def load_default_map() -> ConversionMap:
    """Load the conversion map bundled with the package."""
    return load_map_file(DEFAULT_MAP_PATH)
