"""Conversion Map Registry — loads, validates and caches named maps.

Maps live as `<name>.json` / `<name>.yaml` files in the maps directory. Files
whose name starts with "_" can be loaded by name but are not listed. The
bundled default map is always available under the name "default".
"""

import logging
import re
from pathlib import Path
from typing import Optional

from fabriclink.core.config import settings
from fabriclink.core.conversion_map import ConversionMap, ConversionMapError, MappingType
from fabriclink.core.map_loader import load_default_map, load_map_file, save_map_file
from fabriclink.core.models import (
    ErrorSeverity,
    FieldValidationSummary,
    ValidationIssue,
    ValidationResult,
)
from fabriclink.core.transformation_engine import TransformationEngine

logger = logging.getLogger(__name__)

DEFAULT_MAP_NAME = "default"
MAP_SUFFIXES = (".json", ".yaml", ".yml")


def validate_map(conversion_map: ConversionMap, engine: Optional[TransformationEngine] = None) -> ValidationResult:
    """Check a whole map for configuration problems."""
    engine = engine or TransformationEngine()
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    field_summary: dict[str, FieldValidationSummary] = {}

    def add(target: list[ValidationIssue], name: str, message: str, severity: ErrorSeverity) -> None:
        target.append(ValidationIssue(field=name, message=message, severity=severity))
        summary = field_summary.get(name)
        if summary is None:
            return
        if severity == ErrorSeverity.ERROR:
            summary.error_count += 1
            summary.is_valid = False
        else:
            summary.warning_count += 1

    for field_name in conversion_map.field_names():
        field_def = conversion_map.field_definitions[field_name]
        field_summary[field_name] = FieldValidationSummary()

        if not field_def.display_name:
            add(errors, field_name, "Field display name cannot be empty", ErrorSeverity.ERROR)
        if not field_def.xlsx_mappings:
            add(warnings, field_name, "Field has no Excel mappings defined", ErrorSeverity.WARNING)

        for mapping in field_def.xlsx_mappings:
            if mapping.mapping_type == MappingType.REGEX:
                try:
                    re.compile(mapping.pattern)
                except re.error as e:
                    add(errors, field_name, f"Invalid regex header pattern '{mapping.pattern}': {e}", ErrorSeverity.ERROR)

        pattern = field_def.validation_rules.pattern
        if pattern:
            try:
                re.compile(pattern)
            except re.error as e:
                add(errors, field_name, f"Invalid validation pattern '{pattern}': {e}", ErrorSeverity.ERROR)

        for rule_name in field_def.transformations or []:
            if rule_name not in conversion_map.transformation_rules:
                add(
                    warnings, field_name,
                    f"Transformation rule '{rule_name}' not found; field will pass through unmodified",
                    ErrorSeverity.WARNING,
                )

    for rule_name, rule in sorted(conversion_map.transformation_rules.items()):
        for message in engine.validate_rule(rule):
            add(errors, rule_name, f"Invalid transformation rule: {message}", ErrorSeverity.ERROR)

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        field_summary=field_summary,
    )


class MapRegistry:
    """Registry that loads, validates, and caches conversion maps by name."""

    def __init__(self, maps_dir: Optional[str] = None, engine: Optional[TransformationEngine] = None):
        self._maps: dict[str, ConversionMap] = {}
        self._engine = engine or TransformationEngine()
        self._maps_dir = Path(maps_dir or settings.maps_dir)
        if not self._maps_dir.is_absolute():
            self._maps_dir = settings.project_root / self._maps_dir

    @property
    def maps_dir(self) -> Path:
        return self._maps_dir

    def _find_file(self, name: str) -> Optional[Path]:
        for suffix in MAP_SUFFIXES:
            path = self._maps_dir / f"{name}{suffix}"
            if path.exists():
                return path
        return None

    def load_map(self, name: str) -> ConversionMap:
        """Load a map from disk (or the bundled default) and cache it."""
        path = self._find_file(name)
        if path is None:
            if name != DEFAULT_MAP_NAME:
                raise FileNotFoundError(f"No conversion map named '{name}' in {self._maps_dir}")
            conversion_map = load_default_map()
        else:
            conversion_map = load_map_file(path)

        result = validate_map(conversion_map, self._engine)
        for warning in result.warnings:
            logger.warning(f"Map '{name}': {warning.field}: {warning.message}")
        if not result.is_valid:
            raise ConversionMapError(
                f"Conversion map validation errors for '{name}': "
                f"{[f'{e.field}: {e.message}' for e in result.errors]}"
            )
        self._maps[name] = conversion_map
        logger.info(f"Loaded conversion map '{name}'")
        return conversion_map

    def get_map(self, name: str = DEFAULT_MAP_NAME) -> ConversionMap:
        """Get cached map or load it."""
        if name not in self._maps:
            return self.load_map(name)
        return self._maps[name]

    def register_map(self, name: str, conversion_map: ConversionMap) -> ValidationResult:
        """Register a map supplied at runtime (not persisted)."""
        result = validate_map(conversion_map, self._engine)
        if not result.is_valid:
            raise ConversionMapError(
                f"Conversion map validation errors: {[f'{e.field}: {e.message}' for e in result.errors]}"
            )
        self._maps[name] = conversion_map
        return result

    def save_map(self, name: str, conversion_map: ConversionMap, fmt: str = "json") -> Path:
        """Register and persist a map to the maps directory."""
        self.register_map(name, conversion_map)
        suffix = ".yaml" if fmt == "yaml" else ".json"
        return save_map_file(conversion_map, self._maps_dir / f"{name}{suffix}")

    def list_maps(self) -> list[str]:
        """Names of all cached and on-disk maps, default first."""
        names = [DEFAULT_MAP_NAME]
        for name in self._maps:
            if name not in names:
                names.append(name)
        if self._maps_dir.exists():
            for path in sorted(self._maps_dir.iterdir()):
                if path.suffix.lower() not in MAP_SUFFIXES or path.name.startswith("_"):
                    continue
                if path.stem not in names:
                    names.append(path.stem)
        return names
