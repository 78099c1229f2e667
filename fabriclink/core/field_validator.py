"""Field Validator — checks converted field values against their definitions.

Required/length/pattern/numeric-range violations are errors; a value outside
`allowed_values` is only a warning. Results are advisory: a row is never
dropped because of them.
"""

import logging
import re
from typing import Mapping

from fabriclink.core.conversion_map import ConversionMap, FieldDefinition
from fabriclink.core.models import (
    ErrorSeverity,
    FieldValidationSummary,
    ValidationIssue,
    ValidationResult,
)

logger = logging.getLogger(__name__)


def _check_field(field_name: str, value: str, field_def: FieldDefinition) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    def error(message: str) -> None:
        issues.append(ValidationIssue(field=field_name, message=message, severity=ErrorSeverity.ERROR))

    empty = not value.strip()
    if empty and field_def.is_required:
        error("Required field cannot be empty")

    rules = field_def.validation_rules
    if rules.min_length is not None and len(value) < rules.min_length:
        error(f"Value too short, minimum length is {rules.min_length}")
    if rules.max_length is not None and len(value) > rules.max_length:
        error(f"Value too long, maximum length is {rules.max_length}")

    if rules.pattern:
        try:
            if not re.search(rules.pattern, value):
                error(f"Value does not match required pattern: {rules.pattern}")
        except re.error as e:
            logger.warning(f"Invalid validation pattern for field '{field_name}': {e}")
            issues.append(ValidationIssue(
                field=field_name,
                message=f"Invalid validation pattern '{rules.pattern}': {e}",
                severity=ErrorSeverity.WARNING,
            ))

    if rules.numeric_range is not None and not empty:
        try:
            number = float(value)
        except ValueError:
            error(f"Value '{value}' is not numeric")
        else:
            low, high = rules.numeric_range.min, rules.numeric_range.max
            if low is not None and number < low:
                error(f"Value {value} is below minimum {low}")
            if high is not None and number > high:
                error(f"Value {value} is above maximum {high}")

    if rules.allowed_values is not None and value not in rules.allowed_values:
        issues.append(ValidationIssue(
            field=field_name,
            message=f"Value '{value}' not in allowed values: {rules.allowed_values}",
            severity=ErrorSeverity.WARNING,
        ))

    return issues


def validate_field_values(field_values: Mapping[str, str], conversion_map: ConversionMap) -> ValidationResult:
    """Validate every present field that has a definition in the map."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    field_summary: dict[str, FieldValidationSummary] = {}

    for field_name, value in field_values.items():
        summary = FieldValidationSummary()
        field_def = conversion_map.field_definitions.get(field_name)
        if field_def is not None:
            for issue in _check_field(field_name, value or "", field_def):
                if issue.severity == ErrorSeverity.ERROR:
                    errors.append(issue)
                    summary.error_count += 1
                else:
                    warnings.append(issue)
                    summary.warning_count += 1
        summary.is_valid = summary.error_count == 0
        field_summary[field_name] = summary

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        field_summary=field_summary,
    )
