"""Transformation Engine — interprets a field's transformation rules.

A rule is a condition gate plus one of four logic shapes:

- value_map: table lookup (exact key first, then case-insensitive)
- template:  "{input}" and "{<field>}" placeholder substitution
- function:  dispatch to a built-in (or registered) function by name
- pipeline:  ordered function/template/value_map steps

Failures never abort a conversion. An unknown function raises
TransformationError, which `apply_all` catches per rule so that the field
keeps its value from before that rule. A failing pipeline step leaves the
value unchanged for that step and the pipeline moves on.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from fabriclink.core.conversion_map import (
    ConversionMap,
    FunctionLogic,
    PipelineLogic,
    TemplateLogic,
    TransformationRule,
    ValueMapLogic,
)
from fabriclink.core.models import TransformationFailure

logger = logging.getLogger(__name__)


SPEED_FIELD = "link_speed"

TransformFunction = Callable[[str, Mapping[str, str]], str]


class TransformationError(Exception):
    """A transformation rule could not be applied."""


class BuiltinFunction(str, Enum):
    TRIM_WHITESPACE = "trim_whitespace"
    TO_UPPERCASE = "to_uppercase"
    TO_LOWERCASE = "to_lowercase"
    NORMALIZE_SPEED = "normalize_speed"
    GENERATE_INTERFACE_NAME = "generate_interface_name"
    LAG_MODE_CONVERSION = "lag_mode_conversion"


LAG_MODES = ("lacp_active", "static", "none")
_BUILTIN_NAMES = {f.value for f in BuiltinFunction}

_LAG_TRUTHY = {"yes", "y", "true", "1", "lacp"}
_LAG_FALSY = {"no", "n", "false", "0"}

_SPEED_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(GBPS|GB|G|MBPS|MB|M)?$")


# ---------------------------------------------------------------------------
# Built-in functions
# ---------------------------------------------------------------------------

def is_numeric_port(value: str) -> bool:
    """True if the value is a bare non-negative integer (a physical port number)."""
    s = value.strip()
    return s.isascii() and s.isdigit()


def normalize_speed(value: str) -> str:
    """Canonicalize a bandwidth value to "<integer>G" or "<integer>M".

    "25GB" / "25 Gbps" -> "25G", "100 MB" -> "100M", bare integers are
    gigabit ("40" -> "40G"). Values that cannot be parsed pass through.
    """
    if not value:
        return value
    clean = value.strip().upper()
    m = _SPEED_RE.match(clean)
    if not m:
        return value
    number = int(float(m.group(1)))
    unit = m.group(2) or "G"
    return f"{number}{unit[0]}"


def interface_prefix(speed: str) -> str:
    """Interface-type token for a link speed: ge (1G), xe (10G), et (above 10G).

    Unknown or missing speeds fall back to "ge".
    """
    normalized = normalize_speed(speed or "")
    m = re.match(r"^(\d+)([GM])$", normalized)
    if not m:
        return "ge"
    gigabits = int(m.group(1)) if m.group(2) == "G" else int(m.group(1)) / 1000
    if gigabits == 10:
        return "xe"
    if gigabits > 10:
        return "et"
    return "ge"


def generate_interface_name(value: str, context: Optional[Mapping[str, str]] = None) -> str:
    """Turn a bare port number into "<prefix>-0/0/<port>" using the row's link speed."""
    if not is_numeric_port(value):
        return value
    port = int(value.strip())
    speed = (context or {}).get(SPEED_FIELD) or ""
    return f"{interface_prefix(speed)}-0/0/{port}"


def convert_lag_mode(value: str) -> str:
    """Map yes/no style answers onto lacp_active / none."""
    if not value:
        return value
    clean = value.strip().lower()
    if clean in _LAG_TRUTHY:
        return "lacp_active"
    if clean in _LAG_FALSY:
        return "none"
    if clean in LAG_MODES:
        return clean
    return value


def call_builtin(function: BuiltinFunction, value: str, context: Mapping[str, str]) -> str:
    if function is BuiltinFunction.TRIM_WHITESPACE:
        return value.strip()
    if function is BuiltinFunction.TO_UPPERCASE:
        return value.upper()
    if function is BuiltinFunction.TO_LOWERCASE:
        return value.lower()
    if function is BuiltinFunction.NORMALIZE_SPEED:
        return normalize_speed(value)
    if function is BuiltinFunction.GENERATE_INTERFACE_NAME:
        return generate_interface_name(value, context)
    if function is BuiltinFunction.LAG_MODE_CONVERSION:
        return convert_lag_mode(value)
    raise TransformationError(f"Unhandled built-in function: {function.value}")


# ---------------------------------------------------------------------------
# Rule interpretation
# ---------------------------------------------------------------------------

def lookup_value(mappings: Mapping[str, Any], value: str) -> str:
    """Value-map lookup: exact key, then case-insensitive key, else unchanged."""
    if value in mappings:
        return str(mappings[value])
    lowered = value.lower()
    for key, mapped in mappings.items():
        if key.lower() == lowered:
            return str(mapped)
    return value


def render_template(template: str, value: str, context: Optional[Mapping[str, str]] = None) -> str:
    """Literal placeholder substitution; unknown placeholders are left as-is."""
    result = template.replace("{input}", value)
    for key, ctx_value in (context or {}).items():
        result = result.replace("{" + key + "}", ctx_value if ctx_value is not None else "")
    return result


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class TransformationReport:
    """Result of running every field's transformation chain."""
    values: dict[str, str]
    applied: dict[str, list[str]] = field(default_factory=dict)
    failures: list[TransformationFailure] = field(default_factory=list)


class TransformationEngine:
    """Applies transformation rules.

    Built-in functions are fixed; extra functions can be registered per
    engine instance. The engine keeps no per-call state.
    """

    def __init__(self, custom_functions: Optional[Mapping[str, TransformFunction]] = None):
        self._custom: dict[str, TransformFunction] = {}
        for name, func in (custom_functions or {}).items():
            self.register_function(name, func)

    def register_function(self, name: str, func: TransformFunction) -> None:
        if name in _BUILTIN_NAMES:
            raise ValueError(f"Cannot override built-in function '{name}'")
        self._custom[name] = func

    def available_functions(self) -> list[str]:
        return [f.value for f in BuiltinFunction] + sorted(self._custom)

    def has_function(self, name: str) -> bool:
        return name in _BUILTIN_NAMES or name in self._custom

    def call_function(self, name: str, value: str, context: Optional[Mapping[str, str]] = None) -> str:
        context = context or {}
        if name in _BUILTIN_NAMES:
            return call_builtin(BuiltinFunction(name), value, context)
        func = self._custom.get(name)
        if func is None:
            raise TransformationError(f"Unknown transformation function: {name}")
        try:
            return func(value, context)
        except Exception as e:
            raise TransformationError(f"Function '{name}' failed: {e}") from e

    def evaluate_conditions(
        self,
        conditions: Mapping[str, Any],
        value: str,
        context: Optional[Mapping[str, str]] = None,
    ) -> bool:
        """True if every condition holds. Unknown condition keys are ignored."""
        for key, expected in conditions.items():
            if key == "input_type":
                if expected != "numeric_port" or not is_numeric_port(value):
                    return False
            elif key == "has_speed_data":
                if expected is True and not (context or {}).get(SPEED_FIELD):
                    return False
            elif key == "min_length":
                if len(value) < _as_int(expected):
                    return False
            elif key == "max_length":
                if len(value) > _as_int(expected):
                    return False
            else:
                logger.debug(f"Ignoring unsupported condition '{key}'")
        return True

    def apply(
        self,
        rule: TransformationRule,
        value: str,
        context: Optional[Mapping[str, str]] = None,
        issues: Optional[list[str]] = None,
    ) -> str:
        """Apply one rule to a value.

        Pipeline step failures are appended to `issues` (when given) and
        logged; an unknown function in a function rule raises
        TransformationError.
        """
        if rule.conditions and not self.evaluate_conditions(rule.conditions, value, context):
            return value

        logic = rule.logic
        if isinstance(logic, ValueMapLogic):
            return lookup_value(logic.mappings, value)
        if isinstance(logic, TemplateLogic):
            return render_template(logic.template, value, context)
        if isinstance(logic, FunctionLogic):
            return self.call_function(logic.name, value, context)
        if isinstance(logic, PipelineLogic):
            current = value
            for i, step in enumerate(logic.steps):
                try:
                    current = self._apply_step(step.step_type, step.parameters, current, context)
                except TransformationError as e:
                    message = f"Step {i} of '{rule.name}': {e}"
                    logger.warning(message)
                    if issues is not None:
                        issues.append(message)
            return current
        raise TransformationError(f"Unsupported logic type: {type(logic).__name__}")

    def _apply_step(
        self,
        step_type: str,
        parameters: Mapping[str, Any],
        value: str,
        context: Optional[Mapping[str, str]],
    ) -> str:
        if step_type == "function":
            name = parameters.get("name")
            if not isinstance(name, str):
                raise TransformationError("Function step missing 'name' parameter")
            return self.call_function(name, value, context)
        if step_type == "template":
            template = parameters.get("template")
            if not isinstance(template, str):
                raise TransformationError("Template step missing 'template' parameter")
            return render_template(template, value, context)
        if step_type == "value_map":
            mappings = parameters.get("mappings")
            if not isinstance(mappings, dict):
                raise TransformationError("Value map step missing 'mappings' parameter")
            return lookup_value(mappings, value)
        raise TransformationError(f"Unknown transformation step type: {step_type}")

    def validate_rule(self, rule: TransformationRule) -> list[str]:
        """Configuration problems in a rule (empty list = valid)."""
        errors: list[str] = []
        logic = rule.logic
        if isinstance(logic, FunctionLogic):
            if not self.has_function(logic.name):
                errors.append(f"Unknown transformation function: {logic.name}")
        elif isinstance(logic, TemplateLogic):
            if not logic.template:
                errors.append("Template cannot be empty")
        elif isinstance(logic, ValueMapLogic):
            if not logic.mappings:
                errors.append("Value map cannot be empty")
        elif isinstance(logic, PipelineLogic):
            if not logic.steps:
                errors.append("Pipeline cannot be empty")
            for step in logic.steps:
                params = step.parameters
                if step.step_type == "function":
                    name = params.get("name")
                    if not isinstance(name, str):
                        errors.append("Function step missing 'name' parameter")
                    elif not self.has_function(name):
                        errors.append(f"Unknown function in pipeline: {name}")
                elif step.step_type == "template":
                    if not isinstance(params.get("template"), str):
                        errors.append("Template step missing 'template' parameter")
                elif step.step_type == "value_map":
                    if not isinstance(params.get("mappings"), dict):
                        errors.append("Value map step missing 'mappings' parameter")
                else:
                    errors.append(f"Unknown transformation step type: {step.step_type}")
        return errors

    def apply_all(self, field_values: Mapping[str, str], conversion_map: ConversionMap) -> TransformationReport:
        """Run each field's transformation chain in order.

        Fields are processed in the order of `field_values`; every rule sees
        the current values of all fields as context.
        """
        report = TransformationReport(values=dict(field_values))
        values = report.values

        for field_name in list(values):
            field_def = conversion_map.field_definitions.get(field_name)
            if not field_def or not field_def.transformations:
                continue
            for rule_name in field_def.transformations:
                rule = conversion_map.transformation_rules.get(rule_name)
                if rule is None:
                    message = f"Transformation rule '{rule_name}' not found"
                    logger.warning(f"{message} for field '{field_name}'")
                    report.failures.append(TransformationFailure(field=field_name, rule=rule_name, message=message))
                    continue

                before = values[field_name]
                step_issues: list[str] = []
                try:
                    after = self.apply(rule, before, values, step_issues)
                except TransformationError as e:
                    logger.warning(f"Transformation {rule_name} failed for field {field_name}: {e}")
                    report.failures.append(TransformationFailure(field=field_name, rule=rule_name, message=str(e)))
                    continue

                for message in step_issues:
                    report.failures.append(TransformationFailure(field=field_name, rule=rule_name, message=message))
                logger.debug(f"Transformation '{rule_name}' on '{field_name}': {before!r} -> {after!r}")
                values[field_name] = after
                report.applied.setdefault(field_name, []).append(rule_name)

        return report
