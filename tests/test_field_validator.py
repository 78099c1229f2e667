"""Tests for per-field validation of converted values."""

from fabriclink.core.conversion_map import NumericRange, ValidationRules
from fabriclink.core.field_validator import validate_field_values
from fabriclink.core.models import ErrorSeverity

from conftest import make_field, make_map


def _map(**rules):
    return make_map({
        "switch_label": make_field("Switch", is_required=True, validation_rules=ValidationRules(**rules)),
        "comment": make_field("Comment"),
    })


class TestRequired:
    def test_required_empty_is_error(self):
        result = validate_field_values({"switch_label": "  "}, _map())
        assert not result.is_valid
        assert result.errors[0].field == "switch_label"
        assert result.field_summary["switch_label"].error_count == 1

    def test_optional_empty_still_checked(self):
        rules = ValidationRules(min_length=2, pattern=r"^\S+$")
        conversion_map = make_map({"comment": make_field("Comment", validation_rules=rules)})
        result = validate_field_values({"comment": ""}, conversion_map)
        assert not result.is_valid
        assert result.field_summary["comment"].error_count == 2

    def test_optional_empty_against_allowed_values(self):
        rules = ValidationRules(allowed_values=["lacp_active", "none"])
        conversion_map = make_map({"mode": make_field("Mode", validation_rules=rules)})
        result = validate_field_values({"mode": ""}, conversion_map)
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_optional_empty_without_rules_is_valid(self):
        result = validate_field_values({"comment": ""}, _map())
        assert result.is_valid
        assert result.errors == []

    def test_empty_skips_numeric_range(self):
        result = validate_field_values({"comment": ""}, make_map({
            "comment": make_field("Comment", validation_rules=ValidationRules(numeric_range=NumericRange(min=1))),
        }))
        assert result.is_valid


class TestRules:
    def test_length_bounds(self):
        conversion_map = _map(min_length=3, max_length=5)
        assert not validate_field_values({"switch_label": "ab"}, conversion_map).is_valid
        assert validate_field_values({"switch_label": "abcd"}, conversion_map).is_valid
        assert not validate_field_values({"switch_label": "abcdef"}, conversion_map).is_valid

    def test_pattern(self):
        conversion_map = _map(pattern=r"^\d+[GM]$")
        assert validate_field_values({"switch_label": "25G"}, conversion_map).is_valid
        result = validate_field_values({"switch_label": "25GB"}, conversion_map)
        assert not result.is_valid
        assert "pattern" in result.errors[0].message

    def test_invalid_pattern_is_warning(self):
        result = validate_field_values({"switch_label": "x"}, _map(pattern="(["))
        assert result.is_valid
        assert result.warnings[0].severity == ErrorSeverity.WARNING

    def test_allowed_values_is_warning_only(self):
        result = validate_field_values({"switch_label": "maybe"}, _map(allowed_values=["lacp_active", "none"]))
        assert result.is_valid
        assert len(result.warnings) == 1
        assert result.field_summary["switch_label"].warning_count == 1
        assert result.field_summary["switch_label"].is_valid

    def test_numeric_range(self):
        conversion_map = _map(numeric_range=NumericRange(min=1, max=48))
        assert validate_field_values({"switch_label": "12"}, conversion_map).is_valid
        assert not validate_field_values({"switch_label": "0"}, conversion_map).is_valid
        assert not validate_field_values({"switch_label": "49"}, conversion_map).is_valid
        assert not validate_field_values({"switch_label": "ten"}, conversion_map).is_valid


class TestAggregation:
    def test_every_present_field_summarized(self):
        result = validate_field_values({"switch_label": "leaf1", "comment": "", "unknown": "x"}, _map())
        assert set(result.field_summary) == {"switch_label", "comment", "unknown"}
        assert result.is_valid

    def test_errors_across_fields(self):
        conversion_map = make_map({
            "a": make_field("A", is_required=True),
            "b": make_field("B", validation_rules=ValidationRules(max_length=1)),
        })
        result = validate_field_values({"a": "", "b": "long"}, conversion_map)
        assert not result.is_valid
        assert len(result.errors) == 2
        assert not result.field_summary["a"].is_valid
        assert not result.field_summary["b"].is_valid
