"""Tests for conversion map parsing, serialization and file I/O."""

import json

import pytest

from fabriclink.core.conversion_map import (
    ConversionMap,
    ConversionMapError,
    FunctionLogic,
    MappingType,
    PipelineLogic,
    TransformationType,
    new_conversion_map,
)
from fabriclink.core.map_loader import (
    dump_map_document,
    load_default_map,
    load_map_file,
    parse_map_data,
    parse_map_document,
    save_map_file,
)


MINIMAL_MAP = {
    "version": "1.0.0",
    "header_row": 1,
    "field_definitions": {
        "switch_label": {
            "display_name": "Switch",
            "xlsx_mappings": [{"pattern": "Switch", "mapping_type": "exact", "priority": 100}],
        }
    },
}


class TestParse:
    def test_minimal_document(self):
        conversion_map = parse_map_data(MINIMAL_MAP)
        field_def = conversion_map.field_definitions["switch_label"]
        assert field_def.header_mappings[0].mapping_type == MappingType.EXACT
        assert field_def.header_mappings[0].case_sensitive is False
        assert conversion_map.transformation_rules == {}

    def test_pascal_case_enum_rejected(self):
        doc = json.loads(json.dumps(MINIMAL_MAP))
        doc["field_definitions"]["switch_label"]["xlsx_mappings"][0]["mapping_type"] = "Exact"
        with pytest.raises(ConversionMapError):
            parse_map_data(doc)

    def test_pascal_case_rule_type_rejected(self):
        doc = dict(MINIMAL_MAP)
        doc["transformation_rules"] = {
            "t": {"name": "t", "rule_type": "ValueMapping", "logic": {"type": "value_map", "mappings": {}}},
        }
        with pytest.raises(ConversionMapError):
            parse_map_data(doc)

    def test_missing_top_level_keys(self):
        with pytest.raises(ConversionMapError):
            parse_map_data({"header_row": 1, "field_definitions": {}})
        with pytest.raises(ConversionMapError):
            parse_map_data({"version": "1.0.0"})

    def test_header_row_must_be_positive(self):
        doc = dict(MINIMAL_MAP, header_row=0)
        with pytest.raises(ConversionMapError):
            parse_map_data(doc)

    def test_not_a_mapping(self):
        with pytest.raises(ConversionMapError):
            parse_map_data(["version"])

    def test_unparseable_text(self):
        with pytest.raises(ConversionMapError):
            parse_map_document("{not json", "json")
        with pytest.raises(ConversionMapError):
            parse_map_document("a: [b", "yaml")

    def test_unknown_format(self):
        with pytest.raises(ConversionMapError):
            parse_map_document("{}", "toml")

    def test_logic_tagged_by_type(self):
        doc = dict(MINIMAL_MAP)
        doc["transformation_rules"] = {
            "speed": {
                "name": "speed", "rule_type": "function",
                "logic": {"type": "function", "name": "normalize_speed"},
            },
            "port": {
                "name": "port", "rule_type": "pipeline",
                "logic": {"type": "pipeline", "steps": [
                    {"step_type": "function", "parameters": {"name": "trim_whitespace"}},
                ]},
            },
        }
        conversion_map = parse_map_data(doc)
        assert isinstance(conversion_map.transformation_rules["speed"].logic, FunctionLogic)
        assert isinstance(conversion_map.transformation_rules["port"].logic, PipelineLogic)
        assert conversion_map.transformation_rules["port"].rule_type == TransformationType.PIPELINE


class TestRoundTrip:
    @pytest.mark.parametrize("fmt", ["json", "yaml"])
    def test_default_map_round_trip(self, fmt):
        original = load_default_map()
        text = dump_map_document(original, fmt)
        again = parse_map_document(text, fmt)
        assert again == original
        assert again.model_dump(mode="json") == original.model_dump(mode="json")

    def test_enums_serialized_snake_case(self):
        data = json.loads(dump_map_document(load_default_map()))
        mapping = data["field_definitions"]["switch_label"]["xlsx_mappings"][0]
        assert mapping["mapping_type"] == "exact"
        assert data["transformation_rules"]["trim"]["rule_type"] == "function"
        assert data["transformation_rules"]["trim"]["logic"]["type"] == "function"


class TestFiles:
    def test_save_and_load(self, tmp_path):
        conversion_map = parse_map_data(MINIMAL_MAP)
        for name in ("site.json", "site.yaml", "nested/site.yml"):
            path = save_map_file(conversion_map, tmp_path / name)
            assert path.exists()
            assert load_map_file(path) == conversion_map

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_map_file(tmp_path / "nope.json")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "map.txt"
        path.write_text("{}")
        with pytest.raises(ConversionMapError):
            load_map_file(path)


class TestDefaultMap:
    def test_default_map_contents(self):
        conversion_map = load_default_map()
        assert conversion_map.header_row == 2
        assert "switch_label" in conversion_map.field_definitions
        assert conversion_map.get_transformation_rule("generate_interface_name").conditions == {
            "input_type": "numeric_port"
        }

    def test_field_names_sorted(self):
        assert load_default_map().field_names() == sorted(load_default_map().field_definitions)

    def test_new_map_and_touch(self):
        conversion_map = new_conversion_map(3)
        assert isinstance(conversion_map, ConversionMap)
        assert conversion_map.header_row == 3
        assert conversion_map.created_at == conversion_map.updated_at
        touched = conversion_map.touch()
        assert touched.created_at == conversion_map.created_at
        assert touched.updated_at >= conversion_map.updated_at
