"""Tests for header normalization and two-pass header resolution."""

import pytest

from fabriclink.core.conversion_map import FieldDefinition, MappingType, XlsxMapping
from fabriclink.core.header_resolver import (
    CONFIDENCE_EXACT,
    CONFIDENCE_PARTIAL,
    CONFIDENCE_REGEX,
    fuzzy_confidence,
    levenshtein_distance,
    normalize_header,
    resolve_headers,
)
from fabriclink.core.map_loader import load_default_map
from fabriclink.core.models import ErrorSeverity

from conftest import make_field, make_map


@pytest.fixture(scope="module")
def default_map():
    return load_default_map()


class TestNormalizeHeader:
    def test_newlines_and_whitespace(self):
        assert normalize_header("  Speed\r\n(GB) ") == "speed (gb)"
        assert normalize_header("LACP\nNeeded") == "lacp needed"
        assert normalize_header("Host    Name") == "host name"

    def test_none_and_numbers(self):
        assert normalize_header(None) == ""
        assert normalize_header(42) == "42"

    def test_case_preserved_on_request(self):
        assert normalize_header(" Switch  Name ", case_fold=False) == "Switch Name"


class TestFuzzy:
    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_confidence_on_raw_strings(self):
        assert fuzzy_confidence("host name", "host name") == 1.0
        assert fuzzy_confidence("host name", "Hostnme") == pytest.approx(1 - 3 / 9)
        assert fuzzy_confidence("", "") == 1.0


class TestTiers:
    def test_exact(self, default_map):
        res = resolve_headers(["Switch Name"], default_map)
        assert res.canonical_for("Switch Name") == ("switch_label", CONFIDENCE_EXACT)

    def test_exact_after_normalization(self, default_map):
        res = resolve_headers(["Speed\n(GB)", "LACP\r\nNeeded"], default_map)
        assert res.canonical_for("Speed\n(GB)") == ("link_speed", CONFIDENCE_EXACT)
        assert res.canonical_for("LACP\r\nNeeded") == ("link_group_lag_mode", CONFIDENCE_EXACT)

    def test_regex(self, default_map):
        res = resolve_headers(["Interface"], default_map)
        assert res.canonical_for("Interface") == ("switch_ifname", CONFIDENCE_REGEX)

    def test_partial(self, default_map):
        res = resolve_headers(["Server Slot"], default_map)
        assert res.canonical_for("Server Slot") == ("server_ifname", CONFIDENCE_PARTIAL)

    def test_fuzzy(self, default_map):
        field_name, confidence = resolve_headers(["Hostnme"], default_map).canonical_for("Hostnme")
        assert field_name == "server_label"
        assert confidence == pytest.approx(1 - 3 / 9)

    def test_fuzzy_below_threshold_ignored(self, default_map):
        res = resolve_headers(["Hostnme"], default_map, fuzzy_min_confidence=0.9)
        assert res.canonical_for("Hostnme") is None
        assert res.unmatched_headers == ["Hostnme"]

    def test_equal_normalization_gives_equal_result(self, default_map):
        a = resolve_headers(["HOST   NAME"], default_map).canonical_for("HOST   NAME")
        b = resolve_headers(["host name"], default_map).canonical_for("host name")
        assert a == b == ("server_label", CONFIDENCE_EXACT)


class TestPrecedence:
    def test_exact_beats_higher_priority_partial(self):
        conversion_map = make_map({
            "b_partial": make_field("port", mapping_type=MappingType.PARTIAL, priority=999),
            "a_exact": make_field("Port", priority=1),
        })
        assert resolve_headers(["Port"], conversion_map).canonical_for("Port") == ("a_exact", 1.0)

    def test_priority_breaks_exact_ties(self):
        conversion_map = make_map({
            "alpha": make_field("Port", priority=10),
            "beta": make_field("Port", priority=20),
        })
        assert resolve_headers(["Port"], conversion_map).canonical_for("Port")[0] == "beta"

    def test_field_name_breaks_remaining_ties(self):
        conversion_map = make_map({
            "zulu": make_field("Port"),
            "alpha": make_field("Port"),
        })
        assert resolve_headers(["Port"], conversion_map).canonical_for("Port")[0] == "alpha"

    def test_first_exact_header_locks_field(self, default_map):
        res = resolve_headers(["Switch Name", "Switch"], default_map)
        assert res.column_fields == ["switch_label", None]
        assert res.unmatched_headers == ["Switch"]

    def test_field_not_reassigned_to_weaker_header(self, default_map):
        res = resolve_headers(["Speed", "Speed (GB)"], default_map)
        assert res.column_fields == ["link_speed", None]

    def test_second_pass_prefers_stronger_header(self):
        conversion_map = make_map({
            "server_ifname": FieldDefinition(
                display_name="NIC",
                xlsx_mappings=[
                    XlsxMapping(pattern="nic", mapping_type=MappingType.PARTIAL, priority=10),
                    XlsxMapping(pattern="^server nic$", mapping_type=MappingType.REGEX, priority=10),
                ],
            ),
        })
        res = resolve_headers(["NIC slot", "Server NIC"], conversion_map)
        assert res.column_fields == [None, "server_ifname"]
        assert res.mapping_confidence["Server NIC"] == CONFIDENCE_REGEX

    def test_resolution_is_deterministic(self, default_map):
        headers = ["Switch Name", "Port", "Host Name", "Slot/Port", "Speed", "Notes", "Server Slot"]
        first = resolve_headers(headers, default_map)
        for _ in range(3):
            again = resolve_headers(headers, default_map)
            assert again.column_fields == first.column_fields
            assert again.mapping_confidence == first.mapping_confidence


class TestFallback:
    def test_synonyms_used_when_nothing_matches(self):
        conversion_map = make_map({"rack": make_field("Rack")})
        res = resolve_headers(["Switch", "Port", "Hostname"], conversion_map)
        assert res.used_fallback is True
        assert res.column_fields == ["switch_label", "switch_ifname", "server_label"]

    def test_no_fallback_when_something_matches(self):
        conversion_map = make_map({"rack": make_field("Rack")})
        res = resolve_headers(["Rack", "Switch"], conversion_map)
        assert res.used_fallback is False
        assert res.column_fields == ["rack", None]

    def test_synonym_partial_and_fuzzy_matches(self):
        conversion_map = make_map({"rack": make_field("Rack")})
        res = resolve_headers(["Switch Name (A)", "Server Hostname", "Intrface"], conversion_map)
        assert res.used_fallback is True
        assert res.column_fields == ["switch_label", "server_label", "switch_ifname"]
        assert res.mapping_confidence["Switch Name (A)"] == CONFIDENCE_PARTIAL
        assert res.matches[2].mapping_type == MappingType.FUZZY

    def test_synonym_exact_beats_partial(self):
        conversion_map = make_map({"rack": make_field("Rack")})
        res = resolve_headers(["Switch Port Notes", "Switch Port"], conversion_map)
        assert res.column_fields[1] == "switch_ifname"
        assert res.mapping_confidence["Switch Port"] == CONFIDENCE_EXACT

    def test_blank_header_row_does_not_fall_back(self):
        res = resolve_headers([None, "  "], make_map({"rack": make_field("Rack")}))
        assert res.used_fallback is False
        assert res.unmatched_headers == []


class TestDiagnostics:
    def test_unmatched_headers_are_warnings(self, default_map):
        res = resolve_headers(["Switch Name", "Cable Colour", None], default_map)
        assert res.unmatched_headers == ["Cable Colour"]
        assert len(res.issues) == 1
        assert res.issues[0].severity == ErrorSeverity.WARNING

    def test_bad_regex_reported_once(self):
        conversion_map = make_map({
            "switch_label": make_field("Switch"),
            "odd": make_field("([", mapping_type=MappingType.REGEX),
        })
        res = resolve_headers(["Switch", "Other", "Another"], conversion_map)
        assert res.column_fields[0] == "switch_label"
        regex_issues = [i for i in res.issues if "regex" in i.message]
        assert len(regex_issues) == 1
        assert regex_issues[0].field == "odd"

    def test_applied_transformations_listed(self, default_map):
        res = resolve_headers(["Port"], default_map)
        assert res.applied_transformations["Port"] == "trim, generate_interface_name"

    def test_reconstructed_header_copy_not_unmatched(self):
        conversion_map = make_map({"server_tags": make_field("Tags"), "switch_label": make_field("Switch")})
        res = resolve_headers(["Switch", "Tags", "Tags"], conversion_map)
        assert res.column_fields == ["switch_label", "server_tags", None]
        assert res.converted_headers == {"Switch": "switch_label", "Tags": "server_tags"}
        assert res.unmatched_headers == []
        assert res.issues == []

    def test_duplicate_raw_headers_first_wins(self):
        conversion_map = make_map({
            "link_tags": make_field("Tags"),
            "server_tags": make_field("Tags"),
        })
        res = resolve_headers(["Tags", "Tags"], conversion_map)
        assert res.column_fields == ["link_tags", "server_tags"]
        assert res.converted_headers == {"Tags": "link_tags"}
        assert res.column_of("server_tags") == 1

    def test_view(self, default_map):
        view = resolve_headers(["Switch Name", "Port"], default_map).to_view(2)
        assert view.header_row == 2
        assert view.converted_headers == {"Switch Name": "switch_label", "Port": "switch_ifname"}
