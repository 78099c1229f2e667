"""Header Resolver — matches raw spreadsheet headers to canonical field names.

Every header mapping of every field definition is scored against each raw
header:

- exact:   normalized pattern == normalized header          -> 1.0
- regex:   pattern matches the header                       -> 0.9
- partial: normalized pattern/header contain one another    -> 0.8
- fuzzy:   1 - levenshtein / max(len(pattern), len(header)) -> 0..1

Resolution runs in two passes. The first pass only looks at exact matches and
locks each canonical field on its first exact hit (in header order). The
second pass ranks the remaining regex/partial/fuzzy candidates globally by
confidence, then mapping priority, then header order, then field name, and
assigns greedily so that a field is never taken from a stronger header.

When no field definition matches any header, a built-in synonym table is used
instead so that minimal maps still yield a usable mapping.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from fabriclink.core.config import settings
from fabriclink.core.conversion_map import (
    ConversionMap,
    FieldDefinition,
    MappingType,
    XlsxMapping,
)
from fabriclink.core.models import ErrorSeverity, HeaderResolutionView, ValidationIssue

logger = logging.getLogger(__name__)


CONFIDENCE_EXACT = 1.0
CONFIDENCE_REGEX = 0.9
CONFIDENCE_PARTIAL = 0.8

FALLBACK_MIN_LOOSE_LENGTH = 4


DEFAULT_FIELD_VARIATIONS: dict[str, list[str]] = {
    "server_label": ["server_label", "server", "server_name", "hostname", "host name", "host_name"],
    "switch_label": ["switch_label", "switch", "switch_name", "switch name", "device"],
    "switch_ifname": ["switch_ifname", "switch_interface", "switch_port", "switch port", "port", "interface"],
    "server_ifname": [
        "server_ifname", "server_interface", "server_port", "server port",
        "nic", "slot", "slot/port", "slot port",
    ],
    "is_external": ["is_external", "external", "ext"],
    "link_speed": ["link_speed", "speed", "bandwidth", "speed (gb)", "speed(gb)"],
    "link_group_lag_mode": ["link_group_lag_mode", "lag_mode", "bond_mode", "mode", "lacpneeded", "lacp needed"],
    "link_group_ct_names": ["link_group_ct_names", "ct", "cts", "connectivity_template"],
    "server_tags": ["server_tags", "tags"],
    "link_tags": ["link_tags", "tags"],
    "comment": ["comment", "comments", "description", "notes"],
}

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_header(header: Any, case_fold: bool = True) -> str:
    """Canonical comparison form of a header.

    CR/LF become spaces, whitespace runs collapse to one space, ends are
    trimmed and (by default) the result is case-folded.
    """
    if header is None:
        return ""
    s = str(header).replace("\r", " ").replace("\n", " ")
    s = _WHITESPACE_RE.sub(" ", s).strip()
    return s.casefold() if case_fold else s


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance between two strings (insert/delete/substitute, cost 1)."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def fuzzy_confidence(pattern: str, header: str) -> float:
    """Similarity in [0, 1] computed on the raw strings."""
    max_len = max(len(pattern), len(header))
    if max_len == 0:
        return 1.0
    return 1.0 - (levenshtein_distance(pattern, header) / max_len)


@dataclass
class HeaderMatch:
    """A raw header resolved to a canonical field."""
    column_index: int
    header: str
    field_name: str
    confidence: float
    mapping_type: MappingType
    priority: int = 0


@dataclass
class HeaderResolution:
    """Outcome of resolving one header row against a map."""
    headers: list[str]
    column_fields: list[Optional[str]]
    matches: dict[int, HeaderMatch] = field(default_factory=dict)
    converted_headers: dict[str, str] = field(default_factory=dict)
    mapping_confidence: dict[str, float] = field(default_factory=dict)
    applied_transformations: dict[str, str] = field(default_factory=dict)
    unmatched_headers: list[str] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)
    used_fallback: bool = False

    def canonical_for(self, raw_header: str) -> Optional[tuple[str, float]]:
        """(field_name, confidence) for a raw header, or None if unmatched."""
        field_name = self.converted_headers.get(raw_header)
        if field_name is None:
            return None
        return field_name, self.mapping_confidence[raw_header]

    def column_of(self, field_name: str) -> Optional[int]:
        for match in self.matches.values():
            if match.field_name == field_name:
                return match.column_index
        return None

    def to_view(self, header_row: int) -> HeaderResolutionView:
        return HeaderResolutionView(
            header_row=header_row,
            headers=self.headers,
            converted_headers=self.converted_headers,
            mapping_confidence=self.mapping_confidence,
            applied_transformations=self.applied_transformations,
            unmatched_headers=self.unmatched_headers,
            used_fallback=self.used_fallback,
        )


def fallback_field_definitions() -> dict[str, FieldDefinition]:
    """Field definitions built from the generic synonym table.

    Every synonym is an exact mapping. Synonyms of four or more characters
    also get a partial and a fuzzy mapping at lower priority.
    """
    definitions = {}
    for field_name, variations in DEFAULT_FIELD_VARIATIONS.items():
        mappings = [XlsxMapping(pattern=v, mapping_type=MappingType.EXACT, priority=100) for v in variations]
        for v in variations:
            if len(v) < FALLBACK_MIN_LOOSE_LENGTH:
                continue
            mappings.append(XlsxMapping(pattern=v, mapping_type=MappingType.PARTIAL, priority=50))
            mappings.append(XlsxMapping(pattern=v, mapping_type=MappingType.FUZZY, priority=10))
        definitions[field_name] = FieldDefinition(display_name=field_name, xlsx_mappings=mappings)
    return definitions


class _PatternCache:
    """Compiles regex patterns once per resolution and reports bad ones once."""

    def __init__(self, issues: list[ValidationIssue]):
        self._compiled: dict[tuple[str, bool], Optional[re.Pattern]] = {}
        self._issues = issues

    def get(self, field_name: str, mapping: XlsxMapping) -> Optional[re.Pattern]:
        key = (mapping.pattern, mapping.case_sensitive)
        if key not in self._compiled:
            flags = 0 if mapping.case_sensitive else re.IGNORECASE
            try:
                self._compiled[key] = re.compile(mapping.pattern, flags)
            except re.error as e:
                logger.warning(f"Invalid regex header pattern '{mapping.pattern}' for field '{field_name}': {e}")
                self._issues.append(ValidationIssue(
                    field=field_name,
                    message=f"Invalid regex header pattern '{mapping.pattern}': {e}",
                    severity=ErrorSeverity.WARNING,
                ))
                self._compiled[key] = None
        return self._compiled[key]


def _is_exact(mapping: XlsxMapping, header: str) -> bool:
    fold = not mapping.case_sensitive
    pattern = normalize_header(mapping.pattern, fold)
    return pattern != "" and pattern == normalize_header(header, fold)


def score_mapping(
    mapping: XlsxMapping,
    header: str,
    regex: Optional[re.Pattern] = None,
) -> float:
    """Confidence that `mapping` matches `header` (0.0 = no match).

    For regex mappings the compiled pattern must be supplied by the caller.
    """
    if mapping.mapping_type == MappingType.EXACT:
        return CONFIDENCE_EXACT if _is_exact(mapping, header) else 0.0

    if mapping.mapping_type == MappingType.REGEX:
        if regex is None:
            return 0.0
        if regex.search(header) or regex.search(normalize_header(header, case_fold=False)):
            return CONFIDENCE_REGEX
        return 0.0

    if mapping.mapping_type == MappingType.PARTIAL:
        fold = not mapping.case_sensitive
        pattern = normalize_header(mapping.pattern, fold)
        norm = normalize_header(header, fold)
        if pattern and norm and (pattern in norm or norm in pattern):
            return CONFIDENCE_PARTIAL
        return 0.0

    return fuzzy_confidence(mapping.pattern, header)


def _resolve_pass(
    headers: list[str],
    definitions: dict[str, FieldDefinition],
    fuzzy_min: float,
    issues: list[ValidationIssue],
) -> dict[int, HeaderMatch]:
    field_order = sorted(definitions)
    matches: dict[int, HeaderMatch] = {}
    claimed: set[str] = set()

    # Pass 1: exact matches, first header wins each field
    for col, header in enumerate(headers):
        if not normalize_header(header):
            continue
        best: Optional[tuple[int, int, str]] = None
        for order, field_name in enumerate(field_order):
            if field_name in claimed:
                continue
            for mapping in definitions[field_name].xlsx_mappings:
                if mapping.mapping_type != MappingType.EXACT or not _is_exact(mapping, header):
                    continue
                candidate = (-mapping.priority, order, field_name)
                if best is None or candidate < best:
                    best = candidate
        if best is not None:
            priority, _, field_name = best
            matches[col] = HeaderMatch(col, header, field_name, CONFIDENCE_EXACT, MappingType.EXACT, -priority)
            claimed.add(field_name)

    # Pass 2: regex / partial / fuzzy over whatever is left
    patterns = _PatternCache(issues)
    candidates: list[tuple[float, int, int, int, str, MappingType]] = []
    for col, header in enumerate(headers):
        if col in matches or not normalize_header(header):
            continue
        for order, field_name in enumerate(field_order):
            if field_name in claimed:
                continue
            best_for_field: Optional[tuple[float, int, MappingType]] = None
            for mapping in definitions[field_name].xlsx_mappings:
                if mapping.mapping_type == MappingType.EXACT:
                    continue
                regex = patterns.get(field_name, mapping) if mapping.mapping_type == MappingType.REGEX else None
                confidence = score_mapping(mapping, header, regex)
                if mapping.mapping_type == MappingType.FUZZY and confidence < fuzzy_min:
                    continue
                if confidence <= 0.0:
                    continue
                scored = (confidence, mapping.priority, mapping.mapping_type)
                if best_for_field is None or scored[:2] > best_for_field[:2]:
                    best_for_field = scored
            if best_for_field is not None:
                confidence, priority, mapping_type = best_for_field
                candidates.append((-confidence, -priority, col, order, field_name, mapping_type))

    for neg_conf, neg_priority, col, _, field_name, mapping_type in sorted(candidates, key=lambda c: c[:4]):
        if col in matches or field_name in claimed:
            continue
        matches[col] = HeaderMatch(col, headers[col], field_name, -neg_conf, mapping_type, -neg_priority)
        claimed.add(field_name)

    return matches


def resolve_headers(
    raw_headers: list[Any],
    conversion_map: ConversionMap,
    fuzzy_min_confidence: Optional[float] = None,
) -> HeaderResolution:
    """Resolve a header row against the map's field definitions."""
    headers = ["" if h is None else str(h) for h in raw_headers]
    fuzzy_min = settings.fuzzy_min_confidence if fuzzy_min_confidence is None else fuzzy_min_confidence
    issues: list[ValidationIssue] = []

    definitions = conversion_map.field_definitions
    matches = _resolve_pass(headers, definitions, fuzzy_min, issues)
    used_fallback = False
    if not matches and any(normalize_header(h) for h in headers):
        logger.info("No field definition matched any header; using built-in synonyms")
        definitions = fallback_field_definitions()
        matches = _resolve_pass(headers, definitions, fuzzy_min, issues)
        used_fallback = True

    resolution = HeaderResolution(
        headers=headers,
        column_fields=[matches[c].field_name if c in matches else None for c in range(len(headers))],
        matches=matches,
        issues=issues,
        used_fallback=used_fallback,
    )

    for match in sorted(matches.values(), key=lambda m: m.column_index):
        header = match.header
        if header in resolution.converted_headers:
            continue
        resolution.converted_headers[header] = match.field_name
        resolution.mapping_confidence[header] = match.confidence
        field_def = conversion_map.field_definitions.get(match.field_name)
        if field_def and field_def.transformations:
            resolution.applied_transformations[header] = ", ".join(field_def.transformations)
        logger.debug(f"Mapped {header!r} -> '{match.field_name}' ({match.mapping_type.value}, {match.confidence:.2f})")

    # A header copied across a merged region counts as mapped
    for col, header in enumerate(headers):
        if col in matches or not normalize_header(header) or header in resolution.converted_headers:
            continue
        logger.warning(f"No field mapping found for header: {header!r}")
        resolution.unmatched_headers.append(header)
        issues.append(ValidationIssue(
            field=header,
            message=f"No field mapping found for header: {header}",
            severity=ErrorSeverity.WARNING,
        ))

    return resolution
