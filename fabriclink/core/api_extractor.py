"""API Extractor — pulls canonical field values out of controller JSON responses.

Each field definition may carry `api_mappings`: a primary path plus fallback
paths, tried in order until one resolves. Paths are dot-separated:

- `$` segments mark the root and are skipped
- `name?` is an optional segment (a miss ends the lookup without error)
- `name[*]` steps into an array and takes its first non-null element
"""

import logging
from typing import Any

from fabriclink.core.conversion_map import ConversionMap
from fabriclink.core.models import ApiExtractionResult, ExtractionError

logger = logging.getLogger(__name__)


class JsonPathMiss(LookupError):
    """A path segment did not resolve against the document."""


def _step(current: Any, key: str) -> Any:
    if not isinstance(current, dict) or key not in current:
        raise JsonPathMiss(key)
    return current[key]


def resolve_json_path(path: str, data: Any) -> Any:
    """Value at `path` in `data`. Raises JsonPathMiss if any segment is missing."""
    current = data
    for part in path.split("."):
        if not part or part.startswith("$"):
            continue
        if part.endswith("?"):
            current = _step(current, part[:-1])
        elif part.endswith("[*]"):
            items = _step(current, part[:-3])
            if not isinstance(items, list):
                raise JsonPathMiss(part)
            current = next((item for item in items if item is not None), None)
            if current is None:
                raise JsonPathMiss(part)
        else:
            current = _step(current, part)
    return current


def extract_api_data(response: Any, conversion_map: ConversionMap) -> ApiExtractionResult:
    """Extract every field that has API mappings from one response document."""
    result = ApiExtractionResult(total_fields=len(conversion_map.field_definitions))

    for field_name in conversion_map.field_names():
        api_mappings = conversion_map.field_definitions[field_name].api_mappings
        if not api_mappings:
            continue

        found = False
        for mapping in api_mappings:
            for path in [mapping.primary_path, *mapping.fallback_paths]:
                try:
                    result.extracted_data[field_name] = resolve_json_path(path, response)
                except JsonPathMiss:
                    continue
                found = True
                break
            if found:
                break

        if found:
            result.success_count += 1
        else:
            logger.debug(f"No API value for '{field_name}' at {api_mappings[0].primary_path}")
            result.extraction_errors.append(ExtractionError(
                field=field_name,
                message="Failed to extract value from API response",
                path=api_mappings[0].primary_path,
            ))

    logger.info(
        f"API extraction: {result.success_count} of {result.total_fields} fields, "
        f"{len(result.extraction_errors)} failed"
    )
    return result
