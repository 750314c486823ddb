"""
Option extraction - turn arbitrary records into ``(value, label)`` pairs.

Reference tables have no fixed record shape, so the value and label of
an option are found heuristically:

* value: the first present key of ``id, ID, Id, value, key``, else the
  record's first field.
* label: an ordered list of strategies (``LabelStrategy``), each returning
  an optional label; the first hit wins.

The result is best-effort by nature. Two records whose values render to
the same text are treated as duplicates (``7`` and ``"7"``).
"""

from __future__ import annotations

import json
import logging
import math
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import quote

from tables_connector.models import Option, OptionValue
from tables_connector.observability import log_context
from tables_connector.sdk import HttpApiError, HttpClient, NodeTimeoutError


logger = logging.getLogger(__name__)

VALUE_KEYS = ("id", "ID", "Id", "value", "key")
LABEL_KEYS = (
    "name", "Name", "title", "Title", "label", "Label",
    "desc", "Desc", "description", "Description",
)
READABLE_KEYS = LABEL_KEYS + ("text", "code", "value", "slug", "short", "long")
RECORD_LIST_KEYS = ("data", "items", "records", "results", "list")

MAX_READABLE_DEPTH = 4
DEFAULT_OPTION_LIMIT = 200


# ==============================================================================
# Scalar helpers
# ==============================================================================

def to_display_string(value: Any) -> str:
    """Render a value the way it appears on the wire."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def coerce_number(value: Any) -> Optional[float | int]:
    """Finite number from a number or numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def ensure_option_value(value: Any, prefer_numeric: bool, coerce_strings: bool = False) -> OptionValue:
    """
    Make ``value`` usable as an option value.

    Scalars pass through (numeric strings become numbers only with
    ``coerce_strings``). Anything else is rendered to a string.
    """
    if coerce_strings and isinstance(value, str):
        numeric = coerce_number(value)
        if numeric is not None:
            return numeric
    if isinstance(value, (str, int, float, bool)):
        return value
    if prefer_numeric:
        numeric = coerce_number(value)
        if numeric is not None:
            return numeric
    return to_display_string(value)


# ==============================================================================
# Readable-string search
# ==============================================================================

def find_readable_string(value: Any, depth: int = 0) -> Optional[str]:
    """
    Depth-bounded search for the first non-empty human-readable string.

    Scalars are stringified, lists are scanned in order, objects are
    scanned through ``READABLE_KEYS`` first and then through all values.
    """
    if depth > MAX_READABLE_DEPTH or value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (bool, int, float)):
        return to_display_string(value)
    if isinstance(value, list):
        for entry in value:
            found = find_readable_string(entry, depth + 1)
            if found:
                return found
        return None
    if isinstance(value, dict):
        for key in READABLE_KEYS:
            if key in value:
                found = find_readable_string(value[key], depth + 1)
                if found:
                    return found
        for entry in value.values():
            found = find_readable_string(entry, depth + 1)
            if found:
                return found
    return None


# ==============================================================================
# Label strategies
# ==============================================================================

class LabelStrategy(str, Enum):
    """Label extraction strategies, in priority order."""
    CANDIDATE_KEY = "candidate_key"
    READABLE_SEARCH = "readable_search"
    VALUE = "value"


def _first_present(record: Dict[str, Any], keys: tuple) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _label_from_candidate_key(record: Dict[str, Any], value_text: str) -> Optional[str]:
    return find_readable_string(_first_present(record, LABEL_KEYS))


def _label_from_readable_search(record: Dict[str, Any], value_text: str) -> Optional[str]:
    return find_readable_string(record)


def _label_from_value(record: Dict[str, Any], value_text: str) -> Optional[str]:
    return value_text or None


LABEL_STRATEGIES: Dict[LabelStrategy, Callable[[Dict[str, Any], str], Optional[str]]] = {
    LabelStrategy.CANDIDATE_KEY: _label_from_candidate_key,
    LabelStrategy.READABLE_SEARCH: _label_from_readable_search,
    LabelStrategy.VALUE: _label_from_value,
}


def extract_label(record: Dict[str, Any], value_text: str) -> tuple[Optional[str], Optional[LabelStrategy]]:
    """Run the strategies in order; return the label and the strategy that produced it."""
    for strategy in LabelStrategy:
        label = LABEL_STRATEGIES[strategy](record, value_text)
        if label:
            return label, strategy
    return None, None


def _annotate(label: str, value_text: str) -> str:
    """Append ``(value)`` unless the label is the value or already carries it."""
    if not value_text or label == value_text or f"({value_text})" in label:
        return label
    return f"{label} ({value_text})"


# ==============================================================================
# Record -> Option
# ==============================================================================

def record_to_option(record: Any) -> Optional[Option]:
    """
    Derive an option from one listing record or a raw literal.

    Returns None when no value can be determined.
    """
    if record is None or isinstance(record, list):
        return None
    if not isinstance(record, dict):
        text = to_display_string(record)
        if not text:
            return None
        return Option(label=text, value=ensure_option_value(record, prefer_numeric=True))

    raw_value = _first_present(record, VALUE_KEYS)
    if raw_value is None and record:
        raw_value = next(iter(record.values()))
    if raw_value is None:
        return None

    value = ensure_option_value(raw_value, prefer_numeric=True)
    value_text = to_display_string(value)
    label, strategy = extract_label(record, value_text)
    if strategy is LabelStrategy.VALUE or label is None:
        return Option(label=value_text, value=value)
    return Option(label=_annotate(label, value_text), value=value)


def extract_records(response: Any) -> List[Any]:
    """Records of a listing response: the root list or the first list-valued envelope key."""
    if not response:
        return []
    if isinstance(response, list):
        return response
    if isinstance(response, dict):
        for key in RECORD_LIST_KEYS:
            candidate = response.get(key)
            if isinstance(candidate, list):
                return candidate
    return []


def unique_options(options: Iterable[Option]) -> List[Option]:
    """Drop options whose value was already seen; first occurrence wins."""
    seen: set[str] = set()
    unique: List[Option] = []
    for option in options:
        key = to_display_string(option.value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(option)
    return unique


def records_to_options(records: List[Any], limit: int = DEFAULT_OPTION_LIMIT) -> List[Option]:
    """Convert at most ``limit`` records, dropping failures and repeated values."""
    converted = (record_to_option(record) for record in records[:limit])
    return unique_options(option for option in converted if option is not None)


def load_reference_options(
    http: HttpClient,
    table_name: str,
    tables_api_path: str = "/TablesAPI",
    limit: int = DEFAULT_OPTION_LIMIT,
) -> List[Option]:
    """
    List ``table_name`` and turn its records into options.

    Never raises for transport or payload problems: the field simply
    gets no options and a warning is logged.
    """
    endpoint = f"{tables_api_path}/{quote(table_name, safe='')}/list"
    try:
        response = http.request("POST", endpoint, json={})
        response.raise_for_status()
        payload = response.json()
    except (HttpApiError, NodeTimeoutError, ValueError) as e:
        logger.warning(
            "Could not load reference options: %s", e,
            extra=log_context(table=table_name),
        )
        return []

    records = extract_records(payload)
    options = records_to_options(records, limit)
    logger.debug(
        "Loaded %d reference options from %d records", len(options), len(records),
        extra=log_context(table=table_name),
    )
    return options


__all__ = [
    "LabelStrategy",
    "coerce_number",
    "ensure_option_value",
    "extract_label",
    "extract_records",
    "find_readable_string",
    "load_reference_options",
    "record_to_option",
    "records_to_options",
    "unique_options",
    "to_display_string",
]
