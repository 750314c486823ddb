"""
Field-type inference - columns of a table definition to form fields.

Each column becomes one ``FieldDescriptor``. A column that cannot be
interpreted is skipped with a warning; the remaining columns are still
returned. Reference columns get their options from a caller-supplied
loader, and a failing loader only leaves that field without options.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from tables_connector.models import (
    ActionDefinition,
    ColumnDefinition,
    FieldDescriptor,
    FieldType,
    Option,
    TableDefinition,
    normalize_columns,
)
from tables_connector.observability import log_context
from tables_connector.options import (
    coerce_number,
    ensure_option_value,
    to_display_string,
    unique_options,
)


logger = logging.getLogger(__name__)

ReferenceLoader = Callable[[str], List[Option]]

CREATE_OPERATION = "create"
REFERENCE_TYPES = ("foreign-key", "reference")
DATE_TYPES = ("date", "datetime")


def _first_defined(entry: dict, keys: tuple, default: Any) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return default


def build_static_options(raw_options: Any, prefer_numeric: bool) -> List[Option]:
    """
    Options declared inline on a column type.

    Accepted shapes: a list of objects (``name/label/desc`` for the label,
    ``value/id/key`` for the value), a list of bare scalars, or a mapping
    of value to label. With ``prefer_numeric`` values are turned into
    numbers where possible, falling back to the entry's position for
    scalars that are not numeric.
    """
    if not raw_options:
        return []

    options: List[Option] = []
    if isinstance(raw_options, list):
        for index, entry in enumerate(raw_options):
            if isinstance(entry, dict):
                label = to_display_string(_first_defined(entry, ("name", "label", "desc", "value"), index))
                raw_value = _first_defined(entry, ("value", "id", "key"), index if prefer_numeric else label)
            else:
                label = to_display_string(entry)
                if prefer_numeric:
                    numeric = coerce_number(entry)
                    raw_value = numeric if numeric is not None else index
                else:
                    raw_value = entry
            value = ensure_option_value(raw_value, prefer_numeric, coerce_strings=prefer_numeric)
            options.append(Option(label=label, value=value))

    elif isinstance(raw_options, dict):
        for key, label in raw_options.items():
            raw_value: Any = key
            if prefer_numeric:
                numeric = coerce_number(key)
                raw_value = numeric if numeric is not None else key
            options.append(
                Option(
                    label=to_display_string(label if label is not None else key),
                    value=ensure_option_value(raw_value, prefer_numeric),
                )
            )
    else:
        logger.debug("Ignoring options of unexpected shape: %s", type(raw_options).__name__)

    return unique_options(options)


def _load_references(loader: Optional[ReferenceLoader], table_name: str) -> List[Option]:
    if loader is None:
        return []
    try:
        return loader(table_name) or []
    except Exception as e:
        # one unresolvable reference must not fail the whole form
        logger.warning("Reference loader failed: %s", e, extra=log_context(table=table_name))
        return []


def infer_field(
    column: ColumnDefinition,
    operation: str,
    reference_loader: Optional[ReferenceLoader] = None,
) -> FieldDescriptor:
    """Build the form field for one normalized column."""
    column_type = column.type
    type_name = column_type.type
    options = build_static_options(column_type.options, prefer_numeric=type_name == "number")

    if type_name == "number":
        field_type = FieldType.OPTIONS if options else FieldType.NUMBER
    elif type_name == "boolean":
        field_type = FieldType.BOOLEAN
    elif type_name in DATE_TYPES:
        field_type = FieldType.DATE_TIME
    elif type_name == "time":
        field_type = FieldType.TIME
    elif type_name in REFERENCE_TYPES:
        if column_type.references:
            options = unique_options(_load_references(reference_loader, column_type.references))
        field_type = FieldType.OPTIONS
    elif options:
        field_type = FieldType.OPTIONS
    else:
        field_type = FieldType.STRING

    required = column.required and operation == CREATE_OPERATION
    display_name = f"{column.desc or column.id} ({column.id})"
    if column_type.info:
        display_name = f"{display_name}: {column_type.info}"

    return FieldDescriptor(
        id=column.id,
        display_name=display_name,
        type=field_type,
        required=required,
        removed=not required,
        options=options if field_type == FieldType.OPTIONS else None,
        description=column_type.info,
    )


def infer_fields(
    table: TableDefinition,
    operation: str,
    reference_loader: Optional[ReferenceLoader] = None,
) -> List[FieldDescriptor]:
    """
    Form fields for every column of ``table``, in descriptor order.

    Only a ``create`` operation marks fields as required; every other
    operation starts with all fields optional and hidden.
    """
    fields: List[FieldDescriptor] = []
    for column_id, raw in normalize_columns(table.columns):
        try:
            column = ColumnDefinition.from_raw(column_id, raw)
            fields.append(infer_field(column, operation, reference_loader))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(
                "Skipping column %s: %s", column_id, e,
                extra=log_context(table=table.key),
            )
    return fields


def action_param_fields(action: Optional[ActionDefinition]) -> List[FieldDescriptor]:
    """One optional, visible string field per declared action parameter."""
    if action is None:
        return []
    return [
        FieldDescriptor(
            id=param,
            display_name=param,
            type=FieldType.STRING,
            required=False,
            can_be_used_to_match=False,
            removed=False,
        )
        for param in action.params
    ]


__all__ = [
    "ReferenceLoader",
    "action_param_fields",
    "build_static_options",
    "infer_field",
    "infer_fields",
]
