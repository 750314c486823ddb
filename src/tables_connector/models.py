"""
Typed entities derived from the remote schema descriptor.

The descriptor is loosely typed: columns arrive as a mapping or a list,
a column ``type`` as a bare string or an object, actions may miss any
key. Everything is normalized here, once, so that inference and dispatch
never look at raw shapes.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    ValidationError,
    field_validator,
)

from tables_connector.errors import ActionNotFoundError
from tables_connector.sdk import BinaryData, NodeItem


logger = logging.getLogger(__name__)

OptionValue = Union[StrictBool, int, float, str]


# ==============================================================================
# Descriptor side
# ==============================================================================

class ColumnType(BaseModel):
    """Normalized column type: ``{type, info?, options?, references?}``."""
    model_config = ConfigDict(extra="ignore")

    type: str = "string"
    info: Optional[str] = None
    options: Any = None
    references: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "ColumnType":
        """Accept a bare type tag or a type object."""
        resolved = raw if isinstance(raw, dict) else {"type": raw}
        type_name = resolved.get("type")
        info = resolved.get("info")
        references = resolved.get("references")
        return cls(
            type=type_name.lower() if isinstance(type_name, str) and type_name else "string",
            info=info if isinstance(info, str) and info else None,
            options=resolved.get("options"),
            references=str(references) if references else None,
        )


class ColumnDefinition(BaseModel):
    """One column of a table, keyed by its id."""
    model_config = ConfigDict(extra="ignore")

    id: str
    desc: Optional[str] = None
    required: bool = False
    type: ColumnType = Field(default_factory=ColumnType)

    @classmethod
    def from_raw(cls, column_id: str, raw: Any) -> "ColumnDefinition":
        meta = raw if isinstance(raw, dict) else {}
        desc = meta.get("desc")
        return cls(
            id=column_id,
            desc=str(desc) if desc else None,
            required=bool(meta.get("required") or False),
            type=ColumnType.from_raw(meta.get("type")),
        )


def normalize_columns(raw_columns: Any) -> List[Tuple[str, Any]]:
    """
    Turn the descriptor's ``columns`` into ordered ``(id, definition)`` pairs.

    A mapping is taken in its own order; a list keeps only entries that
    are objects carrying a string ``id``.
    """
    if not raw_columns:
        return []
    if isinstance(raw_columns, list):
        return [
            (column["id"], column)
            for column in raw_columns
            if isinstance(column, dict) and isinstance(column.get("id"), str)
        ]
    if isinstance(raw_columns, dict):
        return [(str(key), value) for key, value in raw_columns.items()]
    logger.warning("Ignoring columns of unexpected shape: %s", type(raw_columns).__name__)
    return []


class ActionDefinition(BaseModel):
    """A custom action declared on a table."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    path: str
    title: Optional[str] = None
    http_method: str = Field("GET", alias="httpMethod")
    params: List[str] = Field(default_factory=list)

    @field_validator("http_method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> str:
        return str(v).upper() if v else "GET"

    @field_validator("params", mode="before")
    @classmethod
    def normalize_params(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(p) for p in v if p is not None]

    @property
    def label(self) -> str:
        return self.title or self.path


class TableDefinition(BaseModel):
    """One table of the descriptor."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    key: str
    display_name: Optional[str] = Field(None, alias="descSingle")
    external_name: Optional[str] = Field(None, alias="tblname")
    columns: Any = None
    actions: List[ActionDefinition] = Field(default_factory=list)

    @field_validator("display_name", "external_name", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Optional[str]:
        return str(v) if v is not None else None

    @field_validator("actions", mode="before")
    @classmethod
    def drop_malformed_actions(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        actions = []
        for raw in v:
            try:
                actions.append(ActionDefinition.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping malformed action %r: %s", raw, e.errors()[0]["msg"])
        return actions

    def iter_columns(self) -> Iterator[ColumnDefinition]:
        for column_id, raw in normalize_columns(self.columns):
            yield ColumnDefinition.from_raw(column_id, raw)

    def find_action(self, path: str) -> Optional[ActionDefinition]:
        return next((a for a in self.actions if a.path == path), None)

    def get_action(self, path: str) -> ActionDefinition:
        action = self.find_action(path)
        if action is None:
            raise ActionNotFoundError(self.key, path)
        return action

    def matches(self, identifier: str) -> bool:
        """Case-insensitive match on external name or display label."""
        wanted = identifier.lower()
        return any(
            name is not None and name.lower() == wanted
            for name in (self.external_name, self.display_name)
        )


class Descriptor(BaseModel):
    """Mapping from table key to table definition."""

    tables: Dict[str, TableDefinition] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "Descriptor":
        """
        Build from the descriptor endpoint's JSON.

        Accepts ``{"tables": {...}}`` or the bare table mapping. Entries
        that are not objects or fail validation are skipped.
        """
        if isinstance(payload, dict) and isinstance(payload.get("tables"), dict):
            raw_tables = payload["tables"]
        elif isinstance(payload, dict):
            raw_tables = payload
        else:
            raise ValueError(f"Descriptor must be an object, got {type(payload).__name__}")

        tables: Dict[str, TableDefinition] = {}
        for key, raw in raw_tables.items():
            if not isinstance(raw, dict):
                logger.warning("Skipping non-object table entry", extra={"table": key})
                continue
            try:
                tables[str(key)] = TableDefinition.model_validate({**raw, "key": str(key)})
            except ValidationError as e:
                logger.warning("Skipping malformed table: %s", e, extra={"table": key})
        return cls(tables=tables)

    def get(self, key: str) -> Optional[TableDefinition]:
        return self.tables.get(key)


# ==============================================================================
# Form side
# ==============================================================================

class FieldType(str, Enum):
    """Presentation types of a generated form field."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE_TIME = "dateTime"
    TIME = "time"
    OPTIONS = "options"


class Option(BaseModel):
    """A selectable ``(value, label)`` pair; serialized as ``{name, value}``."""
    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(..., alias="name")
    value: OptionValue


class FieldDescriptor(BaseModel):
    """Form-ready description of one column or action parameter."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str
    display_name: str = Field(..., alias="displayName")
    type: FieldType = FieldType.STRING
    required: bool = False
    default_match: bool = Field(False, alias="defaultMatch")
    display: bool = True
    can_be_used_to_match: bool = Field(True, alias="canBeUsedToMatch")
    read_only: bool = Field(False, alias="readOnly")
    removed: bool = False
    options: Optional[List[Option]] = None
    description: Optional[str] = None

    def to_host(self) -> Dict[str, Any]:
        """Wire shape expected by the host's resource mapper."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ==============================================================================
# Response classification
# ==============================================================================

class BinaryResponse(BaseModel):
    """A file came back (PDF)."""
    kind: Literal["binary"] = "binary"
    url: str
    status_code: int
    binary: BinaryData

    @property
    def file_name(self) -> Optional[str]:
        return self.binary.file_name

    def to_item(self) -> NodeItem:
        return NodeItem(
            json_data={"ok": True, "fileName": self.binary.file_name, "url": self.url},
            binary={"data": self.binary},
        )


class JsonResponse(BaseModel):
    """A JSON document came back."""
    kind: Literal["json"] = "json"
    url: str
    status_code: int
    data: Any = None

    def to_item(self) -> NodeItem:
        if isinstance(self.data, dict):
            return NodeItem(json_data=self.data)
        return NodeItem(json_data={"data": self.data})


class OpaqueResponse(BaseModel):
    """Anything else: only the status metadata is kept."""
    kind: Literal["opaque"] = "opaque"
    url: str
    status_code: int
    content_type: str = ""

    def to_item(self) -> NodeItem:
        return NodeItem(
            json_data={
                "ok": True,
                "status": self.status_code,
                "contentType": self.content_type,
                "url": self.url,
            }
        )


ActionResponse = Annotated[
    Union[BinaryResponse, JsonResponse, OpaqueResponse],
    Field(discriminator="kind"),
]


__all__ = [
    "ColumnType",
    "ColumnDefinition",
    "ActionDefinition",
    "TableDefinition",
    "Descriptor",
    "normalize_columns",
    "FieldType",
    "Option",
    "OptionValue",
    "FieldDescriptor",
    "BinaryResponse",
    "JsonResponse",
    "OpaqueResponse",
    "ActionResponse",
]
