"""
Node Items - Data structures flowing in and out of a node.

NodeItem is the unit the host hands to a node and receives back.
Each item has JSON data and optional binary attachments.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class BinaryData(BaseModel):
    """
    Binary attachment for a node item.

    The host only needs a buffer, a filename and a MIME type.
    """
    model_config = ConfigDict(extra="forbid")

    data: bytes = Field(..., description="Raw binary data")
    mime_type: str = Field("application/octet-stream", description="MIME type")
    file_name: Optional[str] = Field(None, description="Original filename")

    @property
    def size(self) -> int:
        return len(self.data)


class PairedItem(BaseModel):
    """Reference to the input item that produced an output item."""
    model_config = ConfigDict(extra="forbid")

    item: int = Field(..., description="Index of source item", ge=0)
    input: int = Field(0, description="Input branch index", ge=0)


class NodeItem(BaseModel):
    """
    A single data item.

    Example:
        item = NodeItem(json_data={"id": 7})
        item = NodeItem(
            json_data={"fileName": "report.pdf"},
            binary={"data": BinaryData(data=b"%PDF", mime_type="application/pdf")},
        )
    """
    model_config = ConfigDict(extra="forbid")

    json_data: Dict[str, Any] = Field(default_factory=dict, description="JSON data")
    binary: Dict[str, BinaryData] = Field(
        default_factory=dict,
        description="Binary attachments keyed by property name",
    )
    error: Optional[str] = Field(None, description="Error message when the item failed")
    paired_item: Optional[PairedItem] = Field(None, description="Reference to source item")

    def paired_with(self, index: int) -> "NodeItem":
        """Return a copy of this item paired to input index ``index``."""
        return self.model_copy(update={"paired_item": PairedItem(item=index)})
