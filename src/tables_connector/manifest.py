"""
Tables Connector Node Pack Manifest - Registration function for entry-points.
"""

from typing import Any, Dict, List, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field

from tables_connector.credentials import BaseCredential, TablesApiCredential
from tables_connector.node import TablesApiNode
from tables_connector.sdk import BaseNode


class NodePackManifest(BaseModel):
    """
    Manifest for a node pack (collection of nodes).

    Used for discovery and registration of bundled nodes.
    """
    model_config = ConfigDict(extra="allow")

    # Identity
    name: str = Field(..., description="Pack name")
    version: str = Field("1.0.0", description="Pack version")
    description: str = Field("", description="Pack description")

    # Author
    author: str = Field("", description="Author name")
    license: str = Field("MIT", description="License type")

    # Contents
    nodes: List[str] = Field(default_factory=list, description="Node types in this pack")
    credentials: List[str] = Field(default_factory=list, description="Credential types in this pack")

    # Technical
    entry_point: str = Field("", description="Module path for node discovery")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodePackManifest":
        return cls.model_validate(data)


MANIFEST = NodePackManifest(
    name="tables",
    version="1.0.0",
    description="Generic node over self-describing ERP table APIs",
    author="tables-connector",
    license="MIT",
    nodes=[TablesApiNode.type],
    credentials=[TablesApiCredential.name],
    entry_point="tables_connector.manifest",
)


# Node classes by type
NODE_CLASSES: Dict[str, Type[BaseNode]] = {
    TablesApiNode.type: TablesApiNode,
}

CREDENTIAL_CLASSES: Dict[str, Type[BaseCredential]] = {
    TablesApiCredential.name: TablesApiCredential,
}


def register_nodes() -> Tuple[NodePackManifest, Dict[str, Type[BaseNode]]]:
    """
    Entry point function for node pack discovery.

    Returns tuple of (manifest, node_classes).
    """
    return MANIFEST, NODE_CLASSES


__all__ = [
    "CREDENTIAL_CLASSES",
    "MANIFEST",
    "NODE_CLASSES",
    "NodePackManifest",
    "register_nodes",
]
