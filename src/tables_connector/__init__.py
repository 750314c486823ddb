"""
Tables Connector - descriptor resolution and request dispatch for self-describing ERP table APIs.

- descriptor: fetch the schema descriptor, resolve table identifiers
- fields: turn columns into form fields
- options: derive selectable options from arbitrary reference records
- dispatch: resolve, send and classify custom-action calls
- node: the host-facing TablesApiNode
"""

from tables_connector.credentials import TablesApiCredential
from tables_connector.descriptor import DescriptorClient, resolve_table
from tables_connector.dispatch import ActionDispatcher
from tables_connector.errors import (
    ActionDispatchError,
    ActionNotFoundError,
    DescriptorUnavailableError,
    MalformedResponseError,
    TableNotFoundError,
    TablesConnectorError,
)
from tables_connector.fields import infer_fields
from tables_connector.node import TablesApiNode
from tables_connector.options import load_reference_options, record_to_option

__version__ = "1.0.0"

__all__ = [
    "ActionDispatchError",
    "ActionDispatcher",
    "ActionNotFoundError",
    "DescriptorClient",
    "DescriptorUnavailableError",
    "MalformedResponseError",
    "TableNotFoundError",
    "TablesApiCredential",
    "TablesApiNode",
    "TablesConnectorError",
    "infer_fields",
    "load_reference_options",
    "record_to_option",
    "resolve_table",
]
