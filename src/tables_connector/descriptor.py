"""
Descriptor Client and Table Resolver.

The descriptor is fetched fresh for every call; nothing is cached.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from tables_connector.errors import DescriptorUnavailableError, TableNotFoundError
from tables_connector.models import Descriptor, TableDefinition
from tables_connector.sdk import HttpApiError, HttpClient, NodeTimeoutError


logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTOR_PATH = "/FOP/Index/api"


class DescriptorClient:
    """Fetches the remote schema descriptor."""

    def __init__(self, http: HttpClient, descriptor_path: str = DEFAULT_DESCRIPTOR_PATH):
        self.http = http
        self.descriptor_path = descriptor_path

    def fetch(self) -> Descriptor:
        """
        GET the descriptor and parse it.

        Raises:
            DescriptorUnavailableError: transport failure, non-2xx status,
                or a body that is not a JSON object
        """
        url = self.http.build_url(self.descriptor_path)
        try:
            response = self.http.get(self.descriptor_path)
            response.raise_for_status()
            payload = response.json()
        except HttpApiError as e:
            raise DescriptorUnavailableError(
                f"Descriptor request failed: {e}", url=url, status_code=e.status_code
            ) from e
        except NodeTimeoutError as e:
            raise DescriptorUnavailableError(f"Descriptor request timed out after {e.timeout}s", url=url) from e
        except ValueError as e:
            raise DescriptorUnavailableError("Descriptor is not valid JSON", url=url) from e

        try:
            descriptor = Descriptor.from_payload(payload)
        except ValueError as e:
            raise DescriptorUnavailableError(str(e), url=url) from e

        logger.debug("Fetched descriptor with %d tables", len(descriptor.tables))
        return descriptor


def find_table_key(descriptor: Descriptor, identifier: str) -> Optional[str]:
    """Exact key first, then the first table whose external name or label matches."""
    if not identifier:
        return None
    if identifier in descriptor.tables:
        return identifier
    for key, table in descriptor.tables.items():
        if table.matches(identifier):
            return key
    return None


def resolve_table(descriptor: Descriptor, identifier: str) -> str:
    """
    Canonical table key for a key, external name or display label.

    Raises:
        TableNotFoundError: no table matches
    """
    key = find_table_key(descriptor, identifier)
    if key is None:
        raise TableNotFoundError(identifier)
    return key


def get_table(descriptor: Descriptor, identifier: str) -> TableDefinition:
    return descriptor.tables[resolve_table(descriptor, identifier)]


def _matches_filter(label: str, search: Optional[str]) -> bool:
    return not search or search.upper() in label.upper()


def search_tables(descriptor: Descriptor, search: Optional[str] = None) -> List[Dict[str, Any]]:
    """List-search results for the table picker."""
    results = []
    for key, table in descriptor.tables.items():
        display_name = table.display_name or key
        if _matches_filter(display_name, search):
            results.append({
                "name": f"{display_name} ({table.external_name or key})",
                "value": key,
            })
    return results


def search_actions(table: Optional[TableDefinition], search: Optional[str] = None) -> List[Dict[str, Any]]:
    """List-search results for the custom-action picker of one table."""
    if table is None:
        return []
    return [
        {"name": action.label, "value": action.path}
        for action in table.actions
        if _matches_filter(action.label, search)
    ]


__all__ = [
    "DescriptorClient",
    "find_table_key",
    "get_table",
    "resolve_table",
    "search_actions",
    "search_tables",
]
