"""
Error taxonomy for descriptor resolution and action dispatch.

Resolution problems that only degrade result quality (a reference table
that cannot be listed, a descriptor that cannot be fetched while
dispatching) are logged and swallowed by the caller. The errors below are
the ones that reach the host.
"""

from typing import Any, Dict, Optional

from tables_connector.sdk import NodeApiError, NodeOperationError


class TablesConnectorError(NodeOperationError):
    """Base class for connector errors."""


class TableNotFoundError(TablesConnectorError):
    """No table matches the given identifier."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Table '{table}' not found in API descriptor", context={"table": table})
        self.table = table


class ActionNotFoundError(TablesConnectorError):
    """The table has no action with the given path."""

    def __init__(self, table: str, action: str) -> None:
        super().__init__(
            f"Action '{action}' not found on table '{table}'",
            context={"table": table, "action": action},
        )
        self.table = table
        self.action = action


class DescriptorUnavailableError(NodeApiError, TablesConnectorError):
    """The schema descriptor could not be fetched or parsed."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message, status_code=status_code, context={"url": url} if url else None)
        self.url = url


class ActionDispatchError(NodeApiError, TablesConnectorError):
    """The dispatched action request itself failed."""

    def __init__(
        self,
        message: str,
        table: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            response_body=response_body,
            context={"table": table, "action": action, "params": dict(params or {}), "url": url},
        )
        self.table = table
        self.action = action
        self.params = dict(params or {})
        self.url = url


class MalformedResponseError(TablesConnectorError):
    """A body declared as JSON did not parse."""

    def __init__(self, content_type: str, url: Optional[str] = None) -> None:
        super().__init__(
            f"Response declared '{content_type}' but is not valid JSON",
            context={"url": url} if url else None,
        )
        self.content_type = content_type
        self.url = url


__all__ = [
    "TablesConnectorError",
    "TableNotFoundError",
    "ActionNotFoundError",
    "DescriptorUnavailableError",
    "ActionDispatchError",
    "MalformedResponseError",
]
