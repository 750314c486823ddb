"""
BaseNode - Abstract base class for node implementations.

A node declares its description and parameters as plain dicts (the shape
the host renders) and implements execute(), which turns input items into
output items. Form-building hooks (list searches, resource mappers) are
ordinary methods on the subclass.

All execution is synchronous.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from .items import NodeItem


logger = logging.getLogger(__name__)


class NodeParameterType(str, Enum):
    """Parameter types understood by the host form renderer."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OPTIONS = "options"
    JSON = "json"
    DATE_TIME = "dateTime"
    RESOURCE_LOCATOR = "resourceLocator"
    RESOURCE_MAPPER = "resourceMapper"


# ==============================================================================
# Errors
# ==============================================================================

class NodeOperationError(Exception):
    """
    Error during node operation.

    ``context`` holds whatever identifies the failing unit of work
    (table, action, item index, ...) and is rendered into ``str()``.
    """

    def __init__(
        self,
        message: str,
        item_index: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.item_index = item_index
        self.context: Dict[str, Any] = dict(context or {})
        super().__init__(message)

    def with_item_index(self, item_index: int) -> "NodeOperationError":
        """Attach the input item index unless one is already set."""
        if self.item_index is None:
            self.item_index = item_index
        return self

    def __str__(self) -> str:
        details = {**self.context}
        if self.item_index is not None:
            details["item_index"] = self.item_index
        if not details:
            return self.message
        rendered = ", ".join(f"{key}={value!r}" for key, value in details.items())
        return f"{self.message} [{rendered}]"


class NodeApiError(NodeOperationError):
    """Error reported by, or while talking to, the remote API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        item_index: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, item_index=item_index, context=context)
        self.status_code = status_code
        self.response_body = response_body


# ==============================================================================
# NodeExecutionContext - Runtime context for node execution
# ==============================================================================

class NodeExecutionContext:
    """
    Runtime context the host provides to a node.

    Gives access to parameter values, credentials and input items.
    """

    def __init__(
        self,
        parameters: Dict[str, Any],
        credentials: Dict[str, Dict[str, Any]],
        input_data: Optional[List[NodeItem]] = None,
        node_name: Optional[str] = None,
        item_parameters: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self._parameters = parameters
        self._credentials = credentials
        self._input_data = list(input_data or [])
        self._item_parameters = item_parameters or []
        self.node_name = node_name

    def get_node_parameter(self, name: str, item_index: int = 0, default: Any = None) -> Any:
        """
        Get parameter value.

        Per-item overrides (already-resolved expressions) win over the
        node-level value.
        """
        if 0 <= item_index < len(self._item_parameters):
            overrides = self._item_parameters[item_index]
            if name in overrides:
                return overrides[name]
        return self._parameters.get(name, default)

    def get_credentials(self, name: str) -> Dict[str, Any]:
        if name not in self._credentials:
            raise NodeOperationError(f"Credentials '{name}' not found")
        return self._credentials[name]

    def get_input_data(self) -> List[NodeItem]:
        return self._input_data


# ==============================================================================
# BaseNode - Abstract base class
# ==============================================================================

class BaseNode(ABC):
    """
    Abstract base class for nodes.

    Subclasses define ``type``, ``version``, ``description`` and
    ``properties`` and implement ``execute()``.
    """

    type: str = "base"
    version: int = 1

    description: Dict[str, Any] = {
        "displayName": "Base Node",
        "name": "base",
        "description": "",
        "group": [],
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties: Dict[str, Any] = {
        "parameters": [],
        "credentials": [],
    }

    # Continue processing other items if one fails
    continue_on_fail: bool = False

    def __init__(self, context: Optional[NodeExecutionContext] = None) -> None:
        self.logger = logging.getLogger(f"node.{self.type}")
        self._context: Optional[NodeExecutionContext] = context

    @abstractmethod
    def execute(self) -> List[List[NodeItem]]:
        """
        Execute node operation.

        Returns:
            Outer list = output branches, inner list = items in that branch.

        Raises:
            NodeOperationError: On operation failure
            NodeApiError: On API call failure
        """
        raise NotImplementedError

    def get_node_parameter(self, name: str, item_index: int = 0, default: Any = None) -> Any:
        if self._context is None:
            return default
        return self._context.get_node_parameter(name, item_index, default)

    def get_locator_value(self, name: str, item_index: int = 0, default: str = "") -> str:
        """
        Value of a resource-locator parameter.

        Accepts both the locator object (``{"mode": "list", "value": ...}``)
        and a bare value supplied through an expression.
        """
        raw = self.get_node_parameter(name, item_index, None)
        if isinstance(raw, dict):
            raw = raw.get("value")
        if raw is None or raw == "":
            return default
        return str(raw)

    def get_mapper_value(self, name: str, item_index: int = 0) -> Dict[str, Any]:
        """Mapped values of a resource-mapper parameter (``{"value": {...}}``)."""
        raw = self.get_node_parameter(name, item_index, None)
        if isinstance(raw, dict) and ("mappingMode" in raw or set(raw) == {"value"}):
            raw = raw.get("value")
        return dict(raw) if isinstance(raw, dict) else {}

    def get_credentials(self, name: str) -> Dict[str, Any]:
        if self._context is None:
            raise NodeOperationError("No context set")
        return self._context.get_credentials(name)

    def get_input_data(self) -> List[NodeItem]:
        if self._context is None:
            return []
        return self._context.get_input_data()

    @classmethod
    def get_definition(cls) -> Dict[str, Any]:
        """Full node definition for registration."""
        return {
            "type": cls.type,
            "version": cls.version,
            "description": cls.description,
            "properties": cls.properties,
        }


__all__ = [
    "BaseNode",
    "NodeExecutionContext",
    "NodeParameterType",
    "NodeOperationError",
    "NodeApiError",
]
