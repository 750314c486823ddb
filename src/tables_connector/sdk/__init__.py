"""
Node SDK - Minimal node execution semantics.

- NodeItem / BinaryData: items flowing in and out of a node
- NodeExecutionContext: parameters, credentials and input items for one run
- BaseNode: abstract base class for node implementations
- HttpClient / HttpResponse: timeout-bounded HTTP with bearer auth

All nodes execute synchronously.
"""

from .items import NodeItem, BinaryData, PairedItem
from .basenode import (
    BaseNode,
    NodeExecutionContext,
    NodeParameterType,
    NodeOperationError,
    NodeApiError,
)
from .http import HttpClient, HttpResponse, HttpApiError, NodeTimeoutError

__all__ = [
    # Items
    "NodeItem",
    "BinaryData",
    "PairedItem",
    # Context
    "NodeExecutionContext",
    # Base class
    "BaseNode",
    "NodeParameterType",
    # Errors
    "NodeOperationError",
    "NodeApiError",
    "HttpApiError",
    "NodeTimeoutError",
    # HTTP
    "HttpClient",
    "HttpResponse",
]
