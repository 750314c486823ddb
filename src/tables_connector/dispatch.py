"""
Action Resolver & Dispatcher.

Flow for one custom-action call:

1. Resolve the owning table and the action's declared method and
   parameters from a freshly fetched descriptor. An unreachable
   descriptor degrades to ``GET`` with no declared parameters.
2. Merge caller values with the declared parameters (``id`` fallback).
3. Send the request: query string for GET, JSON body otherwise.
4. Classify the response by content type: PDF, JSON or opaque.

Only the dispatched request itself is fatal on failure.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import quote, unquote, urlencode

from tables_connector.descriptor import DescriptorClient, resolve_table
from tables_connector.errors import (
    ActionDispatchError,
    DescriptorUnavailableError,
    MalformedResponseError,
)
from tables_connector.models import (
    ActionResponse,
    BinaryResponse,
    JsonResponse,
    OpaqueResponse,
)
from tables_connector.observability import log_context
from tables_connector.sdk import (
    BinaryData,
    HttpApiError,
    HttpClient,
    HttpResponse,
    NodeTimeoutError,
)


logger = logging.getLogger(__name__)

DEFAULT_METHOD = "GET"
ID_PARAM = "id"
PDF_MIME_TYPE = "application/pdf"
JSON_MIME_TYPE = "application/json"

CONTENT_DISPOSITION_PATTERN = re.compile(
    r"filename\*=UTF-8''([^;]+)|filename=\"?([^\";]+)\"?",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ResolvedAction:
    """Method and declared parameters of an action, as far as they could be resolved."""
    table: str
    path: str
    http_method: str = DEFAULT_METHOD
    params: Tuple[str, ...] = field(default_factory=tuple)
    from_descriptor: bool = False


# ==============================================================================
# Pure helpers
# ==============================================================================

def build_action_params(
    declared: Iterable[str],
    caller: Optional[Mapping[str, Any]] = None,
    id_fallback: Optional[Any] = None,
) -> Dict[str, str]:
    """
    Final parameter mapping for an action call.

    Declared parameters come first, in declaration order, taking the
    caller's value or, for ``id``, the fallback. Remaining caller values
    are passed through. ``id`` is injected last if still missing. Null
    caller values are skipped; every value is sent as a string.
    """
    caller = caller or {}
    has_fallback = id_fallback is not None and id_fallback != ""
    params: Dict[str, str] = {}

    for name in declared:
        if caller.get(name) is not None:
            params[name] = _param_string(caller[name])
        elif name == ID_PARAM and has_fallback:
            params[name] = _param_string(id_fallback)

    for name, value in caller.items():
        if name not in params and value is not None:
            params[name] = _param_string(value)

    if ID_PARAM not in params and has_fallback:
        params[ID_PARAM] = _param_string(id_fallback)

    return params


def _param_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_request_target(
    path: str,
    method: str,
    params: Mapping[str, str],
) -> Tuple[str, Optional[Dict[str, str]]]:
    """
    Endpoint and JSON body for a dispatched call.

    GET parameters go into the query string (appended with ``&`` when
    the path already has one); other methods send them as the body.
    """
    endpoint = "/" + path.lstrip("/")
    if method.upper() == DEFAULT_METHOD:
        if params:
            separator = "&" if "?" in endpoint else "?"
            endpoint = f"{endpoint}{separator}{urlencode(dict(params), quote_via=quote)}"
        return endpoint, None
    return endpoint, dict(params)


def parse_content_disposition(header: Optional[str]) -> Optional[str]:
    """Filename from a ``Content-Disposition`` header, if one can be found."""
    if not header:
        return None
    match = CONTENT_DISPOSITION_PATTERN.search(header)
    if not match:
        return None
    raw = match.group(1) or match.group(2)
    name = unquote(raw.strip())
    return name or None


def default_file_name(table: str, params: Mapping[str, Any], action_path: str) -> str:
    return f"{table}_{params.get(ID_PARAM) or 'action'}_{action_path.rstrip('/').split('/')[-1]}.pdf"


def classify_response(response: HttpResponse, url: str, fallback_file_name: str) -> ActionResponse:
    """Classify a successful response by its content type. PDF wins over JSON."""
    content_type = response.content_type
    lowered = content_type.lower()

    if PDF_MIME_TYPE in lowered:
        file_name = parse_content_disposition(response.header("content-disposition")) or fallback_file_name
        return BinaryResponse(
            url=url,
            status_code=response.status_code,
            binary=BinaryData(data=response.content, mime_type=PDF_MIME_TYPE, file_name=file_name),
        )

    if JSON_MIME_TYPE in lowered:
        body = response.text
        try:
            data = json.loads(body) if body.strip() else {}
        except ValueError:
            logger.warning("%s; returning status only", MalformedResponseError(content_type, url))
        else:
            return JsonResponse(url=url, status_code=response.status_code, data=data)

    return OpaqueResponse(url=url, status_code=response.status_code, content_type=content_type)


# ==============================================================================
# Dispatcher
# ==============================================================================

class ActionDispatcher:
    """
    Resolves and sends custom-action calls.

    Usage:
        dispatcher = ActionDispatcher(http, DescriptorClient(http))
        result = dispatcher.dispatch("Invoice", "Tables/Invoice/pdf", {}, id_fallback="42")
    """

    def __init__(self, http: HttpClient, descriptor_client: Optional[DescriptorClient] = None):
        self.http = http
        self.descriptor_client = descriptor_client or DescriptorClient(http)

    def resolve(self, table: str, action_path: str) -> ResolvedAction:
        """
        Look up the action's method and declared parameters.

        Raises:
            TableNotFoundError: the descriptor was fetched but has no such table
        """
        try:
            descriptor = self.descriptor_client.fetch()
        except DescriptorUnavailableError as e:
            logger.warning(
                "Descriptor unavailable, dispatching with defaults: %s", e,
                extra=log_context(table=table, action=action_path),
            )
            return ResolvedAction(table=table, path=action_path)

        table_key = resolve_table(descriptor, table)
        action = descriptor.tables[table_key].find_action(action_path)
        if action is None:
            logger.info(
                "Action not declared on table, dispatching with defaults",
                extra=log_context(table=table_key, action=action_path),
            )
            return ResolvedAction(table=table_key, path=action_path)

        return ResolvedAction(
            table=table_key,
            path=action.path,
            http_method=action.http_method,
            params=tuple(action.params),
            from_descriptor=True,
        )

    def dispatch(
        self,
        table: str,
        action_path: str,
        caller_params: Optional[Mapping[str, Any]] = None,
        id_fallback: Optional[Any] = None,
    ) -> ActionResponse:
        """
        Resolve, send and classify one action call.

        Raises:
            TableNotFoundError: unknown table
            ActionDispatchError: the request failed or returned a non-2xx status
        """
        resolved = self.resolve(table, action_path)
        params = build_action_params(resolved.params, caller_params, id_fallback)
        method = resolved.http_method
        endpoint, body = build_request_target(action_path, method, params)
        url = self.http.build_url(endpoint)

        logger.info(
            "Dispatching %s %s", method, endpoint,
            extra=log_context(table=resolved.table, action=action_path),
        )
        try:
            if body is None:
                response = self.http.request(method, endpoint)
            else:
                response = self.http.request(method, endpoint, json=body)
            response.raise_for_status()
        except HttpApiError as e:
            raise ActionDispatchError(
                f"Action request failed: {e}",
                table=table,
                action=action_path,
                params=params,
                url=url,
                status_code=e.status_code,
                response_body=e.response_body,
            ) from e
        except NodeTimeoutError as e:
            raise ActionDispatchError(
                f"Action request timed out after {e.timeout}s",
                table=table,
                action=action_path,
                params=params,
                url=url,
            ) from e

        return classify_response(response, url, default_file_name(table, params, action_path))


__all__ = [
    "ActionDispatcher",
    "ResolvedAction",
    "build_action_params",
    "build_request_target",
    "classify_response",
    "default_file_name",
    "parse_content_disposition",
]
