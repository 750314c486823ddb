"""
Tables API node - CRUD, file transfer and custom actions on a self-describing ERP.

Form-building hooks (``search_tables``, ``search_custom_actions``,
``get_columns``, ``get_action_params``) fetch the descriptor once per
call. ``execute()`` processes input items one by one; with
``continue_on_fail`` a failing item is emitted with its error instead of
aborting the run.

SYNC-CELERY SAFE: every request goes through HttpClient with a timeout.
"""

from __future__ import annotations

import json
import logging
from functools import partial
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from tables_connector.config import Settings, get_settings
from tables_connector.credentials import TablesApiCredential
from tables_connector.descriptor import DescriptorClient, find_table_key, search_actions, search_tables
from tables_connector.dispatch import ActionDispatcher, parse_content_disposition
from tables_connector.fields import action_param_fields, infer_fields
from tables_connector.observability import log_context
from tables_connector.options import load_reference_options, to_display_string
from tables_connector.sdk import (
    BaseNode,
    BinaryData,
    HttpApiError,
    HttpClient,
    HttpResponse,
    NodeApiError,
    NodeExecutionContext,
    NodeItem,
    NodeOperationError,
    NodeParameterType,
    NodeTimeoutError,
)


logger = logging.getLogger(__name__)

TABLE_OPERATIONS = ("create", "delete", "edit", "list", "view", "custom")
ID_OPERATIONS = ("view", "edit", "delete")
BODY_OPERATIONS = ("create", "edit")
RESULT_KEYS = {"view": "data", "delete": "deleted", "create": "id", "edit": "result"}

OCTET_STREAM = "application/octet-stream"
UPLOAD_FIELD = "file_-1"


class TablesApiNode(BaseNode):
    """
    Generic node over the Tables API.

    Operations: list, view, create, edit, delete, retrieveFile,
    uploadFile and custom (descriptor-declared actions).
    """

    type = "tables-connector.tablesApi"
    version = 1

    description = {
        "displayName": "Tables API",
        "name": "tablesApi",
        "icon": "fa:table",
        "group": ["input"],
        "description": "Access your ERP software, retrieve data, insert items",
        "version": 1,
        "defaults": {"name": "Tables API"},
        "inputs": ["main"],
        "outputs": ["main"],
        "usableAsTool": True,
    }

    properties = {
        "parameters": [
            {
                "displayName": "Operation",
                "name": "operation",
                "type": NodeParameterType.OPTIONS,
                "noDataExpression": True,
                "default": "view",
                "required": True,
                "options": [
                    {"name": "Create", "value": "create", "description": "Insert an item"},
                    {"name": "Custom Action", "value": "custom", "description": "Custom action call like Invoice-Send"},
                    {"name": "Delete", "value": "delete", "description": "Delete an item permanently"},
                    {"name": "Edit", "value": "edit", "description": "Update an item"},
                    {"name": "List", "value": "list", "description": "Retrieve a list of items"},
                    {"name": "Retrieve File", "value": "retrieveFile", "description": "Download a file by ID"},
                    {"name": "Upload File", "value": "uploadFile", "description": "Upload a file from binary"},
                    {"name": "View", "value": "view", "description": "Retrieve an item"},
                ],
                "description": "What do you want to perform on the data",
            },
            {
                "displayName": "Table",
                "name": "table",
                "type": NodeParameterType.RESOURCE_LOCATOR,
                "default": {"mode": "list", "value": ""},
                "required": True,
                "modes": [
                    {
                        "displayName": "Table",
                        "name": "list",
                        "type": "list",
                        "typeOptions": {"searchListMethod": "search_tables", "searchable": True},
                    },
                ],
                "placeholder": "Select a Table...",
                "description": "The table you want to work on",
                "displayOptions": {"show": {"operation": list(TABLE_OPERATIONS)}},
            },
            {
                "displayName": "Action",
                "name": "customAction",
                "type": NodeParameterType.RESOURCE_LOCATOR,
                "default": {"mode": "list", "value": ""},
                "required": True,
                "modes": [
                    {
                        "displayName": "Action",
                        "name": "list",
                        "type": "list",
                        "typeOptions": {"searchListMethod": "search_custom_actions", "searchable": True},
                    },
                ],
                "typeOptions": {"loadOptionsDependsOn": ["table.value"]},
                "displayOptions": {"show": {"operation": ["custom"]}},
            },
            {
                "displayName": "Action Parameters",
                "name": "actionParams",
                "type": NodeParameterType.RESOURCE_MAPPER,
                "noDataExpression": True,
                "default": {"mappingMode": "defineBelow", "value": None},
                "typeOptions": {
                    "loadOptionsDependsOn": ["table.value", "customAction.value"],
                    "resourceMapper": {
                        "resourceMapperMethod": "get_action_params",
                        "mode": "upsert",
                        "fieldWords": {"singular": "parameter", "plural": "parameters"},
                        "addAllFields": False,
                        "multiKeyMatch": False,
                        "supportAutoMap": False,
                    },
                },
                "displayOptions": {"show": {"operation": ["custom"]}},
                "description": "Values for the action's parameters as declared by the API descriptor",
            },
            {
                "displayName": "Binary Property",
                "name": "binaryPropertyName",
                "type": NodeParameterType.STRING,
                "default": "data",
                "required": True,
                "displayOptions": {"show": {"operation": ["uploadFile"]}},
                "description": "Name of the binary property containing the file to upload",
            },
            {
                "displayName": "File ID",
                "name": "fileId",
                "type": NodeParameterType.STRING,
                "default": "",
                "required": True,
                "displayOptions": {"show": {"operation": ["retrieveFile"]}},
                "description": "The identifier of the file to download",
            },
            {
                "displayName": "Dataset ID",
                "name": "id",
                "type": NodeParameterType.STRING,
                "default": "1",
                "required": True,
                "displayOptions": {"show": {"operation": ["view", "edit", "delete", "custom"]}},
                "description": "Which dataset do you want to view/edit/delete",
            },
            {
                "displayName": "Columns",
                "name": "columns",
                "type": NodeParameterType.RESOURCE_MAPPER,
                "noDataExpression": True,
                "default": {"mappingMode": "defineBelow", "value": None},
                "required": True,
                "typeOptions": {
                    "loadOptionsDependsOn": ["table.value", "operation"],
                    "resourceMapper": {
                        "resourceMapperMethod": "get_columns",
                        "mode": "add",
                        "fieldWords": {"singular": "column", "plural": "columns"},
                        "addAllFields": True,
                        "multiKeyMatch": False,
                        "supportAutoMap": False,
                    },
                },
                "displayOptions": {"show": {"operation": ["create", "edit"]}},
            },
            {
                "displayName": "Filter and Sort Parameters",
                "name": "filterparams",
                "type": NodeParameterType.JSON,
                "default": '{\n  "filter_user_ID": "1",\n  "sort_user": "username ASC"\n}',
                "required": True,
                "displayOptions": {"show": {"operation": ["list"]}},
                "description": "GET parameters for that dataview",
            },
        ],
        "credentials": [
            {"name": TablesApiCredential.name, "required": True},
        ],
    }

    def __init__(
        self,
        context: Optional[NodeExecutionContext] = None,
        settings: Optional[Settings] = None,
        http: Optional[HttpClient] = None,
    ) -> None:
        super().__init__(context)
        self.settings = settings or get_settings()
        self._http = http

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def http(self) -> HttpClient:
        if self._http is None:
            credential = TablesApiCredential(self.get_credentials(TablesApiCredential.name))
            self._http = credential.http_client(self.settings)
        return self._http

    def descriptor_client(self) -> DescriptorClient:
        return DescriptorClient(self.http, self.settings.descriptor_path)

    def dispatcher(self) -> ActionDispatcher:
        return ActionDispatcher(self.http, self.descriptor_client())

    def _table_endpoint(self, table: str, operation: str) -> str:
        return f"{self.settings.tables_api_path}/{quote(table, safe='')}/{operation}"

    # ------------------------------------------------------------------
    # Form-building hooks
    # ------------------------------------------------------------------

    def search_tables(self, filter: Optional[str] = None) -> Dict[str, Any]:
        """Table picker entries, filtered on the singular display name."""
        descriptor = self.descriptor_client().fetch()
        return {"results": search_tables(descriptor, filter)}

    def search_custom_actions(self, filter: Optional[str] = None) -> Dict[str, Any]:
        """Actions of the selected table, filtered on their title."""
        table_id = self.get_locator_value("table")
        if not table_id:
            return {"results": []}
        descriptor = self.descriptor_client().fetch()
        table_key = find_table_key(descriptor, table_id)
        table = descriptor.get(table_key) if table_key else None
        return {"results": search_actions(table, filter)}

    def get_columns(self) -> Dict[str, Any]:
        """Resource-mapper fields for the selected table and operation."""
        table_id = self.get_locator_value("table")
        operation = self.get_node_parameter("operation", 0, "view")
        descriptor = self.descriptor_client().fetch()
        table_key = find_table_key(descriptor, table_id)
        if table_key is None:
            return {"fields": []}

        loader = partial(
            load_reference_options,
            self.http,
            tables_api_path=self.settings.tables_api_path,
            limit=self.settings.reference_option_limit,
        )
        fields = infer_fields(descriptor.tables[table_key], operation, loader)
        return {"fields": [f.to_host() for f in fields]}

    def get_action_params(self) -> Dict[str, Any]:
        """Resource-mapper fields for the selected custom action."""
        table_id = self.get_locator_value("table")
        action_path = self.get_locator_value("customAction")
        descriptor = self.descriptor_client().fetch()
        table_key = find_table_key(descriptor, table_id)
        if table_key is None:
            return {"fields": []}
        action = descriptor.tables[table_key].find_action(action_path)
        return {"fields": [f.to_host() for f in action_param_fields(action)]}

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self) -> List[List[NodeItem]]:
        items = self.get_input_data()
        operation = self.get_node_parameter("operation", 0, "view")
        results: List[NodeItem] = []

        for item_index, item in enumerate(items):
            try:
                output = self._execute_item(operation, item, item_index)
                results.append(output.paired_with(item_index))
            except NodeOperationError as e:
                if not self.continue_on_fail:
                    raise e.with_item_index(item_index)
                logger.warning(
                    "Item failed: %s", e,
                    extra=log_context(action=operation, item_index=item_index),
                )
                results.append(
                    NodeItem(json_data=dict(item.json_data), error=str(e)).paired_with(item_index)
                )

        return [results]

    def _execute_item(self, operation: str, item: NodeItem, item_index: int) -> NodeItem:
        if operation == "retrieveFile":
            return self._retrieve_file(item, item_index)
        if operation == "uploadFile":
            return self._upload_file(item, item_index)

        table = self.get_locator_value("table", item_index)
        if not table:
            raise NodeOperationError("No table selected", item_index=item_index)

        if operation == "custom":
            return self._custom_action(table, item, item_index)
        if operation in ("list",) + ID_OPERATIONS + BODY_OPERATIONS:
            return self._table_operation(operation, table, item_index)

        raise NodeOperationError(f"Unsupported operation '{operation}'", item_index=item_index)

    def _table_operation(self, operation: str, table: str, item_index: int) -> NodeItem:
        endpoint = self._table_endpoint(table, operation)
        params: Dict[str, Any] = {}
        body = None

        if operation in ID_OPERATIONS:
            params["id"] = str(self.get_node_parameter("id", item_index, ""))
        if operation == "list":
            params = self._filter_params(item_index)
        if operation in BODY_OPERATIONS:
            body = self.get_mapper_value("columns", item_index)

        method = "POST" if operation in BODY_OPERATIONS else "GET"
        context = {"table": table, "operation": operation}
        logger.debug(
            "%s %s", method, endpoint,
            extra=log_context(table=table, action=operation, item_index=item_index),
        )
        response = self._send(method, endpoint, context, params=params or None, json=body)
        result = self._json_result(response, context)

        if operation == "list":
            return NodeItem(json_data=result if isinstance(result, dict) else {"data": result})
        return NodeItem(json_data={RESULT_KEYS[operation]: result})

    def _filter_params(self, item_index: int) -> Dict[str, str]:
        raw = self.get_node_parameter("filterparams", item_index, {})
        if isinstance(raw, str):
            if not raw.strip():
                return {}
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise NodeOperationError(f"Filter parameters are not valid JSON: {e}", item_index=item_index)
        if not isinstance(raw, dict):
            raise NodeOperationError("Filter parameters must be a JSON object", item_index=item_index)
        return {str(key): to_display_string(value) for key, value in raw.items()}

    def _custom_action(self, table: str, item: NodeItem, item_index: int) -> NodeItem:
        action_path = self.get_locator_value("customAction", item_index)
        if not action_path:
            raise NodeOperationError("No action selected", item_index=item_index, context={"table": table})

        caller_params = self.get_mapper_value("actionParams", item_index)
        id_fallback = self.get_node_parameter("id", item_index, "")
        response = self.dispatcher().dispatch(table, action_path, caller_params, id_fallback)

        output = response.to_item()
        if output.binary:
            output.binary = {**item.binary, **output.binary}
        return output

    def _retrieve_file(self, item: NodeItem, item_index: int) -> NodeItem:
        file_id = str(self.get_node_parameter("fileId", item_index, "") or "")
        if not file_id:
            raise NodeOperationError("File ID is required", item_index=item_index)

        endpoint = f"{self.settings.files_path}/{quote(file_id, safe='')}/x"
        response = self._send("GET", endpoint, {"fileId": file_id})

        file_name = parse_content_disposition(response.header("content-disposition")) or f"file_{file_id}"
        mime_type = response.content_type or OCTET_STREAM
        binary = BinaryData(data=response.content, mime_type=mime_type, file_name=file_name)
        return NodeItem(
            json_data={"fileId": file_id, "fileName": file_name},
            binary={**item.binary, "data": binary},
        )

    def _upload_file(self, item: NodeItem, item_index: int) -> NodeItem:
        property_name = self.get_node_parameter("binaryPropertyName", item_index, "data") or "data"
        binary = item.binary.get(property_name)
        if binary is None:
            raise NodeOperationError(
                f"Binary property '{property_name}' is missing on input item",
                item_index=item_index,
            )

        files = {
            UPLOAD_FIELD: (
                binary.file_name or "upload.bin",
                binary.data,
                binary.mime_type or OCTET_STREAM,
            ),
        }
        context = {"binaryPropertyName": property_name}
        response = self._send("POST", self.settings.upload_path, context, params={"x": "-1"}, files=files)
        result = self._json_result(response, context)
        return NodeItem(json_data={"uploaded": True, "result": result})

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _send(self, method: str, endpoint: str, context: Dict[str, Any], **kwargs: Any) -> HttpResponse:
        """Send a request; transport failures and non-2xx become NodeApiError."""
        try:
            response = self.http.request(method, endpoint, **kwargs)
            response.raise_for_status()
        except HttpApiError as e:
            raise NodeApiError(
                str(e),
                status_code=e.status_code,
                response_body=e.response_body,
                context={**context, "url": e.url},
            ) from e
        except NodeTimeoutError as e:
            raise NodeApiError(
                f"Request timed out after {e.timeout}s",
                context={**context, "url": e.url},
            ) from e
        return response

    @staticmethod
    def _json_result(response: HttpResponse, context: Dict[str, Any]) -> Any:
        """Parsed body; an object with a truthy ``error`` key is an API error."""
        if not response.content:
            return None
        try:
            result = response.json()
        except ValueError as e:
            raise NodeApiError(
                "Response is not valid JSON",
                status_code=response.status_code,
                response_body=response.text[:1000],
                context=context,
            ) from e
        if isinstance(result, dict) and result.get("error"):
            raise NodeApiError(
                to_display_string(result["error"]),
                status_code=response.status_code,
                context=context,
            )
        return result


__all__ = ["TablesApiNode"]
