"""Integration tests for TablesApiNode against a fake backend."""
import pytest
import requests

from tables_connector.config import Settings
from tables_connector.errors import TableNotFoundError
from tables_connector.node import TablesApiNode
from tables_connector.sdk import (
    BinaryData,
    NodeApiError,
    NodeExecutionContext,
    NodeItem,
    NodeOperationError,
)

from conftest import BASE_URL, make_response


TABLE = {"mode": "list", "value": "orders"}


@pytest.fixture
def make_node(http):
    """Build a node wired to the fake backend."""

    def _make(parameters, items=None, item_parameters=None, continue_on_fail=False):
        context = NodeExecutionContext(
            parameters=parameters,
            credentials={"tablesApi": {"baseurl": BASE_URL, "token": "secret"}},
            input_data=items if items is not None else [NodeItem()],
            item_parameters=item_parameters,
        )
        node = TablesApiNode(context, settings=Settings(), http=http)
        node.continue_on_fail = continue_on_fail
        return node

    return _make


class TestFormHooks:
    """Test list searches and resource mappers."""

    def test_search_tables(self, make_node, erp):
        result = make_node({}).search_tables("ord")

        assert result == {"results": [{"name": "Order (tbl_orders)", "value": "orders"}]}

    def test_search_custom_actions(self, make_node, erp):
        node = make_node({"table": TABLE})

        assert [r["value"] for r in node.search_custom_actions()["results"]] == [
            "Tables/Order/pdf",
            "Tables/Order/send",
        ]
        assert node.search_custom_actions("mail")["results"] == [
            {"name": "Send by mail", "value": "Tables/Order/send"},
        ]

    def test_search_custom_actions_without_table(self, make_node, erp):
        assert make_node({}).search_custom_actions() == {"results": []}
        assert erp.calls == []

    def test_search_custom_actions_unknown_table(self, make_node, erp):
        node = make_node({"table": {"mode": "list", "value": "nope"}})

        assert node.search_custom_actions() == {"results": []}

    def test_get_columns_for_create(self, make_node, erp):
        fields = make_node({"table": TABLE, "operation": "create"}).get_columns()["fields"]

        by_id = {f["id"]: f for f in fields}
        assert list(by_id) == ["status", "customer", "note", "created", "paid"]
        assert by_id["status"]["required"] is True
        assert by_id["status"]["removed"] is False
        assert by_id["customer"]["type"] == "options"
        assert by_id["customer"]["displayName"] == "Customer (customer): Billing customer"
        assert by_id["customer"]["options"] == [
            {"name": "Acme (1)", "value": 1},
            {"name": "Globex (2)", "value": 2},
        ]
        assert by_id["created"]["type"] == "dateTime"
        assert by_id["note"]["removed"] is True
        assert erp.calls_to("/TablesAPI/Customer/list")[0]["json"] == {}

    def test_get_columns_for_edit(self, make_node, erp):
        fields = make_node({"table": TABLE, "operation": "edit"}).get_columns()["fields"]

        assert all(f["required"] is False and f["removed"] is True for f in fields)

    def test_get_columns_reference_failure(self, make_node, erp):
        erp.add("POST", "/TablesAPI/Customer/list", status_code=500, body=b"")

        fields = make_node({"table": TABLE, "operation": "create"}).get_columns()["fields"]

        customer = next(f for f in fields if f["id"] == "customer")
        assert customer["type"] == "options"
        assert customer["options"] == []

    def test_get_columns_unknown_table(self, make_node, erp):
        node = make_node({"table": {"mode": "list", "value": "nope"}, "operation": "create"})

        assert node.get_columns() == {"fields": []}

    def test_get_action_params(self, make_node, erp):
        node = make_node({"table": TABLE, "customAction": {"mode": "list", "value": "Tables/Order/send"}})

        fields = node.get_action_params()["fields"]

        assert [f["id"] for f in fields] == ["id", "recipient"]
        assert all(f["canBeUsedToMatch"] is False for f in fields)

    def test_get_action_params_unknown_action(self, make_node, erp):
        node = make_node({"table": TABLE, "customAction": {"mode": "list", "value": "nope"}})

        assert node.get_action_params() == {"fields": []}


class TestTableOperations:
    """Test the CRUD operations."""

    def test_list_with_filter_string(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/list", json_body=[{"id": 1}, {"id": 2}])
        node = make_node({
            "operation": "list",
            "table": TABLE,
            "filterparams": '{"filter_user_ID": 1, "sort_user": "username ASC"}',
        })

        [[item]] = node.execute()

        assert item.json_data == {"data": [{"id": 1}, {"id": 2}]}
        assert item.paired_item.item == 0
        assert fake_session.calls[-1]["params"] == {"filter_user_ID": "1", "sort_user": "username ASC"}

    def test_list_object_result_and_filter_object(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/list", json_body={"rows": [], "total": 0})
        node = make_node({"operation": "list", "table": TABLE, "filterparams": {"a": "b"}})

        [[item]] = node.execute()

        assert item.json_data == {"rows": [], "total": 0}
        assert fake_session.calls[-1]["params"] == {"a": "b"}

    def test_list_invalid_filter(self, make_node, fake_session):
        node = make_node({"operation": "list", "table": TABLE, "filterparams": "{oops"})

        with pytest.raises(NodeOperationError, match="not valid JSON"):
            node.execute()

    def test_view(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/view", json_body={"id": 5, "note": "hi"})

        [[item]] = make_node({"operation": "view", "table": TABLE, "id": "5"}).execute()

        assert item.json_data == {"data": {"id": 5, "note": "hi"}}
        assert fake_session.calls[-1]["params"] == {"id": "5"}

    def test_delete(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/delete", json_body=True)

        [[item]] = make_node({"operation": "delete", "table": TABLE, "id": "5"}).execute()

        assert item.json_data == {"deleted": True}

    def test_create_posts_mapped_columns(self, make_node, fake_session):
        fake_session.add("POST", "/TablesAPI/orders/create", json_body=17)
        node = make_node({
            "operation": "create",
            "table": TABLE,
            "columns": {"mappingMode": "defineBelow", "value": {"note": "hi", "status": 1}},
        })

        [[item]] = node.execute()

        assert item.json_data == {"id": 17}
        assert fake_session.calls[-1]["json"] == {"note": "hi", "status": 1}
        assert fake_session.calls[-1]["params"] is None

    def test_edit(self, make_node, fake_session):
        fake_session.add("POST", "/TablesAPI/orders/edit", json_body={"changed": 1})
        node = make_node({
            "operation": "edit",
            "table": TABLE,
            "id": "9",
            "columns": {"mappingMode": "defineBelow", "value": {"note": "x"}},
        })

        [[item]] = node.execute()

        assert item.json_data == {"result": {"changed": 1}}
        assert fake_session.calls[-1]["params"] == {"id": "9"}

    def test_table_as_bare_value(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/view", json_body={})

        [[item]] = make_node({"operation": "view", "table": "orders", "id": "1"}).execute()

        assert item.json_data == {"data": {}}

    def test_per_item_parameters(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/view", json_body={})
        node = make_node(
            {"operation": "view", "table": TABLE},
            items=[NodeItem(), NodeItem()],
            item_parameters=[{"id": "1"}, {"id": "2"}],
        )

        [items] = node.execute()

        assert [i.paired_item.item for i in items] == [0, 1]
        assert [c["params"] for c in fake_session.calls] == [{"id": "1"}, {"id": "2"}]

    def test_error_key_raises(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/view", json_body={"error": "no such dataset"})

        with pytest.raises(NodeApiError, match="no such dataset") as exc_info:
            make_node({"operation": "view", "table": TABLE, "id": "5"}).execute()

        assert exc_info.value.item_index == 0
        assert exc_info.value.context["table"] == "orders"

    def test_http_error(self, make_node, fake_session):
        fake_session.add("GET", "/TablesAPI/orders/view", status_code=500, body=b"boom")

        with pytest.raises(NodeApiError) as exc_info:
            make_node({"operation": "view", "table": TABLE, "id": "5"}).execute()

        assert exc_info.value.status_code == 500

    def test_missing_table(self, make_node):
        with pytest.raises(NodeOperationError, match="No table selected"):
            make_node({"operation": "view"}).execute()

    def test_unsupported_operation(self, make_node):
        with pytest.raises(NodeOperationError, match="Unsupported operation"):
            make_node({"operation": "truncate", "table": TABLE}).execute()


class TestFailurePolicy:
    """Test continue-on-fail handling."""

    def test_continue_on_fail_emits_error_item(self, make_node, fake_session):
        def view(method, url, **kwargs):
            if kwargs["params"]["id"] == "bad":
                raise requests.ConnectionError("refused")
            return make_response(json_body={"ok": 1}, url=url)

        fake_session.add("GET", "/TablesAPI/orders/view", view)
        node = make_node(
            {"operation": "view", "table": TABLE},
            items=[NodeItem(json_data={"n": 1}), NodeItem(json_data={"n": 2})],
            item_parameters=[{"id": "bad"}, {"id": "good"}],
            continue_on_fail=True,
        )

        [items] = node.execute()

        assert items[0].json_data == {"n": 1}
        assert "refused" in items[0].error
        assert items[0].paired_item.item == 0
        assert items[1].json_data == {"data": {"ok": 1}}
        assert items[1].error is None

    def test_error_carries_item_index(self, make_node, fake_session):
        def view(method, url, **kwargs):
            if kwargs["params"]["id"] == "2":
                return make_response(json_body={"error": "locked"}, url=url)
            return make_response(json_body={}, url=url)

        fake_session.add("GET", "/TablesAPI/orders/view", view)
        node = make_node(
            {"operation": "view", "table": TABLE},
            items=[NodeItem(), NodeItem()],
            item_parameters=[{"id": "1"}, {"id": "2"}],
        )

        with pytest.raises(NodeApiError) as exc_info:
            node.execute()

        assert exc_info.value.item_index == 1
        assert "item_index=1" in str(exc_info.value)


class TestFiles:
    """Test file download and upload."""

    def test_retrieve_file(self, make_node, fake_session):
        fake_session.add(
            "GET", "/files/abc/x",
            body=b"\x89PNG",
            content_type="image/png",
            headers={"Content-Disposition": 'attachment; filename="logo.png"'},
        )
        items = [NodeItem(binary={"keep": BinaryData(data=b"k")})]

        [[item]] = make_node({"operation": "retrieveFile", "fileId": "abc"}, items=items).execute()

        assert item.json_data == {"fileId": "abc", "fileName": "logo.png"}
        assert item.binary["data"].data == b"\x89PNG"
        assert item.binary["data"].mime_type == "image/png"
        assert "keep" in item.binary

    def test_retrieve_file_defaults(self, make_node, fake_session):
        fake_session.add("GET", "/files/7/x", body=b"raw")

        [[item]] = make_node({"operation": "retrieveFile", "fileId": "7"}).execute()

        assert item.json_data["fileName"] == "file_7"
        assert item.binary["data"].mime_type == "application/octet-stream"

    def test_retrieve_file_requires_id(self, make_node):
        with pytest.raises(NodeOperationError, match="File ID is required"):
            make_node({"operation": "retrieveFile"}).execute()

    def test_upload_file(self, make_node, fake_session):
        fake_session.add("POST", "/FOP/Files/upload", json_body={"fileId": 3})
        items = [NodeItem(binary={"doc": BinaryData(data=b"abc", mime_type="text/plain", file_name="a.txt")})]

        [[item]] = make_node(
            {"operation": "uploadFile", "binaryPropertyName": "doc"}, items=items
        ).execute()

        assert item.json_data == {"uploaded": True, "result": {"fileId": 3}}
        call = fake_session.calls[-1]
        assert call["params"] == {"x": "-1"}
        assert call["files"] == {"file_-1": ("a.txt", b"abc", "text/plain")}

    def test_upload_missing_binary(self, make_node):
        with pytest.raises(NodeOperationError, match="Binary property 'data' is missing"):
            make_node({"operation": "uploadFile"}).execute()

    def test_upload_error_key(self, make_node, fake_session):
        fake_session.add("POST", "/FOP/Files/upload", json_body={"error": "quota exceeded"})
        items = [NodeItem(binary={"data": BinaryData(data=b"abc")})]

        with pytest.raises(NodeApiError, match="quota exceeded"):
            make_node({"operation": "uploadFile"}, items=items).execute()


class TestCustomAction:
    """Test dispatching descriptor-declared actions."""

    def test_pdf_action(self, make_node, erp):
        erp.add("GET", "/Tables/Order/pdf", body=b"%PDF", content_type="application/pdf")
        node = make_node({
            "operation": "custom",
            "table": TABLE,
            "customAction": {"mode": "list", "value": "Tables/Order/pdf"},
            "actionParams": {"mappingMode": "defineBelow", "value": None},
            "id": "42",
        })

        [[item]] = node.execute()

        assert item.json_data == {
            "ok": True,
            "fileName": "orders_42_pdf.pdf",
            "url": f"{BASE_URL}/Tables/Order/pdf?id=42",
        }
        assert item.binary["data"].data == b"%PDF"

    def test_post_action_with_mapped_params(self, make_node, erp):
        erp.add("POST", "/Tables/Order/send", json_body={"queued": True})
        node = make_node({
            "operation": "custom",
            "table": TABLE,
            "customAction": {"mode": "list", "value": "Tables/Order/send"},
            "actionParams": {"mappingMode": "defineBelow", "value": {"recipient": "a@b.c"}},
            "id": "3",
        })

        [[item]] = node.execute()

        assert item.json_data == {"queued": True}
        assert erp.calls[-1]["json"] == {"id": "3", "recipient": "a@b.c"}

    def test_unknown_table(self, make_node, erp):
        node = make_node({
            "operation": "custom",
            "table": {"mode": "list", "value": "nope"},
            "customAction": {"mode": "list", "value": "Tables/Order/pdf"},
        })

        with pytest.raises(TableNotFoundError) as exc_info:
            node.execute()

        assert exc_info.value.item_index == 0

    def test_missing_action(self, make_node):
        with pytest.raises(NodeOperationError, match="No action selected"):
            make_node({"operation": "custom", "table": TABLE}).execute()


class TestCredentials:
    """Test client construction from node credentials."""

    def test_http_built_from_credentials(self):
        context = NodeExecutionContext(
            parameters={},
            credentials={"tablesApi": {"baseurl": "https://erp.example.com/", "token": "t"}},
        )

        node = TablesApiNode(context, settings=Settings())

        assert node.http.base_url == "https://erp.example.com"
        assert node.http.headers["Authorization"] == "Bearer t"

    def test_missing_credentials(self):
        node = TablesApiNode(NodeExecutionContext(parameters={}, credentials={}), settings=Settings())

        with pytest.raises(NodeOperationError, match="Credentials 'tablesApi' not found"):
            node.http
