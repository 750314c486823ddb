"""Pytest configuration and fixtures."""
import copy
import json
import os
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

import pytest
import requests

# Set test environment variables
os.environ["TABLES_CONNECTOR_ENV"] = "test"
os.environ["TABLES_CONNECTOR_LOG_JSON"] = "false"

from tables_connector.config import reset_settings  # noqa: E402
from tables_connector.models import Descriptor  # noqa: E402
from tables_connector.sdk import HttpClient  # noqa: E402


BASE_URL = "https://erp.example.com"

DESCRIPTOR: Dict[str, Any] = {
    "tables": {
        "orders": {
            "descSingle": "Order",
            "tblname": "tbl_orders",
            "columns": {
                "status": {
                    "desc": "Status",
                    "required": True,
                    "type": {
                        "type": "number",
                        "options": [
                            {"name": "Open", "value": 1},
                            {"name": "Closed", "value": 2},
                        ],
                    },
                },
                "customer": {
                    "desc": "Customer",
                    "required": True,
                    "type": {
                        "type": "foreign-key",
                        "references": "Customer",
                        "info": "Billing customer",
                    },
                },
                "note": {"desc": "Note", "type": "string"},
                "created": {"desc": "Created", "type": "DateTime"},
                "paid": {"desc": "Paid", "type": "boolean"},
            },
            "actions": [
                {"path": "Tables/Order/pdf", "title": "Print PDF", "params": ["id"]},
                {
                    "path": "Tables/Order/send",
                    "title": "Send by mail",
                    "httpMethod": "post",
                    "params": ["id", "recipient"],
                },
            ],
        },
        "Customer": {
            "descSingle": "Customer",
            "tblname": "tbl_customer",
            "columns": [
                {"id": "ID", "desc": "ID", "type": "number"},
                {"id": "name", "desc": "Name", "required": True},
            ],
            "actions": [],
        },
    }
}

CUSTOMER_RECORDS = {
    "data": [
        {"ID": 1, "name": "Acme"},
        {"ID": 2, "name": "Globex"},
    ]
}


def make_response(
    status_code: int = 200,
    json_body: Any = None,
    body: Optional[bytes] = None,
    content_type: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = BASE_URL,
) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response.url = url
    response.encoding = "utf-8"
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
        content_type = content_type or "application/json"
    else:
        response._content = body if body is not None else b""
    response.headers.update(headers or {})
    if content_type:
        response.headers["Content-Type"] = content_type
    return response


Route = Union[requests.Response, Exception, Callable[..., requests.Response]]


class FakeSession:
    """
    Scripted stand-in for requests.Session.

    Routes are keyed by (method, path); the query string is ignored for
    matching. Unrouted requests get a 404. Every call is recorded.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, path: str, response: Optional[Route] = None, **kwargs: Any) -> None:
        self.routes[(method.upper(), path)] = response if response is not None else make_response(**kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        path = urlsplit(url).path
        self.calls.append({"method": method, "url": url, "path": path, **kwargs})

        route = self.routes.get((method.upper(), path))
        if route is None:
            return make_response(404, body=b"not found", url=url)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(method, url, **kwargs)
        route.url = url
        return route

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["path"] == path]


@pytest.fixture(autouse=True)
def fresh_settings():
    """Every test starts from freshly loaded settings."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def descriptor_payload() -> Dict[str, Any]:
    return copy.deepcopy(DESCRIPTOR)


@pytest.fixture
def descriptor(descriptor_payload) -> Descriptor:
    return Descriptor.from_payload(descriptor_payload)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def http(fake_session) -> HttpClient:
    return HttpClient(base_url=BASE_URL, bearer_token="secret", timeout=5, session=fake_session)


@pytest.fixture
def erp(fake_session, descriptor_payload) -> FakeSession:
    """Fake session serving the sample descriptor and the Customer listing."""
    fake_session.add("GET", "/FOP/Index/api", json_body=descriptor_payload)
    fake_session.add("POST", "/TablesAPI/Customer/list", json_body=CUSTOMER_RECORDS)
    return fake_session
