"""
HTTP Client - Timeout-bounded HTTP requests for nodes.

Every call carries an explicit timeout. The client owns bearer-token
injection; callers deal in paths relative to the API base URL.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import requests
from requests.exceptions import RequestException, Timeout


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class NodeTimeoutError(Exception):
    """Raised when an HTTP request times out."""

    def __init__(self, message: str, timeout: float, url: str):
        self.timeout = timeout
        self.url = url
        super().__init__(message)


class HttpApiError(Exception):
    """Transport failure or non-2xx response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        self.url = url
        self.method = method
        super().__init__(message)


class HttpResponse:
    """
    Wrapper for an HTTP response with convenient accessors.
    """

    def __init__(self, response: requests.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._response.headers)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self._response.headers.get(name, default)

    @property
    def content_type(self) -> str:
        return self.header("content-type") or ""

    @property
    def url(self) -> Optional[str]:
        return self._response.url

    @property
    def text(self) -> str:
        return self._response.text

    @property
    def content(self) -> bytes:
        return self._response.content or b""

    def json(self) -> Any:
        """Parse response as JSON. Raises ValueError on a malformed body."""
        return self._response.json()

    @property
    def ok(self) -> bool:
        return self._response.ok

    def raise_for_status(self) -> None:
        """Raise HttpApiError if status code indicates error."""
        if not self.ok:
            request = self._response.request
            raise HttpApiError(
                message=f"HTTP {self.status_code}: {self._response.reason}",
                status_code=self.status_code,
                response_body=self.text[:1000] if self.content else None,
                url=self.url,
                method=request.method if request is not None else None,
            )


class HttpClient:
    """
    HTTP client with timeout enforcement and bearer-token injection.

    Usage:
        client = HttpClient(base_url="https://erp.example.com", bearer_token="...")
        response = client.request("POST", "/TablesAPI/Customer/list", json={})
        response.raise_for_status()
        rows = response.json()
    """

    def __init__(
        self,
        base_url: str = "",
        default_headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        bearer_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session

        self.headers: Dict[str, str] = dict(default_headers or {})
        if bearer_token:
            self.headers["Authorization"] = f"Bearer {bearer_token}"

    def build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}{endpoint}" if self.base_url else endpoint

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Union[Dict[str, Any], str, bytes]] = None,
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """
        Make an HTTP request with timeout enforcement.

        Args:
            method: HTTP method (GET, POST, ...)
            endpoint: Path appended to base_url, or an absolute URL
            params: Query parameters
            json: JSON body
            data: Form data or raw body
            files: Multipart file fields
            headers: Additional headers (merged with defaults)
            timeout: Override default timeout

        Raises:
            NodeTimeoutError: If the request times out
            HttpApiError: If the request cannot be completed
        """
        url = self.build_url(endpoint)
        request_headers = {**self.headers, **(headers or {})}
        request_timeout = timeout or self.timeout
        sender = self._session or requests

        logger.debug("%s %s", method, url)
        try:
            response = sender.request(
                method=method,
                url=url,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=request_headers,
                timeout=request_timeout,
            )
            return HttpResponse(response)

        except Timeout as e:
            raise NodeTimeoutError(
                message=f"Request timed out after {request_timeout}s",
                timeout=request_timeout,
                url=url,
            ) from e

        except RequestException as e:
            raise HttpApiError(
                message=f"Request failed: {e}",
                url=url,
                method=method,
            ) from e

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> HttpResponse:
        return self.request("GET", endpoint, params=params, **kwargs)

    def post(self, endpoint: str, json: Any = None, **kwargs: Any) -> HttpResponse:
        return self.request("POST", endpoint, json=json, **kwargs)
