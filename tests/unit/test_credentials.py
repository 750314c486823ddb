"""Tests for the Tables API credential."""
import pytest

from tables_connector.config import Settings
from tables_connector.credentials import TablesApiCredential


@pytest.fixture
def credential():
    return TablesApiCredential({"baseurl": "https://erp.example.com//", "token": "secret"})


class TestTablesApiCredential:
    """Test validation, client construction and connection test."""

    def test_definition(self):
        definition = TablesApiCredential.get_definition()

        assert definition["name"] == "tablesApi"
        assert [p["name"] for p in definition["properties"]] == ["baseurl", "token"]

    def test_validate_missing_fields(self):
        result = TablesApiCredential({"baseurl": "https://x"}).validate()

        assert result == {"valid": False, "message": "Missing required fields: token"}

    def test_validate_ok(self, credential):
        assert credential.validate() == {"valid": True}

    def test_http_client(self, credential):
        client = credential.http_client(Settings(request_timeout_s=12))

        assert client.base_url == "https://erp.example.com"
        assert client.headers["Authorization"] == "Bearer secret"
        assert client.timeout == 12

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("TABLES_CONNECTOR_BASE_URL", "https://env.example.com")
        monkeypatch.setenv("TABLES_CONNECTOR_TOKEN", "env-token")

        credential = TablesApiCredential.from_settings()

        assert credential.base_url == "https://env.example.com"
        assert credential.data["token"] == "env-token"

    def test_connection_ok(self, credential, http, erp, monkeypatch):
        monkeypatch.setattr(TablesApiCredential, "http_client", lambda self, settings=None: http)

        result = credential.test()

        assert result == {"success": True, "message": "Connected, 2 tables available"}

    def test_connection_failure(self, credential, http, fake_session, monkeypatch):
        monkeypatch.setattr(TablesApiCredential, "http_client", lambda self, settings=None: http)
        fake_session.add("GET", "/FOP/Index/api", status_code=401, body=b"denied")

        result = credential.test()

        assert result["success"] is False
        assert "401" in result["message"]

    def test_connection_skipped_when_invalid(self, fake_session):
        result = TablesApiCredential({"baseurl": "", "token": ""}).test()

        assert result["success"] is False
        assert "baseurl" in result["message"]
        assert fake_session.calls == []
