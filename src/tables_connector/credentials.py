"""
Credentials for the Tables API.

SYNC-CELERY SAFE: All methods are synchronous with timeouts.
"""
from typing import Any, ClassVar, Dict, List, Optional

from tables_connector.config import Settings, get_settings
from tables_connector.descriptor import DescriptorClient
from tables_connector.errors import DescriptorUnavailableError
from tables_connector.sdk import HttpClient


class BaseCredential:
    """Base class for all credential types"""

    # Class variables to be overridden by subclasses
    name: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    properties: ClassVar[List[Dict[str, Any]]] = []

    def __init__(self, data: Dict[str, Any]):
        self.data = data

    @classmethod
    def get_definition(cls) -> Dict[str, Any]:
        """Get the credential type definition for registration"""
        return {
            "name": cls.name,
            "display_name": cls.display_name,
            "properties": cls.properties,
        }

    def test(self) -> Dict[str, Any]:
        """
        Test if the credential is valid

        Returns:
            Dictionary with test results (success, message)
        """
        raise NotImplementedError("Test method not implemented")

    def validate(self) -> Dict[str, Any]:
        """
        Validate that all required properties are provided

        Returns:
            Dictionary with validation results
        """
        missing_fields = [
            prop["name"]
            for prop in self.properties
            if prop.get("required", False) and not self.data.get(prop["name"])
        ]
        if missing_fields:
            return {
                "valid": False,
                "message": f"Missing required fields: {', '.join(missing_fields)}",
            }
        return {"valid": True}


class TablesApiCredential(BaseCredential):
    """Base URL plus bearer token of one installation."""

    name = "tablesApi"
    display_name = "Tables API"
    properties = [
        {
            "name": "baseurl",
            "displayName": "Base URL of the software",
            "type": "string",
            "default": "",
            "required": True,
        },
        {
            "name": "token",
            "displayName": "Auth Token",
            "type": "string",
            "default": "",
            "required": True,
            "typeOptions": {"password": True},
        },
    ]

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TablesApiCredential":
        settings = settings or get_settings()
        token = settings.token.get_secret_value() if settings.token else ""
        return cls({"baseurl": settings.base_url, "token": token})

    @property
    def base_url(self) -> str:
        return str(self.data.get("baseurl") or "").rstrip("/")

    def http_client(self, settings: Optional[Settings] = None) -> HttpClient:
        """Authenticated client rooted at the base URL."""
        settings = settings or get_settings()
        return HttpClient(
            base_url=self.base_url,
            bearer_token=self.data.get("token") or None,
            timeout=settings.request_timeout_s,
        )

    def test(self, settings: Optional[Settings] = None) -> Dict[str, Any]:
        """Fetch the descriptor with these credentials. Never raises."""
        validation = self.validate()
        if not validation["valid"]:
            return {"success": False, "message": validation["message"]}

        settings = settings or get_settings()
        client = DescriptorClient(self.http_client(settings), settings.descriptor_path)
        try:
            descriptor = client.fetch()
        except DescriptorUnavailableError as e:
            return {"success": False, "message": str(e)}

        return {
            "success": True,
            "message": f"Connected, {len(descriptor.tables)} tables available",
        }


__all__ = ["BaseCredential", "TablesApiCredential"]
