"""Configuration and settings management using pydantic-settings."""
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Connector settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="TABLES_CONNECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=True, description="Emit JSON log lines")

    # Remote API
    base_url: str = Field(default="", description="Base URL of the remote software")
    token: SecretStr | None = Field(default=None, description="Bearer token")

    # Endpoint layout
    descriptor_path: str = Field(
        default="/FOP/Index/api",
        description="Path of the schema descriptor endpoint",
    )
    tables_api_path: str = Field(
        default="/TablesAPI",
        description="Prefix of the per-table CRUD endpoints",
    )
    files_path: str = Field(default="/files", description="Prefix of file downloads")
    upload_path: str = Field(default="/FOP/Files/upload", description="File upload endpoint")

    # Runtime limits
    request_timeout_s: float = Field(default=30, description="Per-request timeout in seconds")
    reference_option_limit: int = Field(
        default=200,
        description="Maximum records turned into options for a reference column",
    )

    @field_validator("request_timeout_s", "reference_option_limit")
    @classmethod
    def validate_positive(cls, v, info):
        """Validate that limits are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @field_validator("descriptor_path", "tables_api_path", "files_path", "upload_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Paths are joined onto the base URL and need one leading slash."""
        return "/" + v.strip().strip("/")


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
