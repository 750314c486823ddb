"""Observability package."""
from tables_connector.observability.logging import log_context, setup_logging

__all__ = ["log_context", "setup_logging"]
