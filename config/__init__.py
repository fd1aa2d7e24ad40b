"""
Configuration module.

Exports:
    get_settings: Function to get settings (cached)
    get_supabase_client: Cached Supabase client
    check_connection: Health check function
    configure_logging: structlog setup
"""

from config.settings import get_settings, Settings
from config.database import (
    get_supabase_client,
    check_connection,
    reset_connection,
    ConnectionError
)
from config.logging import configure_logging

__all__ = [
    # Settings
    "get_settings",
    "Settings",

    # Database
    "get_supabase_client",
    "check_connection",
    "reset_connection",
    "ConnectionError",

    # Logging
    "configure_logging",
]
