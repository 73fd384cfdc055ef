"""Configuration module."""

from .settings import ConfigurationError, Settings, VERIFICATION_CONFIG_SCHEMA

__all__ = ["ConfigurationError", "Settings", "VERIFICATION_CONFIG_SCHEMA"]
