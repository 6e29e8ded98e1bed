"""Configuration management for shellrelay.

Loads and validates YAML-based configuration with Pydantic models and
parses the ``shell[:addr][:port]`` service arguments.
"""

from shellrelay.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
