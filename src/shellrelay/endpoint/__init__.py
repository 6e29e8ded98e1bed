"""Per-shell network service.

Binds one interpreter to one TCP endpoint, accepts connections, receives
marker-delimited scripts, runs them and relays the output back.
"""

from shellrelay.endpoint.resolver import ConfigurationError, ShellNotFoundError, resolve_shell
from shellrelay.endpoint.service import PROTOCOL, Service

__all__ = [
    "ConfigurationError",
    "PROTOCOL",
    "Service",
    "ShellNotFoundError",
    "resolve_shell",
]
