"""Domain models for shellrelay.

Value objects shared between configuration, the endpoint core and the
CLI. All models use Pydantic v2 for validation.
"""

from shellrelay.domain.models import ExecutionResult, ServiceTarget

__all__ = [
    "ExecutionResult",
    "ServiceTarget",
]
