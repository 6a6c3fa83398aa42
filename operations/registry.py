"""
Operation factory — maps OperationKind values to operation instances.

One place that knows every implementation:

    create_operation("http")        → HttpOperation against EXTERNAL_API_URL
    create_operation("simulated")   → SimulatedOperation
    create_operation("fail")        → FailingOperation
"""

from typing import Optional

from config.settings import settings
from models.enums import OperationKind
from operations.base import AbstractOperation
from operations.failing import FailingOperation
from operations.http_operation import HttpOperation
from operations.simulated import SimulatedOperation

_REGISTRY: dict[OperationKind, type[AbstractOperation]] = {
    OperationKind.HTTP: HttpOperation,
    OperationKind.SIMULATED: SimulatedOperation,
    OperationKind.FAIL: FailingOperation,
}


def create_operation(kind: Optional[str] = None, **kwargs) -> AbstractOperation:
    """Build the configured operation. Raises ValueError if unknown."""
    kind = kind or settings.EXTERNAL_OPERATION
    try:
        cls = _REGISTRY[OperationKind(kind)]
    except ValueError:
        raise ValueError(
            f"Unknown operation: '{kind}'. Available: {[k.value for k in _REGISTRY]}"
        ) from None
    return cls(**kwargs)
