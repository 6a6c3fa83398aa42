"""
Abstract base class for external operations.

The external operation is the unit of work a job ultimately performs: a
black-box call that either returns a structured result or fails. The worker
calls operation.run(...) without knowing which implementation it holds.

Strategy pattern:
- AbstractOperation = interface
- HttpOperation, SimulatedOperation, FailingOperation = implementations
- registry.py = factory lookup

FailingOperation is how forced failures are injected: the worker code path
is identical, only the operation object differs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any


class AbstractOperation(ABC):

    @abstractmethod
    def run(self, payload: Any, job_id: str, timestamp: datetime) -> dict:
        """
        Perform the operation for one job.

        Args:
            payload: the job's request data, exactly as submitted.
            job_id: the job's id, forwarded for traceability.
            timestamp: when this attempt started, forwarded for traceability.

        Returns:
            dict with results — stored in the Job.result column.

        Raises:
            ExternalOperationError (or any exception) → recorded as a failed
            attempt, which drives retry/dead-letter.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier matching OperationKind (e.g., 'http', 'fail')."""
        ...
