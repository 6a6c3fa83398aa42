"""
Forced-failure operation.

Stands in for the real operation when a caller asks for a forced failure
(POST /process {"force_fail": true}) or when EXTERNAL_OPERATION=fail. It never
touches the network, which makes the retry → backoff → dead-letter path
deterministic in tests and demos.
"""

from datetime import datetime
from typing import Any

from lifecycle.exceptions import ExternalOperationError
from operations.base import AbstractOperation

FORCED_FAILURE_MESSAGE = "Forced failure for testing retry mechanism"


class FailingOperation(AbstractOperation):

    def __init__(self, message: str = FORCED_FAILURE_MESSAGE):
        self.message = message

    def run(self, payload: Any, job_id: str, timestamp: datetime) -> dict:
        raise ExternalOperationError(self.message)

    @property
    def name(self) -> str:
        return "fail"
