"""
Simulated external operation.

Useful for demos and local runs without network access:
- You control exactly how long it takes (duration)
- You control whether it fails (fail_probability)

    SimulatedOperation(duration=3.0)                         → sleeps 3 seconds, always succeeds
    SimulatedOperation(duration=1.0, fail_probability=0.5)   → fails half the time
"""

import random
import time
from datetime import datetime
from typing import Any

from lifecycle.exceptions import ExternalOperationError
from operations.base import AbstractOperation


class SimulatedOperation(AbstractOperation):

    def __init__(self, duration: float = 1.0, fail_probability: float = 0.0):
        self.duration = duration
        self.fail_probability = fail_probability

    def run(self, payload: Any, job_id: str, timestamp: datetime) -> dict:
        # Check for simulated failure BEFORE sleeping
        if random.random() < self.fail_probability:
            raise ExternalOperationError(
                f"Simulated failure (fail_probability={self.fail_probability})"
            )

        time.sleep(self.duration)

        return {
            "echo": payload,
            "job_id": job_id,
            "requested_at": timestamp.isoformat(),
            "took_seconds": self.duration,
        }

    @property
    def name(self) -> str:
        return "simulated"
