"""
HTTP external operation.

POSTs the job to EXTERNAL_API_URL and stores the JSON response as the result:

    POST https://httpbin.org/delay/5
    {"payload": ..., "job_id": "...", "timestamp": "2026-01-01T00:00:00+00:00"}

Any non-2xx status, transport error, timeout or non-JSON body is a failure.
The default URL points at httpbin's delay endpoint, which simulates a slow
API (5 seconds) so the processing state is observable.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from config.settings import settings
from lifecycle.exceptions import ExternalOperationError
from operations.base import AbstractOperation

logger = logging.getLogger(__name__)


class HttpOperation(AbstractOperation):

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self._url = url or settings.EXTERNAL_API_URL
        self._client = client or httpx.Client(
            timeout=timeout if timeout is not None else settings.EXTERNAL_API_TIMEOUT
        )

    def run(self, payload: Any, job_id: str, timestamp: datetime) -> dict:
        body = {
            "payload": payload,
            "job_id": job_id,
            "timestamp": timestamp.isoformat(),
        }
        try:
            response = self._client.post(self._url, json=body)
        except httpx.HTTPError as e:
            raise ExternalOperationError(f"API request failed: {e}") from e

        if not response.is_success:
            raise ExternalOperationError(f"API returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ExternalOperationError("API returned a non-JSON response") from e

        # result column holds a dict; wrap bare JSON values
        return data if isinstance(data, dict) else {"data": data}

    def close(self) -> None:
        self._client.close()

    @property
    def name(self) -> str:
        return "http"
