from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

Params = Union[Dict[str, Any], Sequence[Tuple[str, Any]], None]

_RETRYABLE = (requests.ConnectionError, requests.Timeout, requests.HTTPError)


class HttpClient:
    def __init__(self, timeout: int = 15, user_agent: str = "market-aggregator/0.1"):
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json", "User-Agent": user_agent})
        self._timeout = timeout

    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def get_json(self, url: str, params: Params = None, timeout: Optional[int] = None) -> Any:
        response = self._session.get(url, params=params, timeout=timeout or self._timeout)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            body = response.text[:600] if response is not None else ""
            raise requests.HTTPError(f"{exc} | response_body={body}", response=response) from exc
        return response.json()

    def close(self) -> None:
        self._session.close()
