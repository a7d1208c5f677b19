"""
HTTP client for the Databricks REST API.

Resiliency features:
- Connect timeout: 5 seconds, read timeout: 60 seconds
- Retry for 429 (rate limiting) and 5xx (server errors), never for 404
- Exponential backoff: 1s, 2s, 4s
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from esgsmart.config import DatabricksSettings
from esgsmart.errors import ServiceError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0
READ_TIMEOUT = 60.0


def build_session(retries: int = 3) -> requests.Session:
    retry_strategy = Retry(
        total=retries,
        backoff_factor=1.0,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class DatabricksClient:
    """Bearer-authenticated GET/POST against one Databricks workspace."""

    def __init__(
        self,
        settings: Optional[DatabricksSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or DatabricksSettings()
        self.session = session or build_session()
        self.timeout = (CONNECT_TIMEOUT, READ_TIMEOUT)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.token}",
            "Content-Type": "application/json",
        }

    def url(self, path: str) -> str:
        return f"{self.settings.host}{path}"

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """GET returning the raw response; status handling is up to the caller."""
        return self.session.get(
            self.url(path),
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
        )

    def post_json(self, path: str, payload: Dict[str, Any], operation: str) -> Any:
        """POST a JSON payload and return the parsed JSON answer."""
        url = self.url(path)
        try:
            response = self.session.post(
                url, json=payload, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("POST %s network error: %s", url, e)
            raise ServiceError(operation, body=str(e)) from e

        if not response.ok:
            logger.error("POST %s failed with status %s", url, response.status_code)
            raise ServiceError(operation, response.status_code, response.text)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(operation, response.status_code, f"invalid JSON: {e}") from e
