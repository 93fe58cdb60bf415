"""
Secret client for a plain HTTP secret API.

    GET {base_url}/secrets                 -> ["name", ...] or {"secrets": [...]}
    GET {base_url}/secrets/{name}?version= -> {"value": "..."}; 404 when absent
"""
import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from ..validators import SourceLoadError
from .secret_store import SecretClient

logger = logging.getLogger(__name__)


class HttpSecretClient(SecretClient):
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        if not base_url:
            raise ValueError("base_url must not be empty")
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._own_client = client is None
        self._client = client or httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout)

    @property
    def location(self) -> str:
        return httpx.URL(self.base_url).host or self.base_url

    def _get(self, path: str, **params: Any) -> httpx.Response:
        try:
            return self._client.get(path, params={k: v for k, v in params.items() if v is not None})
        except httpx.HTTPError as e:
            raise SourceLoadError(f"Request to {self.base_url}{path} failed: {e}") from e

    def list_secret_names(self) -> List[str]:
        response = self._get("/secrets")
        if response.is_error:
            raise SourceLoadError(f"Listing secrets failed with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as e:
            raise SourceLoadError(f"Secret listing is not valid JSON: {e}") from e

        if isinstance(payload, dict):
            payload = payload.get("secrets", [])
        if not isinstance(payload, list):
            raise SourceLoadError("Secret listing must be a JSON array")
        names = []
        for item in payload:
            if isinstance(item, dict):
                if item.get("enabled", True) is False:
                    continue
                item = item.get("name")
            if item:
                names.append(str(item))
        logger.debug(f"Listed {len(names)} secret(s) from {self.location}")
        return names

    def get_secret(self, name: str, version: Optional[str] = None) -> Optional[str]:
        response = self._get(f"/secrets/{quote(name, safe='')}", version=version)
        if response.status_code == 404:
            return None
        if response.is_error:
            raise SourceLoadError(f"Fetching secret '{name}' failed with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as e:
            raise SourceLoadError(f"Secret '{name}' response is not valid JSON: {e}") from e
        value = payload.get("value") if isinstance(payload, dict) else payload
        return None if value is None else str(value)

    def close(self) -> None:
        if self._own_client:
            self._client.close()
