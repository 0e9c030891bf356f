"""
HTTP transport for the AuroraX API.
"""

from typing import Any, Optional

import httpx
import structlog

from conjunctions.errors import TransportError

logger = structlog.get_logger()


class ApiClient:
    """
    Thin wrapper around httpx.Client carrying base URL, auth and user agent.

    Network failures are raised as TransportError. Status codes are left to
    the caller, except in get_json() which requires a 2xx reply.
    """

    DEFAULT_TIMEOUT = 10.0  # seconds, per request
    API_KEY_HEADER = "x-aurorax-api-key"

    def __init__(
        self,
        base_url: str,
        version: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize API client.

        Args:
            base_url: API root, e.g. https://api.aurorax.space
            version: Client version sent in the User-Agent header
            api_key: Optional API key
            timeout: Timeout for each individual request in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.version = version
        self.timeout = timeout

        headers = {
            "User-Agent": f"conjunction-search/{version}",
            "Accept": "application/json",
        }
        if api_key:
            headers[self.API_KEY_HEADER] = api_key

        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        logger.debug("ApiClient initialized", base_url=self.base_url, timeout=timeout)

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        follow_redirects: bool = True
    ) -> httpx.Response:
        """
        Send one request.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            json: Optional JSON body
            follow_redirects: Whether redirects are followed

        Returns:
            httpx.Response with any status code

        Raises:
            TransportError: connection failure or timeout
        """
        try:
            response = self._client.request(
                method, path, json=json, follow_redirects=follow_redirects
            )
        except httpx.TimeoutException as e:
            logger.error("Request timed out", method=method, path=path, timeout=self.timeout)
            raise TransportError(f"Timeout: {method} {path}: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Request failed", method=method, path=path, error=str(e))
            raise TransportError(f"{method} {path} failed: {e}") from e

        logger.debug("Response received", method=method, path=path, status=response.status_code)
        return response

    def get_json(self, path: str) -> Any:
        """GET a path and decode the JSON body, requiring a 2xx status."""
        response = self.request("GET", path)
        raise_for_status(response)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON from GET {path}",
                status_code=response.status_code,
                detail=response.text
            ) from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def raise_for_status(response: httpx.Response) -> None:
    """Raise TransportError for any non-2xx response."""
    if response.is_success:
        return
    method = response.request.method
    url = str(response.request.url)
    logger.error("Unexpected HTTP status", method=method, url=url, status=response.status_code)
    raise TransportError(
        f"HTTP {response.status_code} from {method} {url}",
        status_code=response.status_code,
        detail=response.text
    )
