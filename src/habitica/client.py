"""HTTP client for the Habitica v3 REST API.

Sends authenticated requests and turns every failure into an
``UpstreamError`` carrying the message Habitica returned, if any.
"""

from typing import Any, Optional

import httpx

from shared.logging import get_logger
from shared.models import UpstreamCredentials
from mcp_server.errors import UpstreamError

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://habitica.com/api/v3"


def create_http_client(
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """Create the pooled HTTP client shared by all upstream calls."""
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=timeout,
        transport=transport,
        headers={"Content-Type": "application/json"},
    )


def extract_error_message(response: httpx.Response) -> Optional[str]:
    """Pull the service-supplied message out of an error response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or None

    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if message:
            return str(message)
    return None


class HabiticaClient:
    """
    Upstream client bound to one set of credentials.

    Instances are cheap: they wrap a shared ``httpx.AsyncClient`` and only
    add the credential headers.
    """

    def __init__(self, http: httpx.AsyncClient, credentials: UpstreamCredentials) -> None:
        self._http = http
        self.credentials = credentials

    def _get_headers(self) -> dict[str, str]:
        return {
            "x-api-user": self.credentials.user_id,
            "x-api-key": self.credentials.api_token,
        }

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None
    ) -> Any:
        """
        Make a request to the Habitica API.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            body: Optional JSON body
            params: Optional query parameters; ``None`` values are dropped

        Returns:
            The decoded JSON body, or None for an empty response

        Raises:
            UpstreamError: On HTTP error statuses and transport failures
        """
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        logger.debug("Upstream request", method=method, path=path)

        try:
            response = await self._http.request(
                method,
                path,
                json=body,
                params=params or None,
                headers=self._get_headers(),
            )
        except httpx.HTTPError as e:
            logger.warning("Upstream request failed", method=method, path=path, error=str(e))
            raise UpstreamError(str(e) or type(e).__name__) from e

        if response.is_error:
            message = extract_error_message(response)
            logger.warning(
                "Upstream returned error",
                method=method,
                path=path,
                status=response.status_code,
                message=message
            )
            raise UpstreamError(message, upstream_status=response.status_code)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Invalid JSON in upstream response", upstream_status=response.status_code) from e

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None
    ) -> Any:
        return await self.request("POST", path, body=body, params=params)

    async def put(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, body=body)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
