"""Salesforce CMS API client - HTTP core shared by all content operations."""

import time
from typing import Any, Callable

import httpx

from ..models import APIConfiguration, RemoteError
from .responses import handle_response, log_event
from .session import SalesforceSession, SessionManager


class SalesforceCMSClientCore:
    """Core client - owns the HTTP connection and the session manager."""

    def __init__(
        self,
        config: APIConfiguration,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the client.

        Args:
            config: Resolved API configuration
            transport: Optional httpx transport (tests inject httpx.MockTransport)
            clock: Time source in epoch seconds, used for token expiry
        """
        self.config = config
        self._transport = transport
        self._clock = clock
        self._client: httpx.AsyncClient | None = None
        self.session_manager = SessionManager(config, lambda: self.client, clock=clock)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    @property
    def session(self) -> SalesforceSession:
        return self.session_manager.session

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SalesforceCMSClientCore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        tooling: bool = False,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Issue one authenticated request and decode the response.

        Transport failures are re-raised as RemoteError tagged with the
        operation name; HTTP errors are mapped by handle_response.
        """
        await self.session_manager.ensure_authenticated()

        if tooling:
            url = self.session_manager.tooling_url(path)
        else:
            url = self.session_manager.data_url(path)

        try:
            response = await self.client.request(
                method,
                url,
                params=params,
                json=json,
                headers=self.session_manager.headers,
            )
        except httpx.TimeoutException as err:
            log_event(f"{operation}: timed out after {self.config.timeout}s", "CMS")
            raise RemoteError(f"{operation}: request timed out after {self.config.timeout}s") from err
        except httpx.HTTPError as err:
            log_event(f"{operation}: network error {err}", "CMS")
            raise RemoteError(f"{operation}: network error ({err})") from err

        return handle_response(response, operation)
