"""Salesforce session management - JWT bearer flow, expiry tracking, workspace resolution."""

import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx
import jwt

from ..models import (
    APIConfiguration,
    AuthenticationError,
    ChannelRecord,
    ConfigError,
    NotFoundError,
    TokenResponse,
)
from .responses import handle_response, log_event

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# Assertion lifetime (seconds)
ASSERTION_TTL = 5 * 60

# Salesforce does not echo a TTL for JWT bearer tokens; assume the default session length
DEFAULT_TOKEN_TTL = 60 * 60

# Refresh this many seconds before the assumed expiry
EXPIRY_SAFETY_MARGIN = 60


def soql_quote(value: str) -> str:
    """Escape a value for use inside a single-quoted SOQL string literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


@dataclass
class SalesforceSession:
    """Mutable per-process session state. Never persisted."""

    access_token: str | None = None
    instance_url: str | None = None
    expires_at: float | None = None
    workspace_id: str | None = None
    channel_id: str | None = None

    def is_fresh(self, now: float, margin: float = EXPIRY_SAFETY_MARGIN) -> bool:
        if not self.access_token or self.expires_at is None:
            return False
        return now < self.expires_at - margin


class SessionManager:
    """Owns the Salesforce session and refreshes it on demand.

    There is no background refresh; every remote operation calls
    ensure_authenticated() before issuing its request.
    """

    def __init__(
        self,
        config: APIConfiguration,
        get_http_client: Callable[[], httpx.AsyncClient],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.session = SalesforceSession(instance_url=config.instance_url)
        self._http = get_http_client
        self._clock = clock

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.session.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def data_url(self, path: str = "") -> str:
        """Absolute URL on the REST/Connect API for the configured version."""
        return f"{self.session.instance_url}/services/data/{self.config.api_version}{path}"

    def tooling_url(self, path: str = "") -> str:
        return self.data_url(f"/tooling{path}")

    def _read_private_key(self) -> str:
        path = self.config.private_key_path
        try:
            key = path.read_text(encoding="utf-8")
        except OSError as err:
            raise ConfigError(f"Cannot read JWT private key at {path}: {err}") from err
        if not key.strip():
            raise ConfigError(f"JWT private key file is empty: {path}")
        return key

    def _build_assertion(self, private_key: str) -> str:
        now = int(self._clock())
        claims = {
            "iss": self.config.client_id,
            "sub": self.config.username,
            "aud": self.config.auth_endpoint,
            "exp": now + ASSERTION_TTL,
        }
        return jwt.encode(claims, private_key, algorithm="RS256")

    async def _exchange_assertion(self, assertion: str) -> TokenResponse:
        response = await self._http().post(
            f"{self.config.auth_endpoint}/services/oauth2/token",
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            headers={"Accept": "application/json"},
        )
        data = handle_response(response, "token exchange")
        return TokenResponse.model_validate(data)

    async def authenticate(self) -> SalesforceSession:
        """Run the JWT bearer flow and store the resulting session.

        The key file is read before any network call. Workspace and channel
        are resolved on the first successful authentication only; if that
        resolution fails, the new token is discarded with it.

        Raises:
            ConfigError: key file missing or unreadable.
            NotFoundError: no workspace with the configured name.
            AuthenticationError: any other failure, with the original message.
        """
        private_key = self._read_private_key()

        try:
            assertion = self._build_assertion(private_key)
            token = await self._exchange_assertion(assertion)

            now = self._clock()
            self.session.access_token = token.access_token
            self.session.instance_url = token.instance_url.rstrip("/")
            self.session.expires_at = now + (token.expires_in or DEFAULT_TOKEN_TTL)
            log_event(
                f"Authenticated as {self.config.username} against {self.session.instance_url}",
                "SESSION",
            )

            if not self.session.workspace_id:
                try:
                    await self.resolve_workspace_and_channel()
                except Exception:
                    # a token without a workspace must not count as a usable session
                    self.session.access_token = None
                    self.session.expires_at = None
                    raise
        except (ConfigError, NotFoundError):
            raise
        except Exception as err:  # noqa: BLE001
            raise AuthenticationError(
                f"Authentication failed: {err}",
                getattr(err, "status_code", None),
                getattr(err, "body", None),
            ) from err

        return self.session

    async def ensure_authenticated(self) -> SalesforceSession:
        """Authenticate if no token is held or it is within the safety margin of expiry."""
        if not self.session.is_fresh(self._clock()):
            await self.authenticate()
        return self.session

    async def _query(self, soql: str) -> list[dict[str, Any]]:
        response = await self._http().get(
            self.data_url("/query/"), params={"q": soql}, headers=self.headers
        )
        data = handle_response(response, "workspace query") or {}
        return data.get("records") or []

    async def resolve_workspace_and_channel(self) -> tuple[str, str]:
        """Resolve the ManagedContentSpace id by name, then its delivery channel.

        The Delivery API needs a channel id (0ap...) rather than the space id
        (0Zu...). Channel lookup is best-effort: on no match or any failure
        the workspace id stands in for the channel id.
        """
        name = self.config.workspace_name
        records = await self._query(
            f"SELECT Id, Name FROM ManagedContentSpace WHERE Name = '{soql_quote(name)}'"
        )
        if not records:
            raise NotFoundError(f"Workspace '{name}' not found")

        workspace_id = records[0]["Id"]
        self.session.workspace_id = workspace_id

        channel_id = workspace_id
        try:
            response = await self._http().get(
                self.data_url("/connect/cms/delivery/channels"), headers=self.headers
            )
            data = handle_response(response, "channel lookup") or {}
            channels = [ChannelRecord.model_validate(ch) for ch in data.get("channels") or []]
            for channel in channels:
                if channel.workspace_id == workspace_id:
                    channel_id = channel.channel_id
                    break
            else:
                log_event(
                    f"No delivery channel for workspace {workspace_id}; using workspace id",
                    "SESSION",
                )
        except Exception as err:  # noqa: BLE001
            log_event(f"Channel lookup failed ({err}); using workspace id", "SESSION")

        self.session.channel_id = channel_id
        log_event(f"Workspace '{name}' -> {workspace_id}, channel {channel_id}", "SESSION")
        return workspace_id, channel_id
