from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from sfcms_mcp.client import SalesforceCMSClient
from sfcms_mcp.models import APIConfiguration

INSTANCE_URL = "https://example.my.salesforce.com"
DATA_PATH = "/services/data/v61.0"
WORKSPACE_ID = "0ZuWS0000000001"
CHANNEL_ID = "0apCH0000000001"

Route = Callable[[httpx.Request], httpx.Response]


def json_route(status: int, payload: Any = None) -> Route:
    def route(_request: httpx.Request) -> httpx.Response:
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    return route


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSalesforce:
    """In-memory stand-in for the OAuth endpoint and the org's REST API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.token_payload: dict[str, Any] = {
            "instance_url": INSTANCE_URL,
            "token_type": "Bearer",
            "issued_at": "1700000000000",
        }
        self.token_route: Route | None = None
        self.workspace_records: list[dict[str, Any]] = [{"Id": WORKSPACE_ID, "Name": "Marketing"}]
        self.channels_route: Route = json_route(
            200,
            {
                "channels": [
                    {"channelId": "0apOTHER000001", "managedContentSpaceId": "0ZuOTHER000001"},
                    {"channelId": CHANNEL_ID, "managedContentSpaceId": WORKSPACE_ID},
                ]
            },
        )
        self.routes: dict[tuple[str, str], Route] = {}

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def route(self, method: str, path: str, route: Route) -> None:
        """Register a handler for ``method`` on ``DATA_PATH + path``."""
        self.routes[(method, DATA_PATH + path)] = route

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == DATA_PATH + path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/services/oauth2/token":
            self.token_calls += 1
            if self.token_route is not None:
                return self.token_route(request)
            return httpx.Response(
                200, json={**self.token_payload, "access_token": f"token-{self.token_calls}"}
            )

        route = self.routes.get((request.method, path))
        if route is not None:
            return route(request)

        query = request.url.params.get("q", "")
        if path == f"{DATA_PATH}/query/" and "FROM ManagedContentSpace WHERE Name" in query:
            return httpx.Response(200, json={"totalSize": len(self.workspace_records),
                                             "records": self.workspace_records})
        if path == f"{DATA_PATH}/connect/cms/delivery/channels":
            return self.channels_route(request)

        return httpx.Response(
            404, json=[{"errorCode": "NOT_FOUND", "message": f"No route {request.method} {path}"}]
        )


@pytest.fixture
def private_key_path(tmp_path: Path) -> Path:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    path = tmp_path / "server.key"
    path.write_bytes(pem)
    return path


@pytest.fixture
def api_config(private_key_path: Path) -> APIConfiguration:
    return APIConfiguration(
        instance_url=INSTANCE_URL,
        client_id="3MVG9-test-client",
        username="integration@example.com",
        private_key_path=private_key_path,
        workspace_name="Marketing",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sf() -> FakeSalesforce:
    return FakeSalesforce()


@pytest.fixture
def cms_client(api_config: APIConfiguration, fake_sf: FakeSalesforce, clock: FakeClock) -> SalesforceCMSClient:
    return SalesforceCMSClient(api_config, transport=fake_sf.transport, clock=clock)
