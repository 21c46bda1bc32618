"""Salesforce CMS API client implementation."""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..models import (
    EMAIL_TITLE_FIELD,
    AuthenticationError,
    ConfigError,
    ContentDescriptor,
    ContentSummary,
    SFCMSError,
)
from .api_client_core import SalesforceCMSClientCore
from .responses import log_event
from .session import soql_quote

CONTENTS_PATH = "/connect/cms/contents"

# Rows requested when resolving a content key through search
KEY_LOOKUP_PAGE_SIZE = 25


def _extract_items(payload: Any, *keys: str) -> list[dict[str, Any]]:
    """Return the first list found under ``keys``, or the payload itself if it is a list."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            items = payload.get(key)
            if isinstance(items, list):
                return items
    return []


class SalesforceCMSClient(SalesforceCMSClientCore):
    """Content operations over the Connect, Delivery and Tooling APIs."""

    async def list_content(self, limit: int = 10) -> list[dict[str, Any]]:
        """List content in the workspace via the Enhanced CMS items/search endpoint."""
        session = await self.session_manager.ensure_authenticated()
        data = await self._request(
            "GET",
            "/connect/cms/items/search",
            "list content",
            params={
                "contentSpaceOrFolderIds": session.workspace_id,
                "queryTerm": "*",
                "pageSize": limit,
            },
        )
        return _extract_items(data, "items", "managedContentItems")

    async def search_content(self, search_term: str, limit: int = 10) -> list[dict[str, Any]]:
        """Search published content through the delivery channel."""
        session = await self.session_manager.ensure_authenticated()
        data = await self._request(
            "GET",
            f"/connect/cms/delivery/channels/{session.channel_id}/contents/search",
            "search content",
            params={"searchTerm": search_term, "pageSize": limit},
        )
        return _extract_items(data, "items")

    async def _resolve_content_key(self, identifier: str) -> str | None:
        """Map a content key (e.g. MCWV26UC...) to the internal content id, if search finds it."""
        items = await self.search_content(identifier, limit=KEY_LOOKUP_PAGE_SIZE)
        for item in items:
            summary = ContentSummary.model_validate(item)
            if summary.content_key == identifier and summary.id:
                return summary.id
        return None

    async def get_content(self, identifier: str) -> dict[str, Any]:
        """Get full content detail by internal id or content key.

        The identifier is first tried as a content key; when search resolves
        it, the detail fetch uses the internal id. Any failure in that lookup
        falls back to using the identifier as given; authentication and
        configuration failures are raised instead.
        """
        content_id = identifier
        try:
            resolved = await self._resolve_content_key(identifier)
            if resolved:
                log_event(f"Resolved content key {identifier} -> {resolved}", "CMS")
                content_id = resolved
        except (AuthenticationError, ConfigError):
            raise
        except (SFCMSError, PydanticValidationError) as err:
            log_event(f"Content key lookup for {identifier} failed ({err}); using it as id", "CMS")

        return await self._request("GET", f"{CONTENTS_PATH}/{content_id}", "get content")

    def build_create_payload(self, descriptor: ContentDescriptor, workspace_id: str | None) -> dict[str, Any]:
        """Assemble the POST /connect/cms/contents body for a descriptor."""
        body = dict(descriptor.content_body)
        payload: dict[str, Any] = {
            "contentSpaceOrFolderId": descriptor.container_id or workspace_id,
            "contentType": descriptor.content_type,
            "contentBody": body,
        }
        if descriptor.content_key:
            payload["apiName"] = descriptor.content_key

        if descriptor.is_email and descriptor.title and not body.get(EMAIL_TITLE_FIELD):
            body[EMAIL_TITLE_FIELD] = descriptor.title

        return payload

    async def create_content(self, descriptor: ContentDescriptor) -> dict[str, Any]:
        """Create a content item and return the created resource as sent back by the API."""
        session = await self.session_manager.ensure_authenticated()
        payload = self.build_create_payload(descriptor, session.workspace_id)
        data = await self._request("POST", CONTENTS_PATH, "create content", json=payload)
        log_event(f"Created {descriptor.content_type} content {(data or {}).get('id')}", "CMS")
        return data or {}

    async def update_content_body(self, content_id: str, content_body: dict[str, Any]) -> dict[str, Any]:
        data = await self._request(
            "PATCH", f"{CONTENTS_PATH}/{content_id}", "update content body",
            json={"contentBody": content_body},
        )
        return data or {}

    async def update_content_metadata(self, content_id: str, metadata: dict[str, Any]) -> dict[str, Any]:
        data = await self._request(
            "PATCH", f"{CONTENTS_PATH}/{content_id}", "update content metadata", json=metadata
        )
        return data or {}

    async def get_content_types(self) -> list[dict[str, Any]]:
        """List managed content types via the Tooling API."""
        data = await self._request(
            "GET",
            "/query/",
            "get content types",
            tooling=True,
            params={"q": "SELECT Id, DeveloperName, MasterLabel, Description FROM ManagedContentType"},
        )
        return _extract_items(data, "records")

    async def get_workspace_details(self) -> dict[str, Any] | None:
        """Fetch the workspace record, including whether it is an Enhanced CMS space."""
        session = await self.session_manager.ensure_authenticated()
        data = await self._request(
            "GET",
            "/query/",
            "get workspace details",
            params={
                "q": "SELECT Id, Name, IsEnhanced FROM ManagedContentSpace "
                f"WHERE Id = '{soql_quote(session.workspace_id or '')}'"
            },
        )
        records = _extract_items(data, "records")
        return records[0] if records else None

    async def get_available_resources(self) -> dict[str, Any]:
        """Return the REST API resource directory for the configured version."""
        data = await self._request("GET", "", "get available resources")
        return data or {}

    async def publish_content(self, content_id: str) -> bool:
        await self._request("POST", f"{CONTENTS_PATH}/{content_id}/publish", "publish content")
        log_event(f"Published content {content_id}", "CMS")
        return True

    async def delete_content(self, content_id: str) -> bool:
        await self._request("DELETE", f"{CONTENTS_PATH}/{content_id}", "delete content")
        log_event(f"Deleted content {content_id}", "CMS")
        return True
