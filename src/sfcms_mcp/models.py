"""Data models and exceptions for the Salesforce CMS MCP server."""

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Content type gated behind the preflight/clearance workflow
EMAIL_CONTENT_TYPE = "sfdc_cms__email"

# Email content body keys
EMAIL_TITLE_FIELD = "sfdc_cms:title"
EMAIL_BLOCK_FIELD = "sfdc_cms:block"


class APIConfiguration(BaseModel):
    """Resolved identity and connection settings for one Salesforce org."""

    instance_url: str
    client_id: str
    username: str
    private_key_path: Path
    workspace_name: str
    api_version: str = "v61.0"
    login_url: str | None = None
    timeout: float = 30.0

    @property
    def auth_endpoint(self) -> str:
        """Login host used as JWT audience and token endpoint host."""
        if self.login_url:
            return self.login_url.rstrip("/")
        if "sandbox" in self.instance_url:
            return "https://test.salesforce.com"
        return "https://login.salesforce.com"


class TokenResponse(BaseModel):
    """OAuth token endpoint response (JWT bearer grant)."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    instance_url: str
    token_type: str | None = None
    issued_at: str | None = None
    expires_in: int | None = None


class ChannelRecord(BaseModel):
    """One entry of /connect/cms/delivery/channels."""

    model_config = ConfigDict(extra="ignore")

    channel_id: str = Field(validation_alias=AliasChoices("channelId", "id"))
    workspace_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("managedContentSpaceId", "contentSpaceId"),
    )
    name: str | None = Field(default=None, validation_alias=AliasChoices("channelName", "name"))


class ContentSummary(BaseModel):
    """Search/list item with the fields needed to resolve a content key."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("managedContentId", "id", "contentId"),
    )
    content_key: str | None = Field(default=None, validation_alias=AliasChoices("contentKey", "key"))
    title: str | None = None
    content_type: str | None = Field(default=None, validation_alias=AliasChoices("contentType", "type"))


class ContentDescriptor(BaseModel):
    """Generic input record for creating a CMS content item."""

    content_type: str
    title: str | None = None
    content_key: str | None = None
    content_body: dict[str, Any] = Field(default_factory=dict)
    container_id: str | None = None

    @property
    def is_email(self) -> bool:
        return self.content_type == EMAIL_CONTENT_TYPE


class ContentNode(BaseModel):
    """One node of an email block tree (root -> section -> column -> component)."""

    model_config = ConfigDict(extra="allow")

    id: str = ""
    definition: str = ""
    attributes: dict[str, Any] | None = None
    children: list["ContentNode"] = Field(default_factory=list)


class ValidationReport(BaseModel):
    """Outcome of a structural validation pass."""

    valid: bool
    violations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SFCMSError(Exception):
    """Base error carrying optional remote status and body."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class ConfigError(SFCMSError):
    """Missing or unreadable configuration."""


class AuthenticationError(SFCMSError):
    """Token exchange, signing or authorization failure."""


class NotFoundError(SFCMSError):
    """Workspace, channel or content lookup miss."""


class ClearanceError(SFCMSError):
    """Missing, consumed, expired or mismatched clearance token."""


class ValidationError(SFCMSError):
    """Input that cannot be interpreted as a block tree at all."""


class RemoteError(SFCMSError):
    """Non-2xx response from the content API, or a transport failure."""
