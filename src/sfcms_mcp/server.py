"""Salesforce CMS MCP server implementation using FastMCP."""

import logging
from contextlib import asynccontextmanager
import inspect
from typing import Any, Callable

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from . import __version__, tool_handlers
from .clearance import ClearanceRegistry
from .client import SalesforceCMSClient
from .config import ServerConfig, setup_logging
from .models import SFCMSError
from .tool_handlers import ToolContext, format_error

logger = logging.getLogger(__name__)

# Process-wide tool context, built by the lifespan
_context: ToolContext | None = None


def get_context() -> ToolContext:
    """Get the tool context for the running server."""
    if _context is None:
        raise RuntimeError("Salesforce CMS client not initialized. Server not started properly.")
    return _context


def build_context(config: ServerConfig) -> ToolContext:
    """Validate configuration and construct the client and clearance registry.

    Raises ConfigError before any network call when required settings are missing.
    """
    api_config = config.get_api_config()
    return ToolContext(
        client=SalesforceCMSClient(api_config),
        clearance=ClearanceRegistry(),
    )


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    global _context

    logger.info("Starting Salesforce CMS MCP server")

    config = ServerConfig()  # type: ignore[call-arg]
    try:
        _context = build_context(config)
    except SFCMSError as e:
        logger.error(format_error(e))
        raise

    logger.info(
        f"Client initialized for {_context.client.config.instance_url} "
        f"(workspace '{_context.client.config.workspace_name}', {_context.client.config.api_version})"
    )

    try:
        yield
    finally:
        logger.info("Shutting down Salesforce CMS MCP server")
        await _context.client.close()
        _context = None


mcp = FastMCP(
    "Salesforce CMS MCP Server",
    version=__version__,
    instructions=(
        "MCP server for Salesforce CMS content. Email content (sfdc_cms__email) "
        "requires preflight_email_creation before create_cms_content."
    ),
    lifespan=lifespan,
)


async def _run(tool_name: str, call: Callable[[], Any]) -> str:
    """Invoke a handler and turn any failure into an error-flagged tool result.

    ``call`` is evaluated inside the try block so a missing server context
    is reported the same way as a handler failure.
    """
    try:
        result = call()
        if inspect.isawaitable(result):
            result = await result
        return result
    except SFCMSError as e:
        logger.warning(f"{tool_name} failed: {e.message}")
        raise ToolError(format_error(e)) from e
    except Exception as e:  # noqa: BLE001
        logger.exception(f"{tool_name} failed unexpectedly")
        raise ToolError(format_error(e)) from e


@mcp.tool(name="list_cms_content", description="List content items in the Salesforce CMS workspace")
async def list_cms_content(limit: int = 10) -> str:
    """List content items.

    Args:
        limit: Maximum number of items to return (default 10)
    """
    return await _run("list_cms_content", lambda: tool_handlers.list_content(get_context(), limit))


@mcp.tool(
    name="get_cms_content",
    description="Get detailed information about a CMS content item by ID or ContentKey",
)
async def get_cms_content(identifier: str) -> str:
    """Get one content item.

    Args:
        identifier: Content ID or ContentKey (e.g. MCWV26UCUUYNAFNP3Y53CVWGE23E)
    """
    return await _run("get_cms_content", lambda: tool_handlers.get_content(get_context(), identifier))


@mcp.tool(name="search_cms_content", description="Search published CMS content by free text")
async def search_cms_content(search_term: str, limit: int = 10) -> str:
    """Search content through the workspace delivery channel.

    Args:
        search_term: Free-text search term
        limit: Maximum number of items to return (default 10)
    """
    return await _run(
        "search_cms_content", lambda: tool_handlers.search_content(get_context(), search_term, limit)
    )


@mcp.tool(name="get_cms_types", description="List all available content types in the CMS")
async def get_cms_types() -> str:
    return await _run("get_cms_types", lambda: tool_handlers.get_types(get_context()))


@mcp.tool(
    name="get_cms_workspace",
    description="Show the configured CMS workspace record and its resolved channel id",
)
async def get_cms_workspace() -> str:
    return await _run("get_cms_workspace", lambda: tool_handlers.get_workspace(get_context()))


@mcp.tool(
    name="get_cms_api_resources",
    description="List the Salesforce REST API resources available for the configured API version",
)
async def get_cms_api_resources() -> str:
    return await _run(
        "get_cms_api_resources", lambda: tool_handlers.get_api_resources(get_context())
    )


@mcp.tool(
    name="preflight_email_creation",
    description=(
        "REQUIRED before creating sfdc_cms__email content. Returns a single-use clearance "
        "token (valid 30 minutes) and the material to read before building the email."
    ),
)
async def preflight_email_creation() -> str:
    return await _run("preflight_email_creation", lambda: tool_handlers.preflight_email(get_context()))


@mcp.tool(
    name="validate_email_structure",
    description=(
        "Check an email block tree (root -> lightning/section -> lightning/column -> components) "
        "and report every structural violation"
    ),
)
async def validate_email_structure(block_tree: dict[str, Any] | str) -> str:
    """Validate a block tree without creating anything.

    Args:
        block_tree: Root node {id, definition, attributes, children}
    """
    return await _run(
        "validate_email_structure", lambda: tool_handlers.validate_structure(block_tree)
    )


@mcp.tool(name="create_cms_content", description="Create new content in Salesforce CMS")
async def create_cms_content(
    content_type: str,
    title: str | None = None,
    content_key: str | None = None,
    content_body: dict[str, Any] | None = None,
    clearance_token: str | None = None,
) -> str:
    """Create a content item.

    Args:
        content_type: Content type (e.g. news, sfdc_cms__email)
        title: Content title (copied into sfdc_cms:title for emails)
        content_key: Unique API name for the content
        content_body: Content body fields
        clearance_token: Token from preflight_email_creation (required for sfdc_cms__email)
    """
    return await _run(
        "create_cms_content",
        lambda: tool_handlers.create_content(
            get_context(),
            content_type,
            title=title,
            content_key=content_key,
            content_body=content_body,
            clearance_token=clearance_token,
        ),
    )


@mcp.tool(name="update_cms_content", description="Update existing CMS content body")
async def update_cms_content(content_id: str, content_body: dict[str, Any]) -> str:
    return await _run(
        "update_cms_content", lambda: tool_handlers.update_content(get_context(), content_id, content_body)
    )


@mcp.tool(
    name="update_cms_metadata",
    description="Update CMS content metadata fields (title, apiName, ...) without touching the body",
)
async def update_cms_metadata(content_id: str, metadata: dict[str, Any]) -> str:
    return await _run(
        "update_cms_metadata", lambda: tool_handlers.update_metadata(get_context(), content_id, metadata)
    )


@mcp.tool(name="publish_cms_content", description="Publish CMS content to make it live")
async def publish_cms_content(content_id: str) -> str:
    return await _run(
        "publish_cms_content", lambda: tool_handlers.publish_content(get_context(), content_id)
    )


@mcp.tool(name="delete_cms_content", description="Delete CMS content")
async def delete_cms_content(content_id: str) -> str:
    return await _run(
        "delete_cms_content", lambda: tool_handlers.delete_content(get_context(), content_id)
    )


def main() -> None:
    """Console entry point: configure logging and serve over stdio."""
    setup_logging(ServerConfig().log_level)  # type: ignore[call-arg]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
