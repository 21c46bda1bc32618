"""Tool-level operations behind the MCP server.

Each handler takes an explicit ToolContext plus the tool arguments and
returns the text payload for the MCP result. Errors propagate as
SFCMSError subclasses; the server turns them into error-flagged results
with format_error().
"""

import json
from dataclasses import dataclass
from typing import Any

from .clearance import CLEARANCE_TTL, ClearanceRegistry, requires_clearance
from .client import SalesforceCMSClient
from .models import (
    EMAIL_BLOCK_FIELD,
    EMAIL_CONTENT_TYPE,
    ClearanceError,
    ContentDescriptor,
    SFCMSError,
    ValidationError,
    ValidationReport,
)
from .validation import BLOCK_TREE_RULES, validate_block_tree

EMAIL_REQUIRED_READING = (
    "get_cms_types: confirm the sfdc_cms__email content type and its body fields",
    "get_cms_content: read an existing email (by id or content key) and copy its "
    "sfdc_cms:block layout instead of inventing one",
    "validate_email_structure: check your block tree before create_cms_content",
)


@dataclass(frozen=True)
class ToolContext:
    """Per-process dependencies shared by every tool call."""

    client: SalesforceCMSClient
    clearance: ClearanceRegistry


def json_dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def format_error(error: Exception) -> str:
    """Human-readable error text, with remote status and body when present."""
    if isinstance(error, SFCMSError):
        lines = [f"❌ Error: {error.message}"]
        if error.status_code is not None:
            lines.append(f"Status: {error.status_code}")
        if error.body is not None:
            lines.append("")
            lines.append(f"Details: {json_dump(error.body)}")
        else:
            lines.append("")
            lines.append("Details: No additional details")
        return "\n".join(lines)
    return f"❌ Error: {type(error).__name__}: {error}"


def format_report(report: ValidationReport) -> str:
    lines = ["✅ Block tree is structurally valid" if report.valid
             else f"⚠️ Block tree has {len(report.violations)} violation(s)"]
    for violation in report.violations:
        lines.append(f"  - {violation}")
    if report.warnings:
        lines.append("Warnings:")
        for warning in report.warnings:
            lines.append(f"  - {warning}")
    return "\n".join(lines)


async def list_content(ctx: ToolContext, limit: int = 10) -> str:
    items = await ctx.client.list_content(limit)
    return json_dump(items)


async def get_content(ctx: ToolContext, identifier: str) -> str:
    content = await ctx.client.get_content(identifier)
    return json_dump(content)


async def search_content(ctx: ToolContext, search_term: str, limit: int = 10) -> str:
    items = await ctx.client.search_content(search_term, limit)
    return json_dump(items)


async def get_types(ctx: ToolContext) -> str:
    types = await ctx.client.get_content_types()
    return json_dump(types)


async def get_workspace(ctx: ToolContext) -> str:
    workspace = await ctx.client.get_workspace_details()
    session = ctx.client.session
    return json_dump({
        "workspace": workspace,
        "workspace_id": session.workspace_id,
        "channel_id": session.channel_id,
    })


async def get_api_resources(ctx: ToolContext) -> str:
    resources = await ctx.client.get_available_resources()
    return json_dump(resources)


def preflight_email(ctx: ToolContext) -> str:
    """Issue a single-use clearance token for email creation."""
    entry = ctx.clearance.issue(EMAIL_CONTENT_TYPE)
    lines = [
        "✅ Clearance token issued for email creation",
        f"Token: {entry.token}",
        f"Valid for {int(CLEARANCE_TTL // 60)} minutes, single use.",
        "",
        "Before calling create_cms_content, read:",
        *[f"  - {ref}" for ref in EMAIL_REQUIRED_READING],
        "",
        "Block tree rules (contentBody['sfdc_cms:block']):",
        *[f"  {idx}. {rule}" for idx, rule in enumerate(BLOCK_TREE_RULES, start=1)],
        "",
        "Then call create_cms_content(content_type='sfdc_cms__email', ..., "
        "clearance_token='<token>').",
    ]
    return "\n".join(lines)


def validate_structure(block_tree: dict[str, Any] | str) -> str:
    report = validate_block_tree(block_tree)
    return format_report(report) + "\n\n" + json_dump(report.model_dump())


async def create_content(
    ctx: ToolContext,
    content_type: str,
    title: str | None = None,
    content_key: str | None = None,
    content_body: dict[str, Any] | None = None,
    clearance_token: str | None = None,
) -> str:
    """Create content, enforcing the clearance gate for gated content types.

    The token is consumed before the create request is sent. Block-tree
    validation of email bodies is advisory and never blocks creation.
    """
    descriptor = ContentDescriptor(
        content_type=content_type,
        title=title,
        content_key=content_key,
        content_body=content_body or {},
    )

    report: ValidationReport | None = None
    if requires_clearance(content_type):
        if not ctx.clearance.consume(clearance_token, content_type):
            raise ClearanceError(
                f"Creating {content_type} content requires a valid clearance token. "
                "The token is missing, already used or expired. "
                "Call preflight_email_creation to get a new one."
            )
        block = descriptor.content_body.get(EMAIL_BLOCK_FIELD)
        if block is not None:
            try:
                report = validate_block_tree(block)
            except ValidationError as err:
                report = ValidationReport(valid=False, violations=[err.message])

    result = await ctx.client.create_content(descriptor)

    lines = [
        "✅ Content created successfully!",
        f"Content ID: {result.get('id') or result.get('managedContentId')}",
        f"Title: {result.get('title') or title}",
    ]
    if report is not None:
        lines.append("")
        lines.append(format_report(report))
    lines.append("")
    lines.append(f"Full response:\n{json_dump(result)}")
    return "\n".join(lines)


async def update_content(ctx: ToolContext, content_id: str, content_body: dict[str, Any]) -> str:
    result = await ctx.client.update_content_body(content_id, content_body)
    return f"✅ Content updated successfully!\n\n{json_dump(result)}"


async def update_metadata(ctx: ToolContext, content_id: str, metadata: dict[str, Any]) -> str:
    result = await ctx.client.update_content_metadata(content_id, metadata)
    return f"✅ Content metadata updated successfully!\n\n{json_dump(result)}"


async def publish_content(ctx: ToolContext, content_id: str) -> str:
    await ctx.client.publish_content(content_id)
    return f"✅ Content published successfully!\nContent ID: {content_id}"


async def delete_content(ctx: ToolContext, content_id: str) -> str:
    await ctx.client.delete_content(content_id)
    return f"✅ Content deleted successfully!\nContent ID: {content_id}"
