"""Response handling and stderr logging shared by the session and CMS clients."""

import json
import sys
from datetime import datetime
from typing import Any

import httpx

from ..models import AuthenticationError, NotFoundError, RemoteError


def log_event(message: str, component: str = "CMS") -> None:
    """Log an event to stderr with timestamp and component tag.

    Plain print to stderr surfaces reliably in the MCP connector console,
    where library logging is often swallowed by the host.
    """
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        return response.text or None


def error_message(body: Any, default: str) -> str:
    """Pull a human-readable message out of a Salesforce error body.

    Connect/REST errors arrive as ``[{"message": ..., "errorCode": ...}]``,
    OAuth errors as ``{"error": ..., "error_description": ...}``.
    """
    if isinstance(body, list) and body and isinstance(body[0], dict):
        first = body[0]
        message = first.get("message")
        code = first.get("errorCode")
        if message and code:
            return f"{code}: {message}"
        if message:
            return str(message)
    if isinstance(body, dict):
        if body.get("error_description"):
            return f"{body.get('error', 'error')}: {body['error_description']}"
        for key in ("message", "error"):
            if body.get(key):
                return str(body[key])
    if isinstance(body, str) and body.strip():
        return body.strip()[:500]
    return default


def handle_response(response: httpx.Response, operation: str) -> Any:
    """Return the decoded JSON body or raise the matching error.

    Empty 2xx bodies (204 on PATCH/DELETE/publish) decode to ``None``.
    """
    status = response.status_code

    if status >= 400:
        body = _response_body(response)
        message = error_message(body, f"HTTP {status}")
        if status == 401:
            raise AuthenticationError(f"{operation}: unauthorized ({message})", status, body)
        if status == 404:
            raise NotFoundError(f"{operation}: not found ({message})", status, body)
        raise RemoteError(f"{operation} failed: {message}", status, body)

    if status == 204 or not response.content:
        return None

    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as err:
        raise RemoteError(
            f"{operation}: invalid response format from API", status, response.text[:500]
        ) from err
