"""Salesforce CMS API client package."""

from .api_client import SalesforceCMSClient
from .session import SalesforceSession, SessionManager

__all__ = ["SalesforceCMSClient", "SalesforceSession", "SessionManager"]
