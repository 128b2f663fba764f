"""Authorized Google API service objects for Sheets and Calendar."""

import logging
from typing import Any

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/calendar",
]


def _authorized_http(token_path: str, timeout: float) -> AuthorizedHttp:
    """HTTP transport carrying the stored OAuth token, with a request timeout."""
    credentials = Credentials.from_authorized_user_file(token_path, SCOPES)
    return AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))


def build_sheets_service(token_path: str, timeout: float) -> Any:
    service = build(
        "sheets", "v4", http=_authorized_http(token_path, timeout), cache_discovery=False,
    )
    logger.info("Google Sheets client ready")
    return service


def build_calendar_service(token_path: str, timeout: float) -> Any:
    service = build(
        "calendar", "v3", http=_authorized_http(token_path, timeout), cache_discovery=False,
    )
    logger.info("Google Calendar client ready")
    return service
