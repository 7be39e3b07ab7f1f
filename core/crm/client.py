"""
Salesforce REST Client

Thin wrapper over the Salesforce REST and OAuth 2.0 web-server flow:
authorization URL, code and refresh-token exchange, SOQL query, sObject
create and update. One connection (one access token) is shared by every
request the backend serves.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Final, Optional
from urllib.parse import urlencode

import requests


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

REQUEST_TIMEOUT_SECONDS: Final[int] = 30
DEFAULT_SCOPE: Final[str] = "full refresh_token"
DUPLICATE_RULE_HEADER: Final[dict[str, str]] = {
    "Sforce-Duplicate-Rule-Header": "allowSave=true"
}


# =============================================================================
# Errors
# =============================================================================


class CrmError(Exception):
    """
    Raised when Salesforce rejects a call.

    `errors` holds the structured error list returned by the REST API
    ({"message", "errorCode", "fields"}); `message` joins their messages.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[list[dict]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(message)

    @property
    def error_codes(self) -> list[str]:
        return [e.get("errorCode", "") for e in self.errors if isinstance(e, dict)]

    @property
    def messages(self) -> list[str]:
        if not self.errors:
            return [self.message]
        return [
            str(e.get("message", "")) if isinstance(e, dict) else str(e)
            for e in self.errors
        ]

    @classmethod
    def from_response(cls, response: requests.Response) -> "CrmError":
        """Build an error from a failed REST response."""
        try:
            body = response.json()
        except ValueError:
            body = response.text

        errors: list[dict] = []
        if isinstance(body, list):
            errors = [e if isinstance(e, dict) else {"message": str(e)} for e in body]
        elif isinstance(body, dict):
            if "error_description" in body or "error" in body:
                errors = [{
                    "message": body.get("error_description") or body.get("error"),
                    "errorCode": body.get("error", ""),
                }]
            else:
                errors = [body]
        elif body:
            errors = [{"message": str(body)}]

        message = "; ".join(str(e.get("message", "")) for e in errors) or (
            f"Salesforce request failed with status {response.status_code}"
        )
        error_cls = CrmAuthenticationError if response.status_code == 401 else cls
        return error_cls(message, status_code=response.status_code, errors=errors)


class CrmAuthenticationError(CrmError):
    """Raised when there is no valid Salesforce session."""


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SaveResult:
    """Outcome of an sObject create."""

    id: Optional[str]
    success: bool
    errors: list = field(default_factory=list)


# =============================================================================
# Connection
# =============================================================================


class SalesforceConnection:
    """
    OAuth-authenticated Salesforce connection.

    The access token is obtained through the web-server flow (`authorize`)
    or bootstrapped from a stored refresh token (`refresh`).
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        login_url: str = "https://login.salesforce.com",
        api_version: str = "59.0",
        instance_url: Optional[str] = None,
        refresh_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.login_url = login_url.rstrip("/")
        self.api_version = api_version
        self.instance_url = (instance_url or "").rstrip("/") or None
        self.refresh_token = refresh_token or None
        self.access_token: Optional[str] = None
        self._session = session or requests.Session()
        self._lock = threading.Lock()

    @property
    def is_authenticated(self) -> bool:
        """True once an access token has been obtained."""
        return bool(self.access_token)

    # =========================================================================
    # OAuth
    # =========================================================================

    def authorization_url(self, scope: str = DEFAULT_SCOPE) -> str:
        """URL the user is redirected to for the Salesforce login."""
        query = urlencode({
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": scope,
        })
        return f"{self.login_url}/services/oauth2/authorize?{query}"

    def authorize(self, code: str) -> dict:
        """Exchange an authorization code for tokens."""
        return self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
        })

    def refresh(self) -> dict:
        """Obtain a fresh access token from the stored refresh token."""
        if not self.refresh_token:
            raise CrmAuthenticationError("No refresh token configured")
        return self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        })

    def _token_request(self, data: dict) -> dict:
        response = self._session.post(
            f"{self.login_url}/services/oauth2/token",
            data=data,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        if not response.ok:
            error = CrmError.from_response(response)
            raise CrmAuthenticationError(
                error.message, status_code=response.status_code, errors=error.errors
            )

        payload = response.json()
        with self._lock:
            self.access_token = payload["access_token"]
            self.instance_url = payload.get("instance_url", self.instance_url)
            if payload.get("refresh_token"):
                self.refresh_token = payload["refresh_token"]
        logger.info("Salesforce session established for %s", self.instance_url)
        return payload

    def logout(self) -> None:
        """Forget the access token."""
        with self._lock:
            self.access_token = None

    # =========================================================================
    # REST
    # =========================================================================

    def _data_url(self, path: str) -> str:
        return f"{self.instance_url}/services/data/v{self.api_version}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        if not self.is_authenticated or not self.instance_url:
            raise CrmAuthenticationError("Not authenticated with Salesforce")

        response = self._send(method, path, headers, **kwargs)
        if response.status_code == 401 and self.refresh_token:
            # Expired access token: renew once from the refresh token and retry
            logger.info("Salesforce session expired, refreshing")
            try:
                self.refresh()
            except (CrmError, requests.RequestException) as e:
                logger.warning("Salesforce session refresh failed: %s", e)
            else:
                response = self._send(method, path, headers, **kwargs)

        if response.status_code == 401:
            # The token is useless until a new login
            self.logout()
        if not response.ok:
            raise CrmError.from_response(response)
        return response

    def _send(
        self,
        method: str,
        path: str,
        headers: Optional[dict[str, str]],
        **kwargs: Any,
    ) -> requests.Response:
        request_headers = {"Authorization": f"Bearer {self.access_token}"}
        if headers:
            request_headers.update(headers)
        return self._session.request(
            method,
            self._data_url(path),
            headers=request_headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
            **kwargs,
        )

    def query(self, soql: str) -> list[dict]:
        """Run a SOQL query and return its records."""
        response = self._request("GET", "query", params={"q": soql})
        return response.json().get("records", [])

    def create(
        self,
        sobject: str,
        record: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
    ) -> SaveResult:
        """Create one record."""
        response = self._request(
            "POST", f"sobjects/{sobject}/", json=record, headers=headers
        )
        body = response.json()
        return SaveResult(
            id=body.get("id"),
            success=bool(body.get("success")),
            errors=body.get("errors") or [],
        )

    def update(self, sobject: str, record_id: str, fields: dict[str, Any]) -> None:
        """Update fields of one record."""
        self._request("PATCH", f"sobjects/{sobject}/{record_id}", json=fields)


# =============================================================================
# Singleton Instance
# =============================================================================

_connection_instance: Optional[SalesforceConnection] = None


def get_crm_connection() -> SalesforceConnection:
    """
    Get the shared Salesforce connection.

    Built from configuration on first call.
    """
    global _connection_instance
    if _connection_instance is None:
        from utils.config import get_config

        config = get_config()
        _connection_instance = SalesforceConnection(
            client_id=config.salesforce_client_id,
            client_secret=config.salesforce_client_secret,
            redirect_uri=config.oauth_redirect_uri,
            login_url=config.salesforce_login_url,
            api_version=config.salesforce_api_version,
            instance_url=config.salesforce_instance_url,
            refresh_token=config.salesforce_refresh_token,
        )
    return _connection_instance


def set_crm_connection(connection: Optional[SalesforceConnection]) -> None:
    """Replace the shared connection (for testing)."""
    global _connection_instance
    _connection_instance = connection
