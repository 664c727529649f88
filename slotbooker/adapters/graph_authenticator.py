"""
Microsoft Graph API authentication using MSAL (Client Credentials Flow).
"""

from __future__ import annotations

import logging
from typing import List, Optional

import msal
import requests

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class GraphAuthenticator:
    """
    Handles app-only authentication with Microsoft Graph API.

    The booking service runs unattended, so it uses the client credentials
    flow instead of a user sign-in:
    1. App presents its client ID and secret to the tenant authority
    2. Authority returns an application access token
    3. MSAL keeps the token in its in-memory cache until shortly before expiry

    One instance is created at process start and shared by every request.
    """

    DEFAULT_SCOPE = "https://graph.microsoft.com/.default"

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        client_secret: str,
        scope: str | None = None,
        authority_url: str | None = None,
        app: Optional[msal.ConfidentialClientApplication] = None,
        timeout: float | None = None
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            client_secret: Application client secret
            scope: Resource scope, defaults to the Graph ``.default`` scope
            authority_url: Optional custom authority URL
            app: Optional pre-built MSAL application (used by tests)
            timeout: Optional HTTP timeout for token requests
        """
        self.client_id = client_id
        self.tenant_id = tenant_id
        self._client_secret = client_secret
        self.scopes: List[str] = [scope or self.DEFAULT_SCOPE]
        self.timeout = timeout

        # Build authority URL
        if authority_url:
            self.authority = authority_url
        else:
            self.authority = f"https://login.microsoftonline.com/{tenant_id}"

        # MSAL contacts the authority while constructing the application, so
        # it is built on first use rather than at process start.
        self._app = app

    def _get_app(self) -> msal.ConfidentialClientApplication:
        if self._app is None:
            if not (self.client_id and self.tenant_id and self._client_secret):
                raise AuthenticationError("Missing Microsoft Graph configuration")

            try:
                self._app = msal.ConfidentialClientApplication(
                    client_id=self.client_id,
                    client_credential=self._client_secret,
                    authority=self.authority,
                    timeout=self.timeout,
                )
            except (ValueError, requests.exceptions.RequestException) as exc:
                raise AuthenticationError(f"Could not initialise MSAL application: {exc}") from exc

        return self._app

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid application access token.

        Args:
            force_refresh: Drop any cached token and request a new one

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the token request fails
        """
        app = self._get_app()

        if force_refresh:
            self.clear_cache()

        try:
            result = app.acquire_token_for_client(scopes=self.scopes)
        except (ValueError, requests.exceptions.RequestException) as exc:
            logger.error("Token request to %s failed: %s", self.authority, exc)
            raise AuthenticationError(f"Token request failed: {exc}") from exc

        if not result or "access_token" not in result:
            error = (result or {}).get("error_description") or (result or {}).get("error", "Unknown error")
            logger.error("Token request rejected: %s", error)
            raise AuthenticationError(f"Authentication failed: {error}")

        logger.debug("Obtained Microsoft Graph token (source=%s)", result.get("token_source", "unknown"))
        return result["access_token"]

    def clear_cache(self) -> None:
        """Drop cached tokens so the next call requests a fresh one."""
        if self._app is None:
            return

        cache = self._app.token_cache
        for token in cache.find(msal.TokenCache.CredentialType.ACCESS_TOKEN):
            cache.remove_at(token)
