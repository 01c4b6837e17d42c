"""Identity provider client - verifies bearer tokens issued by the hosted auth service"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class InvalidCredentials(Exception):
    """Token is missing, malformed, expired or revoked"""
    pass


class IdentityProviderUnavailable(Exception):
    """The identity provider could not be reached"""
    pass


@dataclass
class AuthenticatedUser:
    id: str
    email: str = ""


class IdentityClient:
    """
    Resolves an access token to a user by calling the provider's
    ``GET /auth/v1/user`` endpoint with the service API key.
    """

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def verify_token(self, token: str) -> AuthenticatedUser:
        if not token:
            raise InvalidCredentials("No authorization token provided")
        if not self.base_url:
            raise IdentityProviderUnavailable("Identity provider URL is not configured")

        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            response = await self._client.get(f"{self.base_url}/auth/v1/user", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Identity provider request failed: {e}")
            raise IdentityProviderUnavailable(str(e)) from e

        if response.status_code in (400, 401, 403, 404):
            raise InvalidCredentials("Invalid or expired token")
        if response.status_code >= 400:
            raise IdentityProviderUnavailable(f"Identity provider returned {response.status_code}")

        data = response.json()
        user_id = data.get("id")
        if not user_id:
            raise InvalidCredentials("Invalid or expired token")
        return AuthenticatedUser(id=str(user_id), email=data.get("email") or "")

    async def aclose(self) -> None:
        await self._client.aclose()
