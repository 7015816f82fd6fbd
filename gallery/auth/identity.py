"""
    Resolution of the calling user. Authentication itself happens at an
    external identity provider; this module only asks it who a token belongs to.
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging

import httpx
from fastapi import Request
from pydantic import BaseModel, ValidationError

from gallery.settings import Settings

log = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"

class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None

def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()

class IdentityProvider(ABC):
    @abstractmethod
    async def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        """Returns the caller, or None when the request is not authenticated."""

    async def close(self):
        pass

class RemoteIdentityProvider(IdentityProvider):
    """Asks the provider's "get current user" endpoint about the bearer token."""

    def __init__(self, user_url: str, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.user_url = user_url
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        token = bearer_token(request)
        if not token:
            return None
        try:
            response = await self.client.get(self.user_url, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as e:
            log.error("Identity provider unreachable: %s", e)
            return None
        if response.status_code != 200:
            log.info("Identity provider rejected token (status %s)", response.status_code)
            return None
        try:
            return CurrentUser.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            log.error("Unexpected identity provider payload: %s", e)
            return None

    async def close(self):
        await self.client.aclose()

class HeaderIdentityProvider(IdentityProvider):
    """Trusts a user id header set by a fronting gateway. Development only."""

    async def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        user_id = request.headers.get(USER_HEADER, "").strip()
        return CurrentUser(id=user_id) if user_id else None

class DenyAllIdentityProvider(IdentityProvider):
    """Used when no provider is configured and the user header is not trusted."""

    async def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        return None

def build_identity_provider(settings: Settings) -> IdentityProvider:
    if settings.identity_url:
        log.info("Resolving users through %s", settings.identity_url)
        return RemoteIdentityProvider(settings.identity_url, timeout=settings.identity_timeout)
    if settings.trust_user_header:
        log.warning("Trusting the %s header; development only", USER_HEADER)
        return HeaderIdentityProvider()
    log.error("No identity provider configured; every request will be rejected")
    return DenyAllIdentityProvider()
