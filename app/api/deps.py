"""Authentication dependencies"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.services.identity import IdentityClient, IdentityProviderUnavailable, InvalidCredentials

auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None


def get_identity_client(request: Request) -> IdentityClient:
    return request.app.state.identity_client


async def get_optional_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    identity: IdentityClient = Depends(get_identity_client),
) -> Optional[AuthContext]:
    """Resolve the caller from a Bearer token; None when absent or invalid"""
    if not credentials or credentials.scheme.lower() != "bearer":
        return None

    try:
        user = await identity.verify_token(credentials.credentials)
    except InvalidCredentials:
        return None
    except IdentityProviderUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "Authentication Unavailable", "message": "Authentication error"},
        ) from exc

    return AuthContext(user_id=user.id, email=user.email or None)


async def get_auth_context(
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
) -> AuthContext:
    if auth is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Unauthorized", "message": "Invalid or missing authorization token"},
        )
    return auth


async def get_current_user_id(auth: AuthContext = Depends(get_auth_context)) -> str:
    return auth.user_id


async def get_optional_user_id(
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
) -> Optional[str]:
    return auth.user_id if auth else None
