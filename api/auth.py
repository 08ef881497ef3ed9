"""
Cash-Up Engine - Authentication & Authorization
===============================================
Bearer JWT validation (HS256 shared secret with the portal).

Claims used:
- sub: user id
- name: display name
- role / roles: merged into one role set
"""

import logging

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_settings
from core.config import Settings
from core.errors import AuthError
from domain.entities import Actor

logger = logging.getLogger("cashup.auth")

# Security scheme
security = HTTPBearer(auto_error=False)

ANONYMOUS_ACTOR = Actor(id="anonymous", name="Anonymous User")


def decode_token(token: str, settings: Settings) -> dict:
    """Verify signature and expiry, return the claims."""
    if not settings.AUTH_JWT_SECRET:
        raise AuthError("Authentication is not configured")
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")


def actor_from_claims(claims: dict) -> Actor:
    roles = claims.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return Actor.from_claims(
        id=claims["sub"],
        name=claims.get("name", ""),
        role=claims.get("role"),
        roles=roles,
    )


async def get_current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Actor:
    """Get current authenticated actor from the bearer token"""

    # If auth is disabled, return anonymous actor
    if not settings.AUTH_ENABLED:
        return ANONYMOUS_ACTOR

    if credentials is None:
        raise AuthError("Missing authorization header")

    actor = actor_from_claims(decode_token(credentials.credentials, settings))
    request.state.actor_id = actor.id
    return actor
