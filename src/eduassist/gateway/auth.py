"""Caller identity resolution at the HTTP boundary."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request

from eduassist.config import AuthConfig
from eduassist.core.types import Actor
from eduassist.errors import AuthorizationError, ForbiddenError
from eduassist.log import get_logger

logger = get_logger(__name__)


class ActorResolver(ABC):
    """Maps a bearer credential to the actor it belongs to."""

    @abstractmethod
    async def resolve(self, token: str) -> Optional[Actor]:
        ...


class StaticTokenResolver(ActorResolver):
    """Resolver over the ``auth.tokens`` table from configuration."""

    def __init__(self, config: AuthConfig):
        self._grants = {
            token: Actor(actor_id=grant.actor_id, role=grant.role)
            for token, grant in config.tokens.items()
        }

    async def resolve(self, token: str) -> Optional[Actor]:
        return self._grants.get(token)


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def authorize(request: Request, resolver: ActorResolver, allowed_roles: list[str]) -> Actor:
    """Resolve the caller and require a permitted role.

    Raises AuthorizationError (401) for a missing or unknown credential and
    ForbiddenError (403) for a role that may not chat.
    """
    token = bearer_token(request)
    if token is None:
        raise AuthorizationError("Unauthorized")
    actor = await resolver.resolve(token)
    if actor is None:
        logger.warning("auth_unknown_token", path=request.url.path)
        raise AuthorizationError("Unauthorized")
    if actor.role not in allowed_roles:
        logger.warning("auth_role_denied", actor_id=actor.actor_id, role=actor.role)
        raise ForbiddenError("Access denied. Parent role required.")
    return actor
