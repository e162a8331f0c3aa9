"""
Identity resolution for inbound requests.

A request is either ``Authenticated`` (valid bearer token) or ``Anonymous``.
Resolution never rejects a request; operations that need a user check the
identity themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from graphblog.errors import AuthenticationError
from graphblog.security import TokenService


@dataclass(frozen=True)
class Authenticated:
    user_id: str
    email: str


@dataclass(frozen=True)
class Anonymous:
    pass


Identity = Union[Authenticated, Anonymous]

ANONYMOUS = Anonymous()


def resolve_identity(authorization: Optional[str], tokens: TokenService) -> Identity:
    if not authorization:
        return ANONYMOUS
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return ANONYMOUS
    claims = tokens.verify(token)
    if claims is None:
        return ANONYMOUS
    return Authenticated(user_id=claims.user_id, email=claims.email)


def require_user_id(identity: Identity) -> str:
    """Return the authenticated user's id or raise a 401."""
    if isinstance(identity, Authenticated):
        return identity.user_id
    raise AuthenticationError("Not authenticated!")
