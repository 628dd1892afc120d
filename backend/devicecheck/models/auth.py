"""Caller identity taken from Azure AD access tokens."""

from __future__ import annotations

from pydantic import BaseModel


class TokenClaims(BaseModel):
    oid: str | None = None
    name: str | None = None
    preferred_username: str | None = None
    roles: list[str] = []


class UserInfo(BaseModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None
    roles: list[str] = []

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> UserInfo:
        return cls(id=claims.oid, name=claims.name, email=claims.preferred_username, roles=claims.roles)

    def has_any_role(self, *roles: str) -> bool:
        return any(r in self.roles for r in roles)
