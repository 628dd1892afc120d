"""Azure AD JWT authentication: token validation with a per-validator JWKS cache."""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any

from fastapi import HTTPException, status
from jose import jwk, jwt
from jose.constants import Algorithms
from jose.exceptions import ExpiredSignatureError, JWSSignatureError, JWTClaimsError, JWTError

logger = logging.getLogger("azure_auth")

JWKS_TTL_SECONDS = 24 * 60 * 60


class JwksCache:
    """Signing keys per tenant, refreshed after ``ttl_seconds``.

    A stale entry is served when the discovery endpoint is unreachable.
    """

    def __init__(self, ttl_seconds: int = JWKS_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    def get(self, tenant_id: str) -> dict[str, Any]:
        now = time.time()
        entry = self._entries.get(tenant_id)
        if entry and now - entry[0] < self.ttl_seconds:
            return entry[1]

        try:
            jwks = self.fetch(tenant_id)
        except (urllib.error.URLError, urllib.error.HTTPError) as e:
            logger.error("Failed to fetch JWKS: %s", e)
            if entry:
                logger.warning("Using expired JWKS from cache for tenant %s", tenant_id)
                return entry[1]
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Could not fetch JWKS: {e}",
            ) from e

        self._entries[tenant_id] = (now, jwks)
        return jwks

    def fetch(self, tenant_id: str) -> dict[str, Any]:
        jwks_uri = f"https://login.microsoftonline.com/{tenant_id}/discovery/v2.0/keys"
        logger.info("Fetching JWKS from %s", jwks_uri)
        req = urllib.request.Request(jwks_uri)  # noqa: S310
        with urllib.request.urlopen(req, timeout=15) as resp:  # noqa: S310
            return json.loads(resp.read().decode())

    def clear(self) -> None:
        self._entries.clear()


class TokenValidator:
    def __init__(self, tenant_id: str, client_id: str, jwks: JwksCache | None = None) -> None:
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.jwks = jwks or JwksCache()

    @property
    def issuers(self) -> list[str]:
        return [
            f"https://login.microsoftonline.com/{self.tenant_id}/v2.0",
            f"https://sts.windows.net/{self.tenant_id}/",
        ]

    @property
    def audiences(self) -> list[str]:
        return [self.client_id, f"api://{self.client_id}"]

    def signing_key(self, token: str) -> dict[str, str]:
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token header: {e}",
            ) from e

        kid = header.get("kid")
        if not kid:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has no 'kid' in header",
            )

        for key in self.jwks.get(self.tenant_id).get("keys", []):
            if key.get("kid") == kid:
                return key

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"No matching signing key for kid: {kid}",
        )

    def validate(self, token: str) -> dict[str, Any]:
        if not self.tenant_id or not self.client_id:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Missing Azure AD configuration",
            )

        key_dict = self.signing_key(token)
        algorithm = key_dict.get("alg", Algorithms.RS256)
        public_key = jwk.construct(key_dict, algorithm=algorithm)

        options = {
            "verify_signature": True,
            "verify_aud": True,
            "verify_iss": True,
            "verify_exp": True,
            "require": ["exp", "iss", "aud"],
        }

        last_error: Exception | None = None
        for issuer in self.issuers:
            for audience in self.audiences:
                try:
                    return jwt.decode(
                        token,
                        public_key,
                        algorithms=[algorithm],
                        audience=audience,
                        issuer=issuer,
                        options=options,
                    )
                except ExpiredSignatureError as e:
                    raise HTTPException(
                        status_code=status.HTTP_401_UNAUTHORIZED,
                        detail="Token is expired",
                    ) from e
                except JWSSignatureError as e:
                    raise HTTPException(
                        status_code=status.HTTP_401_UNAUTHORIZED,
                        detail="Invalid token signature",
                    ) from e
                except (JWTClaimsError, JWTError) as e:
                    last_error = e

        detail = "Invalid authentication credentials"
        if isinstance(last_error, JWTClaimsError) and "audience" in str(last_error).lower():
            detail = f"Invalid token audience. Expected one of: {self.audiences}"
        elif isinstance(last_error, JWTClaimsError) and "issuer" in str(last_error).lower():
            detail = f"Invalid token issuer. Expected one of: {self.issuers}"

        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def extract_roles(payload: dict[str, Any]) -> list[str]:
    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        return []
    return [str(r) for r in roles if isinstance(r, str | int)]
