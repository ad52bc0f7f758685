"""
Caller identity resolution.

Requests arrive either with a password-session bearer token or with claims
from a federated sign-in (forwarded by the gateway). Both are reduced here to
one normalized identity string; nothing past this module looks at how the
caller authenticated.

    bearer token  → "local:<sub>"
    claims        → "<issuer>:<first present claim>"
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from auth.security import decode_token
from errors import ValidationError

log = logging.getLogger(__name__)

DEFAULT_CLAIM_KEYS = ("sub", "email", "preferred_username")


@dataclass(frozen=True)
class SessionContext:
    """Raw, unverified request state handed to the resolvers"""
    authorization: Optional[str] = None
    claims: Mapping[str, object] = field(default_factory=dict)


class IdentityResolver(ABC):

    @abstractmethod
    def resolve(self, context: SessionContext) -> str:
        """Return the caller's normalized identity or raise ValidationError"""


class BearerTokenIdentityResolver(IdentityResolver):
    """Password-based session: `Authorization: Bearer <jwt>`, identity from `sub`."""

    namespace = "local"

    def __init__(self, secret_key: Optional[str] = None):
        self.secret_key = secret_key

    def resolve(self, context: SessionContext) -> str:
        header = (context.authorization or "").strip()
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise ValidationError("Missing bearer token")

        payload = decode_token(token.strip(), secret_key=self.secret_key)
        if payload is None:
            raise ValidationError("Invalid or expired token")

        subject = payload.get("sub")
        if subject is None or not str(subject).strip():
            raise ValidationError("Token has no subject")
        return f"{self.namespace}:{str(subject).strip()}"


class ClaimsIdentityResolver(IdentityResolver):
    """
    Federated session: claims already verified upstream.
    The first present claim in `claim_keys` is the identity, namespaced by issuer
    so the same e-mail from two providers stays two identities.
    """

    def __init__(self, claim_keys: Sequence[str] = DEFAULT_CLAIM_KEYS, default_issuer: str = "external"):
        if not claim_keys:
            raise ValueError("claim_keys must not be empty")
        self.claim_keys = tuple(claim_keys)
        self.default_issuer = default_issuer

    def resolve(self, context: SessionContext) -> str:
        claims = context.claims or {}
        for key in self.claim_keys:
            value = str(claims.get(key) or "").strip()
            if not value:
                continue
            if key == "email":
                value = value.lower()
            issuer = str(claims.get("iss") or self.default_issuer).strip()
            return f"{issuer}:{value}"
        raise ValidationError("No identity claim present")


class CompositeIdentityResolver(IdentityResolver):
    """Tries each resolver in order; the first that succeeds wins."""

    def __init__(self, resolvers: Sequence[IdentityResolver]):
        self.resolvers = list(resolvers)

    def resolve(self, context: SessionContext) -> str:
        for resolver in self.resolvers:
            try:
                return resolver.resolve(context)
            except ValidationError as e:
                log.debug("identity: %s declined (%s)", type(resolver).__name__, e.message)
        raise ValidationError("Could not resolve caller identity")
