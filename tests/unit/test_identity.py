# =============================================================================
# TESTS - Caller identity resolution
# =============================================================================

from datetime import timedelta

import pytest

from auth.identity import (
    BearerTokenIdentityResolver,
    ClaimsIdentityResolver,
    CompositeIdentityResolver,
    SessionContext,
)
from auth.security import create_access_token, decode_token
from errors import ConfigurationError, ValidationError

SECRET = "test-secret"


def _bearer(sub="42", **kwargs) -> str:
    return "Bearer " + create_access_token({"sub": sub}, secret_key=SECRET, **kwargs)


class TestBearerTokenIdentityResolver:

    def test_subject_becomes_identity(self):
        resolver = BearerTokenIdentityResolver(secret_key=SECRET)

        assert resolver.resolve(SessionContext(authorization=_bearer("42"))) == "local:42"

    def test_scheme_is_case_insensitive(self):
        resolver = BearerTokenIdentityResolver(secret_key=SECRET)
        header = _bearer("7").replace("Bearer", "bearer")

        assert resolver.resolve(SessionContext(authorization=header)) == "local:7"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Basic dXNlcjpwYXNz", "Bearer not-a-jwt"])
    def test_missing_or_malformed(self, header):
        resolver = BearerTokenIdentityResolver(secret_key=SECRET)

        with pytest.raises(ValidationError):
            resolver.resolve(SessionContext(authorization=header))

    def test_wrong_secret(self):
        resolver = BearerTokenIdentityResolver(secret_key="other-secret")

        with pytest.raises(ValidationError):
            resolver.resolve(SessionContext(authorization=_bearer()))

    def test_expired_token(self):
        resolver = BearerTokenIdentityResolver(secret_key=SECRET)
        header = _bearer(expires_delta=timedelta(minutes=-5))

        with pytest.raises(ValidationError):
            resolver.resolve(SessionContext(authorization=header))

    def test_token_without_subject(self):
        resolver = BearerTokenIdentityResolver(secret_key=SECRET)
        token = create_access_token({"role": "student"}, secret_key=SECRET)

        with pytest.raises(ValidationError):
            resolver.resolve(SessionContext(authorization=f"Bearer {token}"))


class TestSecurity:

    def test_decode_round_trip(self):
        token = create_access_token({"sub": "5"}, secret_key=SECRET)

        assert decode_token(token, secret_key=SECRET)["sub"] == "5"

    def test_missing_secret(self, monkeypatch):
        monkeypatch.setattr("auth.security.SECRET_KEY", None)

        with pytest.raises(ConfigurationError):
            decode_token("anything")


class TestClaimsIdentityResolver:

    def test_first_present_claim_namespaced_by_issuer(self):
        resolver = ClaimsIdentityResolver(claim_keys=("sub", "email"))
        context = SessionContext(claims={"iss": "https://accounts.google.com", "sub": "1098", "email": "a@b.c"})

        assert resolver.resolve(context) == "https://accounts.google.com:1098"

    def test_falls_back_to_later_claim(self):
        resolver = ClaimsIdentityResolver(claim_keys=("sub", "email"))
        context = SessionContext(claims={"iss": "github", "email": "Alice@Example.COM"})

        assert resolver.resolve(context) == "github:alice@example.com"

    def test_default_issuer(self):
        resolver = ClaimsIdentityResolver(default_issuer="sso")

        assert resolver.resolve(SessionContext(claims={"preferred_username": "alice"})) == "sso:alice"

    def test_no_claims(self):
        with pytest.raises(ValidationError):
            ClaimsIdentityResolver().resolve(SessionContext())

    def test_blank_claim_ignored(self):
        with pytest.raises(ValidationError):
            ClaimsIdentityResolver(claim_keys=("sub",)).resolve(SessionContext(claims={"sub": "  "}))

    def test_claim_keys_required(self):
        with pytest.raises(ValueError):
            ClaimsIdentityResolver(claim_keys=())


class TestCompositeIdentityResolver:
    """Password and federated sessions resolve through one entry point."""

    @pytest.fixture
    def resolver(self):
        return CompositeIdentityResolver([
            BearerTokenIdentityResolver(secret_key=SECRET),
            ClaimsIdentityResolver(),
        ])

    def test_bearer_session(self, resolver):
        assert resolver.resolve(SessionContext(authorization=_bearer("42"))) == "local:42"

    def test_federated_session(self, resolver):
        context = SessionContext(claims={"iss": "google", "sub": "g-1"})

        assert resolver.resolve(context) == "google:g-1"

    def test_bearer_wins_when_both_present(self, resolver):
        context = SessionContext(authorization=_bearer("42"), claims={"iss": "google", "sub": "g-1"})

        assert resolver.resolve(context) == "local:42"

    def test_nothing_resolves(self, resolver):
        with pytest.raises(ValidationError):
            resolver.resolve(SessionContext())
