"""
Tests for password hashing, token signing and principal resolution.
"""

import pytest

from music_collection.domain.identity.security import (
    TokenExpired,
    TokenKind,
    TokenMalformed,
    TokenRejected,
)
from music_collection.domain.result import AuthenticationError, AuthenticationFailure
from music_collection.infrastructure.security import (
    JoseTokenCodec,
    PasslibPasswordHasher,
    PrincipalResolver,
)

from conftest import PASSWORD


@pytest.fixture
def codec():
    return JoseTokenCodec("access-secret", "refresh-secret")


class TestPasswordHasher:
    """Test PasslibPasswordHasher."""

    def test_hash_and_verify(self):
        hasher = PasslibPasswordHasher("pbkdf2_sha256")
        hashed = hasher.hash(PASSWORD)

        assert hashed != PASSWORD
        assert hasher.verify(PASSWORD, hashed)
        assert not hasher.verify("something-else", hashed)

    def test_hashes_are_salted(self):
        hasher = PasslibPasswordHasher("pbkdf2_sha256")
        assert hasher.hash(PASSWORD) != hasher.hash(PASSWORD)

    def test_unknown_hash_format_does_not_verify(self):
        hasher = PasslibPasswordHasher("pbkdf2_sha256")
        assert not hasher.verify(PASSWORD, "plain-text-is-not-a-hash")
        assert not hasher.verify(PASSWORD, "")

    def test_dummy_verify_runs_the_configured_scheme(self):
        assert PasslibPasswordHasher("pbkdf2_sha256").dummy_verify() is None


class TestJoseTokenCodec:
    """Test JWT issuance and verification."""

    def test_round_trip_claims(self, codec):
        issued = codec.issue("user-1", TokenKind.ACCESS, token_version=3)
        claims = codec.verify(issued.token, TokenKind.ACCESS)

        assert claims.subject == "user-1"
        assert claims.token_id == issued.claims.token_id
        assert claims.token_version == 3

    def test_every_token_has_a_unique_id(self, codec):
        first = codec.issue("user-1", TokenKind.REFRESH)
        second = codec.issue("user-1", TokenKind.REFRESH)
        assert first.claims.token_id != second.claims.token_id
        assert first.token != second.token

    def test_kinds_use_separate_secrets(self, codec):
        refresh = codec.issue("user-1", TokenKind.REFRESH)
        with pytest.raises(TokenRejected):
            codec.verify(refresh.token, TokenKind.ACCESS)

    def test_kind_claim_is_checked(self):
        # Same secret for both kinds: only the type claim tells them apart
        codec = JoseTokenCodec("shared", "shared")
        refresh = codec.issue("user-1", TokenKind.REFRESH)
        with pytest.raises(TokenRejected):
            codec.verify(refresh.token, TokenKind.ACCESS)

    def test_expired(self):
        codec = JoseTokenCodec("a", "r", access_ttl_seconds=-60)
        issued = codec.issue("user-1", TokenKind.ACCESS)
        with pytest.raises(TokenExpired):
            codec.verify(issued.token, TokenKind.ACCESS)

    def test_wrong_secret(self, codec):
        issued = JoseTokenCodec("other", "other-refresh").issue("user-1", TokenKind.ACCESS)
        with pytest.raises(TokenRejected):
            codec.verify(issued.token, TokenKind.ACCESS)

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "%%%.%%%.%%%"])
    def test_malformed(self, codec, token):
        with pytest.raises(TokenMalformed):
            codec.verify(token, TokenKind.ACCESS)

    def test_ttl(self, codec):
        assert codec.ttl_seconds(TokenKind.ACCESS) == 3600
        assert codec.ttl_seconds(TokenKind.REFRESH) == 7 * 24 * 3600


class TestPrincipalResolver:
    """Test mapping bearer credentials onto principals."""

    @pytest.fixture
    def resolver(self, container):
        return container.principals

    async def _access_token(self, identity):
        _, tokens = await identity.login("alice@example.com", PASSWORD)
        return tokens.access_token

    @pytest.mark.asyncio
    async def test_bearer_and_bare_tokens(self, resolver, identity, alice):
        token = await self._access_token(identity)
        assert (await resolver.resolve(f"Bearer {token}")).user_id == alice.id
        assert (await resolver.resolve(token)).user_id == alice.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, "", "   "])
    async def test_missing(self, resolver, header):
        with pytest.raises(AuthenticationError) as exc_info:
            await resolver.resolve(header)
        assert exc_info.value.kind is AuthenticationFailure.MISSING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["Bearer", "Basic abc def", "Bearer not-a-jwt"])
    async def test_malformed(self, resolver, header):
        with pytest.raises(AuthenticationError) as exc_info:
            await resolver.resolve(header)
        assert exc_info.value.kind is AuthenticationFailure.MALFORMED

    @pytest.mark.asyncio
    async def test_expired(self, container, alice):
        codec = JoseTokenCodec(
            container.config.auth.access_secret,
            container.config.auth.refresh_secret,
            access_ttl_seconds=-60,
        )
        token = codec.issue(alice.id, TokenKind.ACCESS).token
        resolver = PrincipalResolver(codec, container.users)
        with pytest.raises(AuthenticationError) as exc_info:
            await resolver.resolve(f"Bearer {token}")
        assert exc_info.value.kind is AuthenticationFailure.EXPIRED

    @pytest.mark.asyncio
    async def test_unknown_user_is_invalid(self, resolver, container):
        token = container.identity.tokens.issue("ghost", TokenKind.ACCESS).token
        with pytest.raises(AuthenticationError) as exc_info:
            await resolver.resolve(f"Bearer {token}")
        assert exc_info.value.kind is AuthenticationFailure.INVALID

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self, resolver, identity, alice):
        _, tokens = await identity.login("alice@example.com", PASSWORD)
        with pytest.raises(AuthenticationError) as exc_info:
            await resolver.resolve(f"Bearer {tokens.refresh_token}")
        assert exc_info.value.kind is AuthenticationFailure.INVALID

    @pytest.mark.asyncio
    async def test_optional(self, resolver, identity, alice):
        assert await resolver.resolve_optional(None) is None
        token = await self._access_token(identity)
        assert (await resolver.resolve_optional(token)).user_id == alice.id
