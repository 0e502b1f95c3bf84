"""
Tests for accounts, credentials and the refresh-token lifecycle.
"""

import asyncio

import pytest

from music_collection.domain.result import (
    AuthenticationError,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    ValidationError,
)
from music_collection.events import UserRegistered

from conftest import PASSWORD


class TestRegistration:
    """Test IdentityService.register."""

    @pytest.mark.asyncio
    async def test_register_normalizes_email_and_hashes_password(self, identity):
        user = await identity.register("dave", "Dave@Example.com", PASSWORD)

        assert user.email == "dave@example.com"
        assert user.password_hash != PASSWORD
        assert "password" not in str(user.to_dict()).lower()
        assert PASSWORD not in repr(user)

    @pytest.mark.asyncio
    async def test_duplicate_email_ignores_case(self, identity, alice):
        with pytest.raises(ConflictError):
            await identity.register("someone", "ALICE@example.com", PASSWORD)

    @pytest.mark.asyncio
    async def test_duplicate_username_ignores_case(self, identity, alice):
        with pytest.raises(ConflictError):
            await identity.register("Alice", "other@example.com", PASSWORD)

    @pytest.mark.asyncio
    async def test_concurrent_registrations_only_one_wins(self, identity):
        results = await asyncio.gather(
            *[identity.register("racer", "racer@example.com", PASSWORD) for _ in range(5)],
            return_exceptions=True,
        )
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username,email,password", [
        ("ab", "x@example.com", PASSWORD),
        ("valid", "not-an-email", PASSWORD),
        ("valid", "x@example.com", "short"),
        ("valid", "x@example.com", ""),
    ])
    async def test_invalid_input(self, identity, username, email, password):
        with pytest.raises(ValidationError):
            await identity.register(username, email, password)

    @pytest.mark.asyncio
    async def test_publishes_user_registered(self, identity, container):
        seen = []

        async def handler(event):
            seen.append(event)

        container.event_bus.subscribe(UserRegistered, handler)
        user = await identity.register("eve", "eve@example.com", PASSWORD)
        assert [e.user_id for e in seen] == [user.id]


class TestAuthentication:
    """Test login and credential checks."""

    @pytest.mark.asyncio
    async def test_login_returns_token_pair(self, identity, alice):
        user, tokens = await identity.login("alice@example.com", PASSWORD)
        assert user.id == alice.id
        assert tokens.access_token and tokens.refresh_token
        assert tokens.expires_in == 3600

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_are_indistinguishable(self, identity, alice):
        with pytest.raises(InvalidCredentialsError) as unknown:
            await identity.authenticate("nobody@example.com", PASSWORD)
        with pytest.raises(InvalidCredentialsError) as wrong:
            await identity.authenticate("alice@example.com", "wrong-password")
        assert str(unknown.value) == str(wrong.value)

    @pytest.mark.asyncio
    async def test_unknown_email_still_spends_a_hash_check(self, identity, alice, monkeypatch):
        calls = []
        real_dummy = identity.hasher.dummy_verify

        def counting_dummy():
            calls.append("dummy")
            real_dummy()

        monkeypatch.setattr(identity.hasher, "dummy_verify", counting_dummy)

        for email in ("nobody@example.com", "not-an-email"):
            with pytest.raises(InvalidCredentialsError):
                await identity.authenticate(email, PASSWORD)
        assert calls == ["dummy", "dummy"]

        with pytest.raises(InvalidCredentialsError):
            await identity.authenticate("alice@example.com", "wrong-password")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_email_lookup_is_case_insensitive(self, identity, alice):
        user = await identity.authenticate("  ALICE@example.com", PASSWORD)
        assert user.id == alice.id


class TestRefreshTokens:
    """Test rotation and revocation of refresh tokens."""

    @pytest.mark.asyncio
    async def test_rotation_invalidates_previous_token(self, identity, alice):
        _, tokens = await identity.login("alice@example.com", PASSWORD)

        rotated = await identity.rotate_refresh_token(tokens.refresh_token)
        assert rotated.refresh_token != tokens.refresh_token

        with pytest.raises(InvalidTokenError):
            await identity.rotate_refresh_token(tokens.refresh_token)
        await identity.rotate_refresh_token(rotated.refresh_token)

    @pytest.mark.asyncio
    async def test_only_one_active_refresh_token(self, identity, alice):
        _, first = await identity.login("alice@example.com", PASSWORD)
        _, second = await identity.login("alice@example.com", PASSWORD)

        with pytest.raises(InvalidTokenError):
            await identity.rotate_refresh_token(first.refresh_token)
        await identity.rotate_refresh_token(second.refresh_token)

    @pytest.mark.asyncio
    async def test_concurrent_rotation_succeeds_once(self, identity, alice):
        _, tokens = await identity.login("alice@example.com", PASSWORD)
        results = await asyncio.gather(
            *[identity.rotate_refresh_token(tokens.refresh_token) for _ in range(5)],
            return_exceptions=True,
        )
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1

    @pytest.mark.asyncio
    async def test_logout_revokes_refresh_token(self, identity, alice):
        _, tokens = await identity.login("alice@example.com", PASSWORD)
        await identity.revoke(alice.id)
        with pytest.raises(InvalidTokenError):
            await identity.rotate_refresh_token(tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, identity, alice):
        _, tokens = await identity.login("alice@example.com", PASSWORD)
        with pytest.raises(InvalidTokenError):
            await identity.rotate_refresh_token(tokens.access_token)

    @pytest.mark.asyncio
    async def test_garbage_token(self, identity):
        with pytest.raises(InvalidTokenError):
            await identity.rotate_refresh_token("not.a.token")

    @pytest.mark.asyncio
    async def test_missing_token(self, identity):
        with pytest.raises(ValidationError):
            await identity.rotate_refresh_token("")


class TestProfile:
    """Test profile reads and updates."""

    @pytest.mark.asyncio
    async def test_update_username_and_preferences(self, identity, alice):
        updated = await identity.update_profile(
            alice.id, {"username": "alicia", "preferences": {"theme": "dark"}, "role": "admin"}
        )
        assert updated.username == "alicia"
        assert updated.preferences.theme == "dark"
        assert updated.preferences.language == "en"
        assert not hasattr(updated, "role")

    @pytest.mark.asyncio
    async def test_update_to_taken_email_conflicts(self, identity, alice, bob):
        with pytest.raises(ConflictError):
            await identity.update_profile(alice.id, {"email": "BOB@example.com"})

    @pytest.mark.asyncio
    async def test_keeping_own_email_is_fine(self, identity, alice):
        updated = await identity.update_profile(alice.id, {"email": "alice@example.com"})
        assert updated.email == "alice@example.com"

    @pytest.mark.asyncio
    async def test_invalid_theme(self, identity, alice):
        with pytest.raises(ValidationError):
            await identity.update_profile(alice.id, {"preferences": {"theme": "neon"}})


class TestChangePassword:
    """Test password changes."""

    @pytest.mark.asyncio
    async def test_change_password_invalidates_tokens(self, identity, container, alice):
        _, tokens = await identity.login("alice@example.com", PASSWORD)

        await identity.change_password(alice.id, PASSWORD, "new-password-123")

        with pytest.raises(InvalidTokenError):
            await identity.rotate_refresh_token(tokens.refresh_token)
        with pytest.raises(AuthenticationError):
            await container.principals.resolve(f"Bearer {tokens.access_token}")
        with pytest.raises(InvalidCredentialsError):
            await identity.authenticate("alice@example.com", PASSWORD)
        await identity.authenticate("alice@example.com", "new-password-123")

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, identity, alice):
        with pytest.raises(InvalidCredentialsError):
            await identity.change_password(alice.id, "wrong-password", "new-password-123")

    @pytest.mark.asyncio
    async def test_new_password_too_short(self, identity, alice):
        with pytest.raises(ValidationError):
            await identity.change_password(alice.id, PASSWORD, "short")
