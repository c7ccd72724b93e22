"""
Tests for the mobile handoff token broker.
"""
import json

import pytest
import pytest_asyncio

from app.core.errors import ErrorCode
from app.core.exceptions import AuthenticationError, ClientInputError, EncodingError
from app.core.security import b64url_decode, b64url_encode
from app.services.auth.mobile_broker import MobileTokenBroker
from app.services.auth.oauth.github import GitHubOAuthProvider
from app.services.auth.session_service import SessionIssuer, SessionVerifier, decode_bearer_token
from tests.fixtures.auth import AuthTestData, query_params
from tests.mocks.stores import InMemoryDatabase, in_memory_uow_factory


@pytest.fixture
def broker(settings, uow_factory, clock) -> MobileTokenBroker:
    return MobileTokenBroker(settings, SessionVerifier(uow_factory), clock=clock)


@pytest.fixture
def offline_broker(settings, clock) -> MobileTokenBroker:
    """Broker for tests that never reach the session store."""
    return MobileTokenBroker(settings, SessionVerifier(in_memory_uow_factory(InMemoryDatabase())), clock=clock)


@pytest_asyncio.fixture
async def issued(settings, uow_factory):
    async with uow_factory() as uow:
        user = await uow.users.create_user("alice")
        user_id = user.id
    return await SessionIssuer(settings, uow_factory).create_session(user_id)


class TestMobileStart:
    """Test the mobile authorization redirect."""

    def test_start_marks_state_and_uses_mobile_callback(self, offline_broker, settings):
        # Arrange
        provider = GitHubOAuthProvider(settings)

        # Act
        url = offline_broker.start_mobile(provider, AuthTestData.APP_REDIRECT_URI, AuthTestData.CLIENT_STATE)

        # Assert
        params = query_params(url)
        assert params["state"] == f"mobile_{AuthTestData.CLIENT_STATE}"
        assert params["redirect_uri"] == settings.mobile_callback_url

    @pytest.mark.parametrize(
        "redirect_uri, state",
        [
            (None, "abc"),
            ("", "abc"),
            ("https://evil.example/callback", "abc"),
            ("javascript:alert(1)", "abc"),
            (AuthTestData.APP_REDIRECT_URI, None),
            (AuthTestData.APP_REDIRECT_URI, ""),
        ],
    )
    def test_start_rejects_bad_input(self, offline_broker, settings, redirect_uri, state):
        with pytest.raises(ClientInputError) as exc_info:
            offline_broker.start_mobile(GitHubOAuthProvider(settings), redirect_uri, state)

        assert exc_info.value.status_code == 400

    def test_state_marker(self, offline_broker):
        assert offline_broker.is_mobile_state("mobile_abc")
        assert not offline_broker.is_mobile_state("abc")
        assert not offline_broker.is_mobile_state(None)
        assert offline_broker.client_state("mobile_abc") == "abc"


class TestHandoffToken:
    """Test handoff token issuance and decoding."""

    @pytest.mark.asyncio
    async def test_token_format(self, broker, issued, clock, settings):
        token = broker.issue_handoff_token(issued)

        payload = json.loads(b64url_decode(token))
        assert payload == {
            "user_id": issued.user_id,
            "session_id": issued.session_id,
            "raw_token": issued.raw_secret,
            "expires_at": int(clock.now) + settings.MOBILE_TOKEN_TTL_SECONDS,
        }

    @pytest.mark.asyncio
    async def test_success_redirect(self, broker, issued, settings):
        url = broker.success_redirect(issued, AuthTestData.CLIENT_STATE)

        assert url.startswith(f"{settings.MOBILE_CALLBACK_URI}?")
        params = query_params(url)
        assert params["user_id"] == str(issued.user_id)
        assert params["expires_in"] == str(settings.MOBILE_TOKEN_TTL_SECONDS)
        assert params["state"] == AuthTestData.CLIENT_STATE
        assert broker.decode_handoff_token(params["token"]).session_id == issued.session_id

    def test_error_redirect(self, offline_broker):
        url = offline_broker.error_redirect("token_exchange", "Identity provider request failed")

        params = query_params(url)
        assert params == {
            "error": "token_exchange",
            "error_description": "Identity provider request failed",
        }

    @pytest.mark.parametrize(
        "token",
        [
            *AuthTestData.GARBAGE_TOKENS,
            b64url_encode(b"not json", padded=True),
            b64url_encode(b"[1, 2]", padded=True),
            b64url_encode(b'{"user_id": 1}', padded=True),
            b64url_encode(b'{"user_id": 1, "session_id": 2, "raw_token": "", "expires_at": 0}', padded=True),
            b64url_encode(
                b'{"user_id": 1, "session_id": 99999999999999999999999, "raw_token": "x", "expires_at": 0}',
                padded=True,
            ),
        ],
    )
    def test_decode_rejects_malformed(self, offline_broker, token):
        with pytest.raises(EncodingError):
            offline_broker.decode_handoff_token(token)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, ""])
    async def test_exchange_requires_token(self, broker, token):
        with pytest.raises(ClientInputError):
            await broker.exchange_handoff_token(token)


class TestHandoffExchange:
    """Test redeeming handoff tokens."""

    @pytest.mark.asyncio
    async def test_exchange_returns_session_bearer(self, broker, issued, settings):
        # Arrange
        token = broker.issue_handoff_token(issued)

        # Act
        result = await broker.exchange_handoff_token(token)

        # Assert
        assert result.token == issued.bearer_token
        assert decode_bearer_token(result.token) == (issued.session_id, issued.raw_secret)
        assert result.expires_in == settings.SESSION_COOKIE_MAX_AGE_SECONDS
        assert result.user_id == issued.user_id
        assert result.session_id == issued.session_id

    @pytest.mark.asyncio
    async def test_redeem_then_expire(self, broker, issued, clock, settings):
        """A token redeems while fresh and fails once past ``expires_at``."""
        token = broker.issue_handoff_token(issued)

        first = await broker.exchange_handoff_token(token)
        assert first.session_id == issued.session_id

        clock.advance(settings.MOBILE_TOKEN_TTL_SECONDS + 1)

        with pytest.raises(AuthenticationError) as exc_info:
            await broker.exchange_handoff_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.code == ErrorCode.AUTH_INVALID_HANDOFF_TOKEN

    @pytest.mark.asyncio
    async def test_valid_at_expiry_second(self, broker, issued, clock, settings):
        token = broker.issue_handoff_token(issued)
        clock.advance(settings.MOBILE_TOKEN_TTL_SECONDS)

        result = await broker.exchange_handoff_token(token)

        assert result.session_id == issued.session_id

    @pytest.mark.asyncio
    async def test_forged_secret_rejected(self, broker, issued, clock):
        payload = {
            "user_id": issued.user_id,
            "session_id": issued.session_id,
            "raw_token": "guessed-secret",
            "expires_at": int(clock.now) + 60,
        }
        token = b64url_encode(json.dumps(payload).encode(), padded=True)

        with pytest.raises(AuthenticationError):
            await broker.exchange_handoff_token(token)

    @pytest.mark.asyncio
    async def test_user_mismatch_rejected(self, broker, issued, clock):
        payload = {
            "user_id": issued.user_id + 100,
            "session_id": issued.session_id,
            "raw_token": issued.raw_secret,
            "expires_at": int(clock.now) + 60,
        }
        token = b64url_encode(json.dumps(payload).encode(), padded=True)

        with pytest.raises(AuthenticationError):
            await broker.exchange_handoff_token(token)

    @pytest.mark.asyncio
    async def test_logged_out_session_rejected(self, broker, issued, uow_factory):
        token = broker.issue_handoff_token(issued)
        async with uow_factory() as uow:
            await uow.sessions.delete(issued.session_id)

        with pytest.raises(AuthenticationError):
            await broker.exchange_handoff_token(token)
