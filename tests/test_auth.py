"""Tests for the token manager and the bearer auth hook."""

import threading
from unittest.mock import Mock

import httpx
import pytest

from pymoveit.api import MoveItClient
from pymoveit.auth import AuthToken, TokenAuth, TokenManager
from pymoveit.exceptions import MoveItAuthenticationError, MoveItTokenError
from pymoveit.models import TokenResponse


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_client():
    client = Mock(spec=MoveItClient)
    client.exchange_credentials.return_value = TokenResponse(
        access_token="newAccessToken", refresh_token="refreshToken", expires_in=1199
    )
    client.exchange_refresh_token.return_value = TokenResponse(
        access_token="refreshedAccessToken", expires_in=1199
    )
    return client


@pytest.fixture
def token_manager(mock_client, clock):
    return TokenManager(
        mock_client, "testUsername", "testPass", expiry_tolerance=30, clock=clock
    )


class TestEnsureValidToken:
    """Tests for the token lifecycle."""

    def test_acquires_token_when_none_exists(self, token_manager, mock_client):
        token = token_manager.ensure_valid_token()

        assert token == "newAccessToken"
        mock_client.exchange_credentials.assert_called_once_with(
            "testUsername", "testPass"
        )
        mock_client.exchange_refresh_token.assert_not_called()

    def test_reuses_valid_token(self, token_manager, mock_client, clock):
        first = token_manager.ensure_valid_token()
        clock.now += 600
        second = token_manager.ensure_valid_token()

        assert first == second
        assert mock_client.exchange_credentials.call_count == 1
        mock_client.exchange_refresh_token.assert_not_called()

    def test_refreshes_expired_token(self, token_manager, mock_client, clock):
        token_manager.ensure_valid_token()
        clock.now += 1199 + 10

        token = token_manager.ensure_valid_token()

        assert token == "refreshedAccessToken"
        mock_client.exchange_refresh_token.assert_called_once_with("refreshToken")
        assert mock_client.exchange_credentials.call_count == 1

    def test_renews_within_tolerance(self, token_manager, mock_client, clock):
        token_manager.ensure_valid_token()
        # 20 seconds left, tolerance is 30
        clock.now += 1199 - 20

        assert token_manager.ensure_valid_token() == "refreshedAccessToken"

    def test_does_not_renew_just_outside_tolerance(
        self, token_manager, mock_client, clock
    ):
        token_manager.ensure_valid_token()
        clock.now += 1199 - 31

        assert token_manager.ensure_valid_token() == "newAccessToken"
        mock_client.exchange_refresh_token.assert_not_called()

    def test_reacquires_without_refresh_token(self, token_manager, mock_client, clock):
        mock_client.exchange_credentials.side_effect = [
            TokenResponse(access_token="first", expires_in=100),
            TokenResponse(access_token="second", expires_in=100),
        ]
        assert token_manager.ensure_valid_token() == "first"
        clock.now += 100

        assert token_manager.ensure_valid_token() == "second"
        assert mock_client.exchange_credentials.call_count == 2
        mock_client.exchange_refresh_token.assert_not_called()

    def test_refresh_replaces_whole_token(self, token_manager, clock):
        token_manager.ensure_valid_token()
        clock.now += 2000
        token_manager.ensure_valid_token()

        assert token_manager.token == AuthToken(
            access_token="refreshedAccessToken",
            refresh_token=None,
            expires_at=clock.now + 1199,
        )

    def test_acquire_error_propagates(self, token_manager, mock_client, caplog):
        mock_client.exchange_credentials.side_effect = MoveItAuthenticationError(
            "Unauthorized", status_code=401, response='{"error": "invalid_grant"}'
        )

        with pytest.raises(MoveItAuthenticationError):
            token_manager.ensure_valid_token()

        assert token_manager.token is None
        assert "API error while acquiring token: 401" in caplog.text

    def test_refresh_error_propagates_and_keeps_token(
        self, token_manager, mock_client, clock
    ):
        token_manager.ensure_valid_token()
        old_token = token_manager.token
        clock.now += 2000
        mock_client.exchange_refresh_token.side_effect = MoveItAuthenticationError(
            "Unauthorized", status_code=401
        )

        with pytest.raises(MoveItAuthenticationError):
            token_manager.ensure_valid_token()

        assert token_manager.token is old_token

    def test_missing_expiry_is_fatal(self, token_manager, mock_client):
        mock_client.exchange_credentials.return_value = TokenResponse(
            access_token="abc", expires_in=None
        )

        with pytest.raises(MoveItTokenError, match="expiration"):
            token_manager.ensure_valid_token()

    def test_refresh_without_refresh_token(self, token_manager, mock_client):
        with pytest.raises(MoveItTokenError, match="Refresh token is not available"):
            token_manager.refresh_token()
        mock_client.exchange_refresh_token.assert_not_called()

    def test_invalidate_forces_new_sign_in(self, token_manager, mock_client):
        token_manager.ensure_valid_token()
        token_manager.invalidate()
        token_manager.ensure_valid_token()

        assert mock_client.exchange_credentials.call_count == 2


class TestConcurrentRenewal:
    """Concurrent callers share one token exchange."""

    def test_concurrent_callers_collapse_into_one_exchange(
        self, token_manager, mock_client
    ):
        release = threading.Event()
        entered = threading.Event()

        def slow_exchange(username, password):
            entered.set()
            release.wait(timeout=5)
            return TokenResponse(access_token="shared", expires_in=1199)

        mock_client.exchange_credentials.side_effect = slow_exchange
        results = []
        results_lock = threading.Lock()

        def call():
            token = token_manager.ensure_valid_token()
            with results_lock:
                results.append(token)

        threads = [threading.Thread(target=call) for _ in range(8)]
        for thread in threads:
            thread.start()
        assert entered.wait(timeout=5)
        release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert results == ["shared"] * 8
        assert mock_client.exchange_credentials.call_count == 1

    def test_concurrent_refresh_collapses(self, token_manager, mock_client, clock):
        token_manager.ensure_valid_token()
        clock.now += 2000
        release = threading.Event()

        def slow_refresh(refresh_token):
            release.wait(timeout=5)
            return TokenResponse(access_token="refreshed", expires_in=1199)

        mock_client.exchange_refresh_token.side_effect = slow_refresh
        threads = [
            threading.Thread(target=token_manager.ensure_valid_token) for _ in range(5)
        ]
        for thread in threads:
            thread.start()
        release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert mock_client.exchange_refresh_token.call_count == 1
        assert mock_client.exchange_credentials.call_count == 1


class TestTokenAuth:
    """Tests for the httpx auth hook."""

    def test_sets_bearer_header(self):
        token_manager = Mock()
        token_manager.ensure_valid_token.return_value = "abc"
        auth = TokenAuth(token_manager)
        request = httpx.Request("GET", "https://moveit.example.com/api/v1/users/self")

        flow = auth.sync_auth_flow(request)
        sent = next(flow)

        assert sent.headers["Authorization"] == "Bearer abc"

    def test_each_request_asks_for_token(self):
        token_manager = Mock()
        token_manager.ensure_valid_token.side_effect = ["one", "two"]
        auth = TokenAuth(token_manager)

        first = next(auth.sync_auth_flow(httpx.Request("GET", "https://h/a")))
        second = next(auth.sync_auth_flow(httpx.Request("GET", "https://h/b")))

        assert first.headers["Authorization"] == "Bearer one"
        assert second.headers["Authorization"] == "Bearer two"
