"""Tests for the PKCE login flow and session state machine."""

from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

import pytest
from src.auth.pkce import derive_challenge
from src.auth.spotify_auth import LoginFlow, SessionState, UserData
from src.auth.spotify_web_auth import exchange_code_for_token
from src.config import Settings
from src.errors import SpotifyAPIError, TokenExchangeError
from src.session_store import MemoryStore, SessionStore, TOKEN_KEY, VERIFIER_KEY

RELAY_URL = "http://relay.test/api/callback"


def _response(status=200, json_data=None, reason="OK"):
    resp = Mock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.reason = reason
    resp.content = b"{}" if json_data is not None else b""
    resp.json.return_value = json_data
    return resp


class FakeRelay:
    """Relay + provider double that honours single-use codes."""

    def __init__(self, valid_code="abc", token="tok123"):
        self.valid_code = valid_code
        self.token = token
        self.used = set()
        self.calls = []

    def post(self, url, json=None):
        self.calls.append(json)
        code = json["code"]
        if code != self.valid_code or code in self.used:
            self.used.add(code)
            return _response(json_data={"error": "invalid_grant"})
        self.used.add(code)
        return _response(json_data={"access_token": self.token, "token_type": "Bearer"})


@pytest.fixture
def settings(tmp_path):
    return Settings(
        client_id="X",
        redirect_uri="https://app/",
        relay_url=RELAY_URL,
        session_path=tmp_path / "session.json",
    )


@pytest.fixture
def store(settings):
    return SessionStore(settings.session_path)


class TestBeginLogin:
    def test_persists_verifier_before_returning(self, settings, store):
        flow = LoginFlow(settings, store)
        url = flow.begin_login()

        verifier = store.get(VERIFIER_KEY)
        assert verifier is not None
        assert len(verifier) == 128
        params = parse_qs(urlparse(url).query)
        assert params["code_challenge"] == [derive_challenge(verifier)]
        assert params["code_challenge_method"] == ["S256"]
        assert params["client_id"] == ["X"]

    def test_state_awaiting_redirect(self, settings, store):
        flow = LoginFlow(settings, store)
        flow.begin_login()
        assert flow.state_for() == SessionState.AWAITING_REDIRECT
        assert flow.state_for(code="abc") == SessionState.AWAITING_EXCHANGE

    def test_new_attempt_replaces_verifier(self, settings, store):
        flow = LoginFlow(settings, store)
        flow.begin_login()
        first = store.get(VERIFIER_KEY)
        flow.begin_login()
        assert store.get(VERIFIER_KEY) != first


class TestCompleteLogin:
    def test_success_stores_token_and_drops_verifier(self, settings, store):
        relay = FakeRelay()
        flow = LoginFlow(settings, store, http=relay)
        flow.begin_login()
        verifier = store.get(VERIFIER_KEY)

        token = flow.complete_login("abc")

        assert token == "tok123"
        assert store.get(TOKEN_KEY) == "tok123"
        assert store.get(VERIFIER_KEY) is None
        assert relay.calls == [{"code": "abc", "verifier": verifier, "redirectUri": "https://app/"}]
        assert flow.state_for() == SessionState.AUTHENTICATED

    def test_relay_error_stores_nothing(self, settings, store):
        http = Mock()
        http.post.return_value = _response(500, {"error": "upstream down"}, reason="Internal Server Error")
        flow = LoginFlow(settings, store, http=http)
        flow.begin_login()

        with pytest.raises(TokenExchangeError):
            flow.complete_login("abc")
        assert store.get(TOKEN_KEY) is None
        assert flow.state_for() != SessionState.AUTHENTICATED

    def test_without_verifier_raises(self, settings, store):
        relay = FakeRelay()
        flow = LoginFlow(settings, store, http=relay)

        with pytest.raises(TokenExchangeError):
            flow.complete_login("abc")
        assert relay.calls == []

    def test_code_is_single_use(self, settings, store):
        relay = FakeRelay()
        flow = LoginFlow(settings, store, http=relay)

        flow.begin_login()
        flow.complete_login("abc")
        flow.logout()

        flow.begin_login()
        with pytest.raises(TokenExchangeError):
            flow.complete_login("abc")
        assert store.get(TOKEN_KEY) is None

    def test_exchange_twice_succeeds_once(self):
        relay = FakeRelay()
        assert exchange_code_for_token("abc", "v1", "https://app/", RELAY_URL, session=relay) == "tok123"
        with pytest.raises(TokenExchangeError):
            exchange_code_for_token("abc", "v1", "https://app/", RELAY_URL, session=relay)


class TestHandleRedirect:
    def test_exchanges_code(self, settings, store):
        flow = LoginFlow(settings, store, http=FakeRelay())
        flow.begin_login()
        assert flow.handle_redirect("abc") == SessionState.AUTHENTICATED

    def test_ignores_code_when_already_authenticated(self, settings, store):
        relay = FakeRelay()
        store.set(TOKEN_KEY, "existing")
        flow = LoginFlow(settings, store, http=relay)

        assert flow.handle_redirect("abc") == SessionState.AUTHENTICATED
        assert relay.calls == []
        assert store.get(TOKEN_KEY) == "existing"

    def test_no_code_logged_out(self, settings, store):
        flow = LoginFlow(settings, store)
        assert flow.handle_redirect(None) == SessionState.LOGGED_OUT


class TestLoadUserData:
    def test_returns_profile_and_tracks(self, settings, store):
        store.set(TOKEN_KEY, "tok123")
        http = Mock()
        http.request.side_effect = [
            _response(json_data={"display_name": "Beth"}),
            _response(json_data={"items": [{"name": "Song"}]}),
        ]
        flow = LoginFlow(settings, store, http=http)

        data = flow.load_user_data()

        assert data == UserData(profile={"display_name": "Beth"}, tracks=[{"name": "Song"}])
        for call in http.request.call_args_list:
            assert call.kwargs["headers"] == {"Authorization": "Bearer tok123"}

    def test_401_logs_out(self, settings, store):
        store.set(TOKEN_KEY, "expired")
        http = Mock()
        http.request.return_value = _response(401, reason="Unauthorized")
        flow = LoginFlow(settings, store, http=http)

        with pytest.raises(SpotifyAPIError):
            flow.load_user_data()
        assert store.get(TOKEN_KEY) is None
        assert flow.state_for() == SessionState.LOGGED_OUT

    def test_other_errors_keep_session(self, settings, store):
        store.set(TOKEN_KEY, "tok123")
        http = Mock()
        http.request.return_value = _response(429, reason="Too Many Requests")
        flow = LoginFlow(settings, store, http=http)

        with pytest.raises(SpotifyAPIError) as exc_info:
            flow.load_user_data()
        assert exc_info.value.status_code == 429
        assert store.get(TOKEN_KEY) == "tok123"
        assert http.request.call_count == 1


class TestSubscribe:
    def test_listeners_see_transitions(self, settings, store):
        seen = []
        flow = LoginFlow(settings, store, http=FakeRelay())
        flow.subscribe(seen.append)

        flow.begin_login()
        flow.complete_login("abc")
        flow.logout()

        assert seen == [
            SessionState.AWAITING_REDIRECT,
            SessionState.AUTHENTICATED,
            SessionState.LOGGED_OUT,
        ]

    def test_failed_exchange_emits_logged_out(self, settings, store):
        seen = []
        flow = LoginFlow(settings, store, http=FakeRelay(valid_code="other"))
        flow.subscribe(seen.append)
        flow.begin_login()

        with pytest.raises(TokenExchangeError):
            flow.complete_login("abc")
        assert seen[-1] == SessionState.LOGGED_OUT


class TestSeparateTokenStore:
    def test_token_kept_out_of_durable_store(self, settings, tmp_path):
        store = SessionStore(settings.session_path, namespace="visitor-1")
        tokens = MemoryStore()
        flow = LoginFlow(settings, store, http=FakeRelay(), tokens=tokens)

        flow.begin_login(state="visitor-1")
        flow.complete_login("abc")

        assert tokens.get(TOKEN_KEY) == "tok123"
        assert store.get(TOKEN_KEY) is None
        assert store.get(VERIFIER_KEY) is None
        assert "tok123" not in settings.session_path.read_text(encoding="utf-8")
        assert flow.state_for() == SessionState.AUTHENTICATED

    def test_begin_login_carries_state(self, settings, store):
        url = LoginFlow(settings, store).begin_login(state="visitor-1")
        assert parse_qs(urlparse(url).query)["state"] == ["visitor-1"]

    def test_logout_clears_both(self, settings):
        store = SessionStore(settings.session_path, namespace="visitor-1")
        tokens = MemoryStore({TOKEN_KEY: "tok", "login_id": "visitor-1"})
        store.set(VERIFIER_KEY, "v")
        flow = LoginFlow(settings, store, tokens=tokens)

        flow.logout()

        assert tokens.mapping == {"login_id": "visitor-1"}
        assert store.get(VERIFIER_KEY) is None
        assert flow.state_for() == SessionState.LOGGED_OUT
