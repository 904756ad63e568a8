"""Spotify PKCE login flow, session state, and local callback server."""

import logging
import time
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Callable, Optional
from urllib.parse import urlparse, parse_qs

import requests

from src.auth.pkce import generate_pkce_pair
from src.auth.spotify_web_auth import build_auth_url, exchange_code_for_token
from src.collectors.spotify_collector import SpotifyClient
from src.config import Settings
from src.errors import SpotifyAPIError, TokenExchangeError
from src.session_store import SessionStore, TOKEN_KEY, VERIFIER_KEY

logger = logging.getLogger(__name__)


class SessionState(Enum):
    LOGGED_OUT = "logged_out"
    AWAITING_REDIRECT = "awaiting_redirect"
    AWAITING_EXCHANGE = "awaiting_exchange"
    AUTHENTICATED = "authenticated"


@dataclass
class UserData:
    profile: dict
    tracks: list[dict] = field(default_factory=list)


class LoginFlow:
    """PKCE login flow over a durable SessionStore.

    One instance per page load (or CLI invocation). All state that must
    survive the redirect lives in the stores, never on the instance.
    The verifier goes to ``store``; the access token goes to ``tokens``,
    which defaults to the same store.
    """

    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        http: Optional[requests.Session] = None,
        tokens=None,
    ):
        self.settings = settings
        self.store = store
        self.tokens = tokens if tokens is not None else store
        self.http = http
        self._listeners: list[Callable[[SessionState], None]] = []

    def subscribe(self, callback: Callable[[SessionState], None]):
        """Register a callback invoked with the new state on every transition."""
        self._listeners.append(callback)

    def _emit(self, state: SessionState):
        for callback in self._listeners:
            callback(state)

    @property
    def access_token(self) -> Optional[str]:
        return self.tokens.get(TOKEN_KEY)

    def state_for(self, code: Optional[str] = None) -> SessionState:
        """Derive the current state from the store and the redirect's code."""
        if self.tokens.get(TOKEN_KEY):
            return SessionState.AUTHENTICATED
        if self.store.get(VERIFIER_KEY):
            return SessionState.AWAITING_EXCHANGE if code else SessionState.AWAITING_REDIRECT
        return SessionState.LOGGED_OUT

    def begin_login(self, state: Optional[str] = None) -> str:
        """
        Start a login attempt.

        The verifier is persisted before the URL is returned, so navigating
        away cannot lose it.

        Args:
            state: Opaque value Spotify echoes back on the redirect

        Returns:
            Spotify authorization URL to send the user to
        """
        verifier, challenge = generate_pkce_pair()
        self.store.set(VERIFIER_KEY, verifier)

        auth_url = build_auth_url(
            self.settings.client_id,
            self.settings.redirect_uri,
            self.settings.scopes,
            challenge,
            state=state,
        )
        self._emit(SessionState.AWAITING_REDIRECT)
        return auth_url

    def complete_login(self, code: str) -> str:
        """
        Exchange the redirect's authorization code for an access token.

        Returns:
            Access token (also stored)

        Raises:
            TokenExchangeError: If no verifier is stored or the exchange fails.
                Nothing is stored in that case.
        """
        verifier = self.store.get(VERIFIER_KEY)
        if not verifier:
            self._emit(SessionState.LOGGED_OUT)
            raise TokenExchangeError("No code verifier stored for this login attempt")

        try:
            access_token = exchange_code_for_token(
                code,
                verifier,
                self.settings.redirect_uri,
                self.settings.relay_url,
                session=self.http,
            )
        except TokenExchangeError:
            self._emit(SessionState.LOGGED_OUT)
            raise

        self.tokens.set(TOKEN_KEY, access_token)
        self.store.remove(VERIFIER_KEY)
        self._emit(SessionState.AUTHENTICATED)
        return access_token

    def handle_redirect(self, code: Optional[str]) -> SessionState:
        """
        Page-load entry point.

        Exchanges ``code`` only when no token is stored yet, so a refresh
        never redeems an already-consumed code.
        """
        if code and not self.access_token:
            self.complete_login(code)
        return self.state_for()

    def logout(self):
        self.store.clear()
        if self.tokens is not self.store:
            self.tokens.clear()
        self._emit(SessionState.LOGGED_OUT)

    def client(self) -> SpotifyClient:
        """API client bound to the stored token."""
        return SpotifyClient(self.access_token or "", session=self.http)

    def load_user_data(self) -> UserData:
        """
        Fetch profile and top tracks for the stored session.

        A 401 ends the session (logout) before re-raising. Other API
        errors are re-raised with the session kept.

        Raises:
            SpotifyAPIError: If any call fails
        """
        client = self.client()
        try:
            profile = client.get_user_profile()
            tracks = client.get_top_tracks()
        except SpotifyAPIError as e:
            if e.is_auth_failure:
                logger.info("Access token rejected; logging out")
                self.logout()
            raise

        return UserData(profile=profile, tracks=tracks)


class SpotifyAuthenticator:
    """Interactive PKCE login from the command line with a local callback server."""

    def __init__(self, flow: LoginFlow, timeout: int = 300):
        """
        Initialize authenticator.

        Args:
            flow: LoginFlow whose redirect_uri points at localhost
            timeout: Seconds to wait for the callback
        """
        self.flow = flow
        self.timeout = timeout

    def run_auth_flow(self) -> str:
        """
        Run interactive OAuth flow: open browser, start local server, wait for callback.

        This method:
        1. Persists a fresh verifier and builds the auth URL
        2. Opens browser to Spotify authorization page
        3. Starts local HTTP server to receive callback
        4. Exchanges authorization code through the relay

        Returns:
            Access token

        Raises:
            RuntimeError: If authorization is denied or times out
            TokenExchangeError: If the exchange fails
        """
        auth_url = self.flow.begin_login()

        parsed_uri = urlparse(self.flow.settings.redirect_uri)
        port = parsed_uri.port or 8888
        callback_path = parsed_uri.path or "/"

        # Shared state between handler and main thread
        callback_result = {}

        class CallbackHandler(BaseHTTPRequestHandler):
            """Handle OAuth callback request."""

            def do_GET(self):
                parsed_path = urlparse(self.path)
                if parsed_path.path != callback_path:
                    self.send_error(404)
                    return

                params = parse_qs(parsed_path.query)

                if "error" in params:
                    error = params["error"][0]
                    self.send_error(400, f"Authorization failed: {error}")
                    callback_result["error"] = error
                    return

                if "code" not in params:
                    self.send_error(400, "No authorization code received")
                    callback_result["error"] = "no_code"
                    return

                callback_result["code"] = params["code"][0]

                self.send_response(200)
                self.send_header("Content-type", "text/html")
                self.end_headers()
                self.wfile.write(
                    b"<html><body style='font-family: Arial, sans-serif; text-align: center;'>"
                    b"<h1>Success!</h1><p>Authentication complete. You can close this tab.</p>"
                    b"</body></html>"
                )

            def log_message(self, format, *args):
                """Suppress default request logging."""
                pass

        server = HTTPServer((parsed_uri.hostname or "localhost", port), CallbackHandler)
        server.timeout = 1

        print(f"Starting local callback server on port {port}...")
        print("Opening browser for Spotify authorization...")
        print(f"If browser doesn't open, visit: {auth_url}")

        webbrowser.open(auth_url)

        start_time = time.time()
        try:
            while not callback_result and (time.time() - start_time) < self.timeout:
                server.handle_request()
        finally:
            server.server_close()

        if "error" in callback_result:
            raise RuntimeError(f"Authentication failed: {callback_result['error']}")

        if "code" not in callback_result:
            raise RuntimeError("Authentication timeout or no code received")

        print("Authorization code received. Exchanging for token...")
        return self.flow.complete_login(callback_result["code"])
