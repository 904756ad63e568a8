"""Top Tracks Spotlight - Spotify PKCE login and top-tracks viewer."""

from .auth.pkce import derive_challenge, generate_verifier
from .auth.spotify_auth import LoginFlow, SessionState
from .auth.spotify_web_auth import build_auth_url, exchange_code_for_token
from .collectors.spotify_collector import SpotifyClient
from .session_store import SessionStore

__version__ = "0.1.0"

__all__ = [
    "generate_verifier",
    "derive_challenge",
    "build_auth_url",
    "exchange_code_for_token",
    "LoginFlow",
    "SessionState",
    "SessionStore",
    "SpotifyClient",
]
