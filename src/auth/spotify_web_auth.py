"""Spotify OAuth2 PKCE flow for web apps.

The browser-facing side never holds the client secret. It works like this:
1. Generate a verifier/challenge pair and persist the verifier
2. Send the user to the authorization URL built here
3. Spotify redirects back to the app with ?code= in query params
4. App posts {code, verifier, redirectUri} to the token relay, which adds the
   client secret and forwards the grant to Spotify
"""

import logging
from typing import Optional, Union
from urllib.parse import quote, urlencode

import requests

from src.errors import TokenExchangeError

logger = logging.getLogger(__name__)

SPOTIFY_AUTH_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"


def build_auth_url(
    client_id: str,
    redirect_uri: str,
    scopes: Union[list[str], str],
    challenge: str,
    state: Optional[str] = None,
) -> str:
    """Build the Spotify authorization URL for the S256 PKCE flow.

    ``state`` is echoed back by Spotify on the redirect; the web app uses it
    to find the visitor's stored verifier.
    """
    if not isinstance(scopes, str):
        scopes = " ".join(scopes)

    params = {
        "response_type": "code",
        "client_id": client_id,
        "scope": scopes,
        "redirect_uri": redirect_uri,
        "code_challenge_method": "S256",
        "code_challenge": challenge,
    }
    if state is not None:
        params["state"] = state
    return f"{SPOTIFY_AUTH_URL}?{urlencode(params, quote_via=quote, safe='')}"


def exchange_code_for_token(
    code: str,
    verifier: str,
    redirect_uri: str,
    relay_url: str,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Exchange an authorization code for an access token via the token relay.

    Single use: Spotify invalidates the code on the first attempt, whatever
    the outcome, so a failed exchange is never retried.

    Args:
        code: Authorization code from the redirect
        verifier: PKCE verifier used to derive this attempt's challenge
        redirect_uri: Redirect URI sent in the authorization request
        relay_url: URL of the server-side token relay
        session: Optional requests session (defaults to module-level requests)

    Returns:
        The access token string

    Raises:
        TokenExchangeError: On transport failure, non-2xx relay status, or
            a relay body without access_token
    """
    http = session or requests
    payload = {"code": code, "verifier": verifier, "redirectUri": redirect_uri}

    try:
        resp = http.post(relay_url, json=payload)
    except requests.RequestException as e:
        raise TokenExchangeError(f"Could not reach token relay: {e}") from e

    try:
        data = resp.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    if not resp.ok:
        logger.warning("Token relay returned HTTP %s", resp.status_code)
        raise TokenExchangeError(
            f"Token exchange failed: HTTP {resp.status_code} {data.get('error', resp.reason)}",
            status_code=resp.status_code,
            payload=data,
        )

    access_token = data.get("access_token")
    if not access_token:
        logger.warning("Token exchange failed: %s", data.get("error"))
        raise TokenExchangeError(
            "Failed to get access token",
            status_code=resp.status_code,
            payload=data,
        )

    return access_token
