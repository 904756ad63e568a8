"""Fetch the user's profile and top tracks from the Spotify Web API."""

import logging
from typing import Any, Optional

import requests

from src.errors import SpotifyAPIError

logger = logging.getLogger(__name__)

TOP_TRACKS_TIME_RANGE = "long_term"
TOP_TRACKS_LIMIT = 6


class SpotifyClient:
    """Authenticated wrapper around the Spotify Web API."""

    BASE_URL = "https://api.spotify.com/"

    def __init__(self, access_token: str, session: Optional[requests.Session] = None):
        """
        Initialize Spotify client.

        Args:
            access_token: Bearer token for the current session
            session: Optional requests session (defaults to module-level requests)
        """
        self.access_token = access_token
        self.http = session or requests

    def request(self, endpoint: str, method: str = "GET", body: Optional[dict] = None) -> Any:
        """
        Make one authenticated request. No retry.

        Args:
            endpoint: Path relative to the API root (e.g., "v1/me")
            method: HTTP method
            body: Optional JSON body

        Returns:
            Decoded JSON response (None for an empty body)

        Raises:
            SpotifyAPIError: On a non-success status or transport failure
        """
        url = f"{self.BASE_URL}{endpoint.lstrip('/')}"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            response = self.http.request(method, url, headers=headers, json=body)
        except requests.RequestException as e:
            raise SpotifyAPIError(None, str(e)) from e

        if not response.ok:
            logger.info("%s %s -> %s %s", method, endpoint, response.status_code, response.reason)
            raise SpotifyAPIError(response.status_code, response.reason or "")

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise SpotifyAPIError(response.status_code, "Invalid JSON response") from e

    def get_user_profile(self) -> dict:
        """Fetch the current user's profile."""
        return self.request("v1/me")

    def get_top_tracks(self) -> list[dict]:
        """
        Fetch the user's long-term top tracks.

        Returns:
            List of raw track objects (at most TOP_TRACKS_LIMIT)
        """
        data = self.request(
            f"v1/me/top/tracks?time_range={TOP_TRACKS_TIME_RANGE}&limit={TOP_TRACKS_LIMIT}"
        )
        return (data or {}).get("items", [])


def simplify_track(track: dict) -> dict:
    """Reduce a raw track object to what a track card needs."""
    images = track.get("album", {}).get("images") or []
    return {
        "track_id": track.get("id"),
        "name": track.get("name"),
        "artists": [artist["name"] for artist in track.get("artists", [])],
        "image_url": images[0]["url"] if images else None,
        "preview_url": track.get("preview_url"),
    }


def simplify_profile(profile: dict) -> dict:
    """Reduce a raw user object to what the navbar needs."""
    images = profile.get("images") or []
    return {
        "display_name": profile.get("display_name") or "Spotify User",
        "image_url": images[0]["url"] if images else None,
    }
