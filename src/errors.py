"""Exceptions raised by the Spotify login flow and API client."""

from typing import Optional


class SpotlightError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(SpotlightError):
    """Required configuration is missing or invalid."""


class TokenExchangeError(SpotlightError):
    """The authorization code could not be exchanged for an access token.

    Raised for transport failures reaching the relay and for provider
    rejections passed back through it (expired or reused code, verifier
    mismatch).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class SpotifyAPIError(SpotlightError):
    """An authenticated Web API call returned a non-success status."""

    def __init__(self, status_code: Optional[int], reason: str):
        self.status_code = status_code
        self.reason = reason
        if status_code is None:
            super().__init__(f"Error: {reason}")
        else:
            super().__init__(f"Error: {status_code} {reason}")

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code == 401
