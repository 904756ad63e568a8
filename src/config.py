"""Settings loaded from the environment (and an optional .env file)."""

import os
from collections import ChainMap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from src.errors import ConfigError

DEFAULT_SCOPES = ["user-top-read", "user-read-email", "user-read-private"]
DEFAULT_REDIRECT_URI = "http://localhost:8501"
DEFAULT_RELAY_URL = "http://localhost:5000/api/callback"
DEFAULT_SESSION_PATH = "data/cache/session.json"


@dataclass
class Settings:
    """Client and relay configuration.

    ``client_secret`` is only needed by the relay and must never reach the
    browser-facing side.
    """

    client_id: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    relay_url: str = DEFAULT_RELAY_URL
    session_path: Path = Path(DEFAULT_SESSION_PATH)
    scopes: list[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    client_secret: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        require_secret: bool = False,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional .env path (defaults to python-dotenv's lookup)
            require_secret: Fail if SPOTIFY_CLIENT_SECRET is unset (relay side)
            overrides: Values that win over the environment (e.g. st.secrets)

        Raises:
            ConfigError: If a required variable is missing
        """
        load_dotenv(env_file)
        env = ChainMap(dict(overrides or {}), os.environ)

        client_id = env.get("SPOTIFY_CLIENT_ID", "")
        if not client_id:
            raise ConfigError(
                "SPOTIFY_CLIENT_ID not set. "
                "Get one from https://developer.spotify.com/dashboard and add it to your .env file."
            )

        client_secret = env.get("SPOTIFY_CLIENT_SECRET") or None
        if require_secret and not client_secret:
            raise ConfigError("SPOTIFY_CLIENT_SECRET not set. The token relay cannot run without it.")

        scopes_raw = env.get("SPOTLIGHT_SCOPES", "")
        scopes = scopes_raw.split() if scopes_raw.strip() else list(DEFAULT_SCOPES)

        return cls(
            client_id=client_id,
            redirect_uri=env.get("SPOTIFY_REDIRECT_URI", DEFAULT_REDIRECT_URI),
            relay_url=env.get("SPOTLIGHT_RELAY_URL", DEFAULT_RELAY_URL),
            session_path=Path(env.get("SPOTLIGHT_SESSION_PATH", DEFAULT_SESSION_PATH)),
            scopes=scopes,
            client_secret=client_secret,
        )
