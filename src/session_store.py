"""Key-value stores for the login verifier and access token."""

import json
import logging
from pathlib import Path
from typing import MutableMapping, Optional, Union

logger = logging.getLogger(__name__)

VERIFIER_KEY = "code_verifier"
TOKEN_KEY = "spotify_token"


class SessionStore:
    """JSON-file backed store that survives restarts and redirects.

    With a ``namespace`` every entry lives under that name in the file, so
    several browsers can share one file without seeing each other's
    verifier. Without one the file holds a single flat session (CLI).

    Entries never expire; they stay until removed (logout) or the file is
    deleted. No locking: two flows sharing one namespace can overwrite each
    other's verifier.
    """

    def __init__(self, path: Union[str, Path] = "data/cache/session.json", namespace: Optional[str] = None):
        self.path = Path(path)
        self.namespace = namespace
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[str]:
        return self._scope(self._load()).get(key)

    def set(self, key: str, value: str):
        data = self._load()
        if self.namespace is None:
            data[key] = value
        else:
            scope = data.get(self.namespace)
            if not isinstance(scope, dict):
                scope = data[self.namespace] = {}
            scope[key] = value
        self._save(data)

    def remove(self, key: str):
        data = self._load()
        scope = self._scope(data)
        if key not in scope:
            return

        del scope[key]
        if self.namespace is not None and not scope:
            del data[self.namespace]
        self._save(data)

    def clear(self):
        """Remove every entry of this session."""
        if self.namespace is None:
            if self.path.exists():
                self.path.unlink()
            return

        data = self._load()
        if self.namespace in data:
            del data[self.namespace]
            self._save(data)

    def _scope(self, data: dict) -> dict:
        if self.namespace is None:
            return data
        scope = data.get(self.namespace)
        return scope if isinstance(scope, dict) else {}

    def _load(self) -> dict:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}

        return data if isinstance(data, dict) else {}

    def _save(self, data: dict):
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)


class MemoryStore:
    """Store over a mutable mapping, e.g. ``st.session_state``.

    Lives only as long as the mapping; used for the per-visitor access token.
    """

    KEYS = (VERIFIER_KEY, TOKEN_KEY)

    def __init__(self, mapping: Optional[MutableMapping] = None):
        self.mapping = {} if mapping is None else mapping

    def get(self, key: str) -> Optional[str]:
        return self.mapping.get(key)

    def set(self, key: str, value: str):
        self.mapping[key] = value

    def remove(self, key: str):
        if key in self.mapping:
            del self.mapping[key]

    def clear(self):
        for key in self.KEYS:
            self.remove(key)
