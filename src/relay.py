"""Server-side token relay.

Holds the confidential client secret and brokers the authorization-code
grant on behalf of the browser. Run with ``python scripts/run.py relay``.
"""

import logging
from typing import Optional

import requests
from flask import Flask, jsonify, request

from src.auth.spotify_web_auth import SPOTIFY_TOKEN_URL
from src.config import Settings

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_relay_app(settings: Optional[Settings] = None, http=None) -> Flask:
    """
    Build the relay Flask app.

    Args:
        settings: Client id/secret source (defaults to Settings.from_env)
        http: Object with a requests-compatible ``post`` (defaults to requests)
    """
    if settings is None:
        settings = Settings.from_env(require_secret=True)
    http = http or requests

    app = Flask(__name__)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(error="Method not allowed"), 405

    @app.route("/healthz")
    def healthz():
        """Liveness check."""
        return jsonify(status="ok")

    @app.route("/api/callback", methods=ALL_METHODS, provide_automatic_options=False)
    def callback():
        """
        Exchange {code, verifier, redirectUri} for Spotify's token response.

        The provider's JSON (tokens or its error body) is returned verbatim.
        """
        if request.method != "POST":
            return jsonify(error="Method not allowed"), 405

        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify(error="Expected a JSON body"), 400

        form = {
            "client_id": settings.client_id,
            "client_secret": settings.client_secret,
            "grant_type": "authorization_code",
            "code": body.get("code"),
            "redirect_uri": body.get("redirectUri"),
            "code_verifier": body.get("verifier"),
        }

        try:
            resp = http.post(
                SPOTIFY_TOKEN_URL,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Token endpoint call failed: %s", e)
            return jsonify(error=str(e)), 500

        if isinstance(data, dict) and "error" in data:
            logger.info("Spotify rejected grant: %s", data.get("error"))
        return jsonify(data), 200

    return app
