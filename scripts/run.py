"""Top Tracks Spotlight -- CLI entry point."""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

load_dotenv(project_root / ".env")

from src.auth.spotify_auth import LoginFlow, SpotifyAuthenticator
from src.collectors.spotify_collector import simplify_profile, simplify_track
from src.config import Settings
from src.errors import ConfigError, SpotlightError
from src.session_store import SessionStore

CLI_REDIRECT_URI = "http://localhost:8888/callback"


def build_flow(redirect_uri=None) -> LoginFlow:
    settings = Settings.from_env()
    if redirect_uri:
        settings.redirect_uri = redirect_uri
    return LoginFlow(settings, SessionStore(settings.session_path))


def cmd_login(args):
    """Run Spotify PKCE login via the local callback server."""
    flow = build_flow(redirect_uri=args.redirect_uri)
    SpotifyAuthenticator(flow, timeout=args.timeout).run_auth_flow()
    print("Login complete! Token stored.")


def cmd_logout(args):
    """Forget the stored token and verifier."""
    build_flow().logout()
    print("Logged out.")


def cmd_top(args):
    """Print profile and top tracks."""
    flow = build_flow()
    if not flow.access_token:
        print("ERROR: Not logged in. Run 'login' first.")
        sys.exit(1)

    data = flow.load_user_data()
    user = simplify_profile(data.profile)
    print(f"Logged in as {user['display_name']}\n")

    if not data.tracks:
        print("No top tracks found.")
        return

    print("Your all-time top tracks:")
    for i, raw in enumerate(data.tracks, start=1):
        track = simplify_track(raw)
        print(f"  {i}. {track['name']} -- {', '.join(track['artists'])}")
        if track["preview_url"]:
            print(f"     preview: {track['preview_url']}")


def cmd_relay(args):
    """Serve the token relay."""
    from src.relay import create_relay_app

    settings = Settings.from_env(require_secret=True)
    app = create_relay_app(settings)
    print(f"Token relay listening on http://{args.host}:{args.port}/api/callback")
    app.run(host=args.host, port=args.port)


def main():
    parser = argparse.ArgumentParser(
        description="Top Tracks Spotlight -- your Spotify profile and top tracks"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # login
    login_p = subparsers.add_parser("login", help="Log in with Spotify (opens a browser)")
    login_p.add_argument("--redirect-uri", default=CLI_REDIRECT_URI,
                         help="Local callback URI registered in the Spotify dashboard")
    login_p.add_argument("--timeout", type=int, default=300, help="Seconds to wait for the callback")

    # logout
    subparsers.add_parser("logout", help="Clear the stored session")

    # top
    subparsers.add_parser("top", help="Show your profile and top tracks")

    # relay
    relay_p = subparsers.add_parser("relay", help="Run the server-side token relay")
    relay_p.add_argument("--host", default="127.0.0.1")
    relay_p.add_argument("--port", type=int, default=5000)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "login": cmd_login,
        "logout": cmd_logout,
        "top": cmd_top,
        "relay": cmd_relay,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return

    try:
        handler(args)
    except ConfigError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except (SpotlightError, RuntimeError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
