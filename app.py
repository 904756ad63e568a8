"""Top Tracks Spotlight -- Streamlit Web App.

Log in with Spotify and show your profile and all-time top tracks.
"""

import secrets

import streamlit as st

from src.auth.spotify_auth import LoginFlow
from src.collectors.spotify_collector import simplify_profile, simplify_track
from src.config import Settings
from src.errors import ConfigError, SpotifyAPIError, TokenExchangeError
from src.session_store import MemoryStore, SessionStore, VERIFIER_KEY

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Top Tracks Spotlight",
    page_icon=":headphones:",
    layout="wide",
)


# ---------------------------------------------------------------------------
# Secrets / config
# ---------------------------------------------------------------------------
def read_secrets() -> dict:
    """Top-level entries of .streamlit/secrets.toml, if there is one."""
    try:
        return {
            key: str(value)
            for key, value in st.secrets.items()
            if isinstance(value, (str, int, float, bool))
        }
    except FileNotFoundError:
        return {}


try:
    settings = Settings.from_env(overrides=read_secrets())
except ConfigError as e:
    st.error(str(e))
    st.stop()

# ---------------------------------------------------------------------------
# Per-visitor session
# ---------------------------------------------------------------------------
# The access token lives in this visitor's st.session_state. The verifier has
# to outlive the redirect (a brand-new Streamlit session), so it goes to the
# durable store under a per-visitor login id that Spotify echoes back as
# ?state=.
query_params = st.query_params
auth_code = query_params.get("code")
auth_error = query_params.get("error")
returned_state = query_params.get("state")

if returned_state:
    st.session_state.login_id = returned_state
elif "login_id" not in st.session_state:
    st.session_state.login_id = secrets.token_urlsafe(16)

flow = LoginFlow(
    settings,
    SessionStore(settings.session_path, namespace=st.session_state.login_id),
    tokens=MemoryStore(st.session_state),
)

# ---------------------------------------------------------------------------
# Handle OAuth callback (runs on every page load)
# ---------------------------------------------------------------------------
if auth_error:
    st.error(f"Spotify login was not completed: {auth_error}")
    flow.store.remove(VERIFIER_KEY)
    st.session_state.pop("auth_url", None)
    st.query_params.clear()
elif auth_code:
    try:
        flow.handle_redirect(auth_code)
    except TokenExchangeError as e:
        st.error(f"Login failed, please try again. ({e})")
    st.session_state.pop("auth_url", None)
    # Drop the consumed code so a refresh does not redeem it again
    st.query_params.clear()


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def show_user(profile: dict):
    user = simplify_profile(profile)
    with st.sidebar:
        if user["image_url"]:
            st.image(user["image_url"], width=64)
        st.write(f"**{user['display_name']}**")
        if st.button("Logout", type="secondary"):
            flow.logout()
            st.session_state.pop("auth_url", None)
            st.rerun()


def display_tracks(tracks: list[dict]):
    if not tracks:
        st.info("No top tracks found.")
        return

    cols = st.columns(3)
    for i, raw in enumerate(tracks):
        track = simplify_track(raw)
        with cols[i % 3]:
            with st.container(border=True):
                if track["image_url"]:
                    st.image(track["image_url"])
                st.subheader(track["name"])
                st.caption(", ".join(track["artists"]))
                if track["preview_url"]:
                    st.audio(track["preview_url"])
                else:
                    st.write(":red[No preview available]")


st.title("Top Tracks Spotlight")

if flow.access_token:
    try:
        with st.spinner("Loading your Spotify data..."):
            data = flow.load_user_data()
    except SpotifyAPIError as e:
        if e.is_auth_failure:
            st.warning("Your Spotify session has expired. Please log in again.")
            if st.button("Start over"):
                st.rerun()
        else:
            st.error(f"Something went wrong. Please try again later. ({e})")
        st.stop()

    show_user(data.profile)
    st.header("Your all-time top tracks")
    display_tracks(data.tracks)
else:
    st.write("Connect your Spotify account to see the tracks you have played most.")
    # Reuse the pending attempt so reruns do not replace the stored verifier
    if "auth_url" not in st.session_state or not flow.store.get(VERIFIER_KEY):
        st.session_state.auth_url = flow.begin_login(state=st.session_state.login_id)
    st.link_button("Login with Spotify", st.session_state.auth_url, type="primary")
