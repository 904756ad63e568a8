"""PKCE code_verifier / code_challenge generation (RFC 7636, S256)."""

import base64
import hashlib
import secrets

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 128


def generate_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """
    Generate a cryptographically random code_verifier.

    Each random byte is reduced modulo the 62-symbol alphabet.

    Args:
        length: Verifier length, between 43 and 128 inclusive

    Returns:
        Random alphanumeric string of exactly ``length`` characters

    Raises:
        ValueError: If length is outside [43, 128]
    """
    if isinstance(length, bool) or not isinstance(length, int):
        raise ValueError(f"Verifier length must be an integer, got {length!r}")
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"Verifier length must be between {MIN_VERIFIER_LENGTH} and "
            f"{MAX_VERIFIER_LENGTH}, got {length}"
        )

    return "".join(ALPHABET[b % len(ALPHABET)] for b in secrets.token_bytes(length))


def derive_challenge(verifier: str) -> str:
    """Return base64url(sha256(verifier)) without '=' padding."""
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_pkce_pair(length: int = DEFAULT_VERIFIER_LENGTH) -> tuple[str, str]:
    """Generate PKCE code_verifier and code_challenge."""
    verifier = generate_verifier(length)
    return verifier, derive_challenge(verifier)
