"""
Identity and access-token resolution.

Access tokens are resolved from multiple sources:
1. Explicit value
2. Environment variable (FLASHCARD_ACCESS_TOKEN)
3. System keyring (optional)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from flashcard_stream._features import HAS_KEYRING
from flashcard_stream.telemetry import get_logger

logger = get_logger(__name__)

DEFAULT_TOKEN_ENV = "FLASHCARD_ACCESS_TOKEN"
KEYRING_SERVICE = "flashcard-stream"
KEYRING_USER = "access_token"


@dataclass(frozen=True)
class Identity:
    """The signed-in user on whose behalf cards are generated.

    Attributes:
        id: User identifier
        email: Optional e-mail address
    """

    id: str
    email: str | None = None


@runtime_checkable
class TokenProvider(Protocol):
    """Supplies the session access token sent as a bearer credential."""

    async def get_token(self) -> str | None:
        """Return the current access token, or None if there is none."""
        ...


class StaticTokenProvider:
    """Token provider returning a fixed token."""

    def __init__(self, token: str | None) -> None:
        self._token = token

    async def get_token(self) -> str | None:
        return self._token or None


class EnvTokenProvider:
    """Token provider resolving the token on every call.

    Example:
        >>> provider = EnvTokenProvider()
        >>> token = await provider.get_token()  # FLASHCARD_ACCESS_TOKEN or keyring
    """

    def __init__(self, env_var: str = DEFAULT_TOKEN_ENV, *, use_keyring: bool = True) -> None:
        self._env_var = env_var
        self._use_keyring = use_keyring

    async def get_token(self) -> str | None:
        return resolve_access_token(env_var=self._env_var, use_keyring=self._use_keyring)


def resolve_access_token(
    explicit_token: str | None = None,
    *,
    env_var: str = DEFAULT_TOKEN_ENV,
    use_keyring: bool = True,
) -> str | None:
    """Resolve the access token.

    Resolution order:
    1. Explicit token if provided
    2. Environment variable `env_var`
    3. System keyring (if installed and enabled)

    Args:
        explicit_token: Explicitly provided token
        env_var: Environment variable holding the token
        use_keyring: Whether to consult the system keyring

    Returns:
        Resolved token or None if not found
    """
    if explicit_token:
        return explicit_token

    token = os.getenv(env_var)
    if token:
        return token

    if use_keyring:
        return _try_keyring(KEYRING_USER)
    return None


def _try_keyring(user: str) -> str | None:
    """Try to read the token from the system keyring.

    Args:
        user: Keyring user name under the package's service

    Returns:
        Token from keyring or None
    """
    if not HAS_KEYRING:
        return None

    import keyring
    from keyring.errors import KeyringError

    try:
        return keyring.get_password(KEYRING_SERVICE, user) or None
    except KeyringError as e:
        # Common in containers and headless sessions
        logger.debug("Keyring lookup failed", error=str(e))
        return None


def get_auth_header(token: str | None) -> dict[str, str]:
    """Build the bearer authorization header.

    Args:
        token: Access token

    Returns:
        Dictionary with the Authorization header, empty without a token
    """
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}
