"""
Interfaces to the persistence and account-linking layers.

The aggregation core never stores sources or tokens itself. It reads the
user's configured sources from a SourceStore and the already-resolved OAuth
tokens of linked accounts from a CredentialLookup.
"""

import logging
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from zenfeed.content.schemas import ContentSource, Platform

logger = logging.getLogger(__name__)

# Platforms whose sources can use a linked account's token
TOKEN_PLATFORMS = (Platform.YOUTUBE, Platform.INSTAGRAM, Platform.TWITTER)


@runtime_checkable
class SourceStore(Protocol):
    """Read access to a user's configured content sources."""

    async def list_sources(self, user_id: str) -> list[ContentSource]:
        ...


@runtime_checkable
class CredentialLookup(Protocol):
    """Read access to linked-account tokens. None means the account is not connected."""

    async def get_access_token(self, user_id: str, provider: str) -> str | None:
        ...


async def resolve_credentials(
    lookup: CredentialLookup,
    user_id: str,
    platforms: Iterable[Platform],
) -> dict[str, str]:
    """
    Collect the user's tokens for the given platforms.

    Only platforms that accept per-user tokens are queried, each once.
    Unconnected providers are left out so adapters fall back to app-level
    credentials.

    Returns:
        Mapping of platform value -> access token
    """
    credentials: dict[str, str] = {}
    for platform in dict.fromkeys(platforms):
        if platform not in TOKEN_PLATFORMS:
            continue
        token = await lookup.get_access_token(user_id, platform.value)
        if token:
            credentials[platform.value] = token
        else:
            logger.debug(f"No linked {platform.value} account for user {user_id}")
    return credentials
