"""Ownership tokens ("token origin") for registered domains.

The first write to a domain generates a random token and stores it next to
the registration with the same TTL. Later writes reuse the stored value and
only push its expiration forward, so the token keeps proving who created the
domain for as long as the registration lives.
"""

from __future__ import annotations

import secrets
import string

import structlog

from rdns.domains.paths import to_token_path
from rdns.errors import NotFoundError
from rdns.store.base import KeyValueStore

logger = structlog.get_logger()

TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_token(length: int = 32) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


class TokenManager:
    """Creates, refreshes and reads ownership tokens."""

    def __init__(self, store: KeyValueStore, ttl: int, token_length: int = 32) -> None:
        self.store = store
        self.ttl = ttl
        self.token_length = token_length

    async def ensure_token(self, fqdn: str, must_exist: bool) -> str:
        """Make sure ``fqdn`` has a token and refresh its TTL.

        Args:
            fqdn: The domain the token belongs to.
            must_exist: Require the token key to exist already. Update and
                renew pass True for registrations that are already present.

        Returns:
            The token value (existing or newly generated).

        Raises:
            PreconditionFailedError: If ``must_exist`` is set and no token is stored.
        """
        path = to_token_path(fqdn)
        try:
            node = await self.store.get(path)
        except NotFoundError:
            token = generate_token(self.token_length)
            logger.debug("Generated a new token origin", path=path, token_prefix=token[:4])
        else:
            token = node.value
            logger.debug("Reusing existing token origin", path=path, token_prefix=token[:4])

        await self.store.set(
            path,
            token,
            ttl=self.ttl,
            prev_exist=True if must_exist else None,
        )
        return token

    async def get_token_origin(self, fqdn: str) -> str:
        """Read the token for ``fqdn``.

        Raises:
            NotFoundError: If the domain has no token.
        """
        node = await self.store.get(to_token_path(fqdn))
        return node.value
