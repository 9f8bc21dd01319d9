"""Renewal of a registration's TTL.

A renew pushes three things forward together: the ownership token, the
registration directory, and every ACME challenge entry that belongs to the
domain. Any failure aborts the renew; a challenge entry left with its old
TTL could lapse in the middle of a pending validation.
"""

from __future__ import annotations

import structlog

from rdns.domains.paths import acme_root, forward_label_path, key_contains_labels
from rdns.domains.reconcile import read_hosts
from rdns.domains.records import Domain, DomainOptions
from rdns.domains.tokens import TokenManager
from rdns.errors import NotFoundError
from rdns.store.base import KeyValueStore

logger = structlog.get_logger()


class ExpirationRefresher:
    """Refreshes token, directory and ACME TTLs for one domain."""

    def __init__(
        self,
        store: KeyValueStore,
        tokens: TokenManager,
        ttl: int,
        prefix: str = "",
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.ttl = ttl
        self.prefix = prefix

    async def refresh(self, path: str, opts: DomainOptions) -> Domain:
        """Renew the registration stored at ``path``.

        Raises:
            PreconditionFailedError: If the token or directory vanished.
        """
        await self.tokens.ensure_token(opts.fqdn, must_exist=True)

        logger.debug("Refreshing directory TTL", path=path, ttl=self.ttl)
        node = await self.store.set(path, ttl=self.ttl, dir=True, prev_exist=True)
        hosts = await read_hosts(self.store, path)

        refreshed = await self.refresh_acme_entries(opts.fqdn)
        logger.debug("Renewed domain", fqdn=opts.fqdn, acme_entries=len(refreshed))

        return Domain(fqdn=opts.fqdn, hosts=hosts, expiration=node.expiration)

    async def refresh_acme_entries(self, fqdn: str) -> list[str]:
        """Rewrite every ACME entry for ``fqdn`` with its value and a fresh TTL.

        Returns:
            Keys of the refreshed entries.
        """
        root = acme_root(self.prefix)
        try:
            listing = await self.store.get(root, recursive=True, sort=True)
        except NotFoundError:
            return []

        labels = forward_label_path(fqdn)
        refreshed = []
        for node in listing.leaves():
            if not key_contains_labels(node.key, labels):
                continue
            current = await self.store.get(node.key)
            logger.debug("Refreshing ACME entry TTL", key=node.key)
            await self.store.set(node.key, current.value, ttl=self.ttl, prev_exist=True)
            refreshed.append(node.key)
        return refreshed
