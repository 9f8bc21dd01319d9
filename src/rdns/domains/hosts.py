"""Address registrations: create, read, update, renew and delete.

A registration is a directory at the domain's reversed-label path with one
child per host. Each mutating call first makes sure the domain's ownership
token exists, then writes the directory with a fresh TTL, then reconciles
the host entries.

The steps are separate store round trips. Two concurrent updates of the same
domain can interleave, and the final host set is decided per host key by
whichever write landed last.
"""

from __future__ import annotations

import secrets
import string

import structlog

from rdns.domains.expiration import ExpirationRefresher
from rdns.domains.paths import decode_host_value, to_storage_path
from rdns.domains.reconcile import HostReconciler, read_hosts
from rdns.domains.records import Domain, DomainOptions
from rdns.domains.tokens import TokenManager
from rdns.errors import NotFoundError, SlugExhaustedError
from rdns.store.base import KeyValueStore

logger = structlog.get_logger()

SLUG_ALPHABET = string.ascii_lowercase + string.digits


def generate_slug(length: int = 6) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


class RecordStore:
    """Address registrations under a fixed root domain."""

    def __init__(
        self,
        store: KeyValueStore,
        tokens: TokenManager,
        root_domain: str,
        prefix: str = "",
        ttl: int = 864000,
        max_slug_attempts: int = 100,
        slug_length: int = 6,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.root_domain = root_domain
        self.prefix = prefix
        self.ttl = ttl
        self.max_slug_attempts = max_slug_attempts
        self.slug_length = slug_length
        self.reconciler = HostReconciler(store)
        self.refresher = ExpirationRefresher(store, tokens, ttl, prefix)

    def path(self, fqdn: str) -> str:
        return to_storage_path(fqdn, self.prefix)

    async def _free_fqdn(self) -> str:
        for attempt in range(1, self.max_slug_attempts + 1):
            fqdn = f"{generate_slug(self.slug_length)}.{self.root_domain}"
            try:
                await self.store.get(self.path(fqdn))
            except NotFoundError:
                logger.debug("Found a free slug", fqdn=fqdn, attempt=attempt)
                return fqdn
            logger.debug("Slug already taken", fqdn=fqdn, attempt=attempt)

        raise SlugExhaustedError(
            f"No free subdomain of {self.root_domain} after {self.max_slug_attempts} attempts",
            details={"root_domain": self.root_domain, "attempts": self.max_slug_attempts},
        )

    async def _set(self, path: str, opts: DomainOptions, exists: bool) -> Domain:
        await self.tokens.ensure_token(opts.fqdn, must_exist=exists)

        logger.debug("Setting registration directory", path=path, exists=exists)
        node = await self.store.set(
            path,
            ttl=self.ttl,
            dir=True,
            prev_exist=True if exists else None,
        )

        current = await read_hosts(self.store, path)
        diff = await self.reconciler.sync(path, current, opts.hosts)
        logger.debug(
            "Reconciled hosts",
            path=path,
            added=sorted(diff.to_add),
            removed=sorted(diff.to_remove),
        )

        return Domain(
            fqdn=opts.fqdn,
            hosts=sorted(opts.host_set),
            expiration=node.expiration,
        )

    async def create(self, opts: DomainOptions) -> Domain:
        """Register a new random subdomain pointing at ``opts.hosts``.

        Raises:
            SlugExhaustedError: If no free slug was found.
        """
        fqdn = await self._free_fqdn()
        opts = DomainOptions(fqdn=fqdn, hosts=opts.hosts)
        await self._set(self.path(fqdn), opts, exists=False)
        return await self.get(opts)

    async def get(self, opts: DomainOptions) -> Domain:
        """Read the current hosts and expiration.

        Raises:
            NotFoundError: If the domain is not registered.
        """
        node = await self.store.get(self.path(opts.fqdn))
        hosts = [decode_host_value(child.value) for child in node.nodes if not child.dir]
        return Domain(fqdn=opts.fqdn, hosts=hosts, expiration=node.expiration)

    async def update(self, opts: DomainOptions) -> Domain:
        """Replace the domain's hosts, creating the registration if needed."""
        path = self.path(opts.fqdn)
        try:
            node = await self.store.get(path)
            exists = node.dir
        except NotFoundError:
            exists = False
        return await self._set(path, opts, exists)

    async def renew(self, opts: DomainOptions) -> Domain:
        """Extend the TTL of the registration, its token and its ACME entries."""
        return await self.refresher.refresh(self.path(opts.fqdn), opts)

    async def delete(self, opts: DomainOptions) -> None:
        """Remove the registration and all its hosts.

        The token is left to expire on its own.
        """
        path = self.path(opts.fqdn)
        logger.debug("Deleting registration", path=path)
        await self.store.delete(path, dir=True, recursive=True)
