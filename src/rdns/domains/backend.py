"""Backend facade for the request-handling layer.

One :class:`DomainBackend` is built at process start and handed to whatever
serves requests; it owns the key-value store client and closes it on
shutdown.

Usage:
    config = RDNSConfig()
    async with DomainBackend.from_config(config) as backend:
        domain = await backend.create_host(DomainOptions.for_hosts(["1.2.3.4"]))
        token = await backend.get_token_origin(domain.fqdn)
"""

from __future__ import annotations

import structlog

from rdns.core.config import RDNSConfig
from rdns.domains.hosts import RecordStore
from rdns.domains.records import Domain, DomainOptions
from rdns.domains.text import TextRecordStore
from rdns.domains.tokens import TokenManager
from rdns.store.base import KeyValueStore
from rdns.store.etcd import EtcdStore

logger = structlog.get_logger()


class DomainBackend:
    """Address, TXT and token operations over one key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        root_domain: str,
        prefix: str = "/rdns",
        ttl: int = 864000,
        max_slug_attempts: int = 100,
        slug_length: int = 6,
        token_length: int = 32,
    ) -> None:
        self.store = store
        self.root_domain = root_domain
        self.prefix = prefix
        self.ttl = ttl
        self.tokens = TokenManager(store, ttl, token_length)
        self.records = RecordStore(
            store,
            self.tokens,
            root_domain,
            prefix=prefix,
            ttl=ttl,
            max_slug_attempts=max_slug_attempts,
            slug_length=slug_length,
        )
        self.texts = TextRecordStore(store, prefix=prefix, ttl=ttl)

    @classmethod
    def from_config(
        cls,
        config: RDNSConfig,
        store: KeyValueStore | None = None,
    ) -> DomainBackend:
        """Build a backend from settings, connecting to etcd unless a store is given."""
        if store is None:
            store = EtcdStore(config.get_endpoints(), timeout=config.etcd_timeout)
        logger.debug(
            "Backend initialized",
            store=type(store).__name__,
            root_domain=config.root_domain,
            prefix=config.etcd_prefix,
            ttl=config.ttl,
        )
        return cls(
            store,
            config.root_domain,
            prefix=config.etcd_prefix,
            ttl=config.ttl,
            max_slug_attempts=config.max_slug_attempts,
            slug_length=config.slug_length,
            token_length=config.token_length,
        )

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> DomainBackend:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def create_host(self, opts: DomainOptions) -> Domain:
        logger.debug("create_host", hosts=list(opts.hosts))
        return await self.records.create(opts)

    async def get_host(self, opts: DomainOptions) -> Domain:
        logger.debug("get_host", fqdn=opts.fqdn)
        return await self.records.get(opts)

    async def update_host(self, opts: DomainOptions) -> Domain:
        logger.debug("update_host", fqdn=opts.fqdn, hosts=list(opts.hosts))
        return await self.records.update(opts)

    async def renew_host(self, opts: DomainOptions) -> Domain:
        logger.debug("renew_host", fqdn=opts.fqdn)
        return await self.records.renew(opts)

    async def delete_host(self, opts: DomainOptions) -> None:
        logger.debug("delete_host", fqdn=opts.fqdn)
        await self.records.delete(opts)

    async def create_text(self, opts: DomainOptions) -> Domain:
        logger.debug("create_text", fqdn=opts.fqdn)
        return await self.texts.create_text(opts)

    async def get_text(self, opts: DomainOptions) -> Domain:
        logger.debug("get_text", fqdn=opts.fqdn)
        return await self.texts.get_text(opts)

    async def update_text(self, opts: DomainOptions) -> Domain:
        logger.debug("update_text", fqdn=opts.fqdn)
        return await self.texts.update_text(opts)

    async def delete_text(self, opts: DomainOptions) -> None:
        logger.debug("delete_text", fqdn=opts.fqdn)
        await self.texts.delete_text(opts)

    async def get_token_origin(self, fqdn: str) -> str:
        logger.debug("get_token_origin", fqdn=fqdn)
        return await self.tokens.get_token_origin(fqdn.strip().rstrip(".").lower())
