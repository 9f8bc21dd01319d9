"""TXT registrations, including ACME DNS-01 challenge values.

A TXT registration is a single key holding ``{"text": "<value>"}``. Names
carrying the ``_acme-challenge`` label are stored under the ``_txt``
namespace in forward label order; every other name uses the ordinary
reversed-label path.
"""

from __future__ import annotations

import structlog

from rdns.domains.paths import to_text_path
from rdns.domains.records import Domain, DomainOptions, TextRecord
from rdns.errors import NotFoundError
from rdns.store.base import KeyValueStore

logger = structlog.get_logger()


class TextRecordStore:
    """Single-value TXT registrations."""

    def __init__(self, store: KeyValueStore, prefix: str = "", ttl: int = 864000) -> None:
        self.store = store
        self.prefix = prefix
        self.ttl = ttl

    def path(self, fqdn: str) -> str:
        return to_text_path(fqdn, self.prefix)

    async def _exists(self, path: str) -> bool:
        try:
            await self.store.get(path)
        except NotFoundError:
            return False
        return True

    async def set_text(self, path: str, opts: DomainOptions, exists: bool) -> Domain:
        node = await self.store.set(
            path,
            TextRecord(opts.text).to_json(),
            ttl=self.ttl,
            prev_exist=True if exists else None,
        )
        domain = Domain(fqdn=opts.fqdn, text=opts.text, expiration=node.expiration)
        logger.debug("Finished setting text entry", path=path, domain=str(domain))
        return domain

    async def create_text(self, opts: DomainOptions) -> Domain:
        path = self.path(opts.fqdn)
        return await self.set_text(path, opts, await self._exists(path))

    async def update_text(self, opts: DomainOptions) -> Domain:
        path = self.path(opts.fqdn)
        return await self.set_text(path, opts, await self._exists(path))

    async def get_text(self, opts: DomainOptions) -> Domain:
        """Read the stored text value.

        Raises:
            NotFoundError: If no TXT registration exists.
            DataIntegrityError: If the stored value is not a text record.
        """
        node = await self.store.get(self.path(opts.fqdn))
        record = TextRecord.from_json(node.value)
        return Domain(fqdn=opts.fqdn, text=record.text, expiration=node.expiration)

    async def delete_text(self, opts: DomainOptions) -> None:
        path = self.path(opts.fqdn)
        logger.debug("Deleting text entry", path=path)
        # Challenge keys can end up with children from nested names.
        await self.store.delete(path, dir=True, recursive=True)
