"""Host set reconciliation.

Given the hosts currently stored under a registration and the hosts the
caller wants, only the difference is written: stale hosts are deleted, new
ones are added, and hosts present in both are left alone.

The operations are independent store writes. If one fails the rest are not
attempted and the registration stays partially reconciled; the failure is
raised as a ``ReconcileError`` carrying the original cause.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from rdns.domains.paths import decode_host_value, encode_host_value, host_key_path
from rdns.errors import RDNSError, ReconcileError
from rdns.store.base import KeyValueStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class HostDiff:
    """Hosts to add and remove to turn one host set into another."""

    to_add: frozenset[str]
    to_remove: frozenset[str]

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove

    @property
    def operation_count(self) -> int:
        return len(self.to_add) + len(self.to_remove)

    def apply(self, current: Iterable[str]) -> frozenset[str]:
        """Result of applying the diff to ``current``."""
        return (frozenset(current) - self.to_remove) | self.to_add


def reconcile(current: Iterable[str], desired: Iterable[str]) -> HostDiff:
    current_set = frozenset(current)
    desired_set = frozenset(desired)
    return HostDiff(
        to_add=desired_set - current_set,
        to_remove=current_set - desired_set,
    )


class HostReconciler:
    """Applies a :class:`HostDiff` under a registration directory."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def apply(self, directory: str, diff: HostDiff) -> int:
        """Delete removed hosts, then write added ones.

        Returns:
            Number of store operations issued.

        Raises:
            ReconcileError: If any delete or write fails.
        """
        applied = 0
        try:
            for host in sorted(diff.to_remove):
                key = host_key_path(directory, host)
                logger.debug("Deleting host entry", key=key, host=host)
                await self.store.delete(key)
                applied += 1
            for host in sorted(diff.to_add):
                key = host_key_path(directory, host)
                logger.debug("Setting host entry", key=key, host=host)
                await self.store.set(key, encode_host_value(host))
                applied += 1
        except RDNSError as e:
            raise ReconcileError(
                f"Host reconciliation for {directory} stopped after {applied} of "
                f"{diff.operation_count} operations: {e.message}",
                details={
                    "directory": directory,
                    "applied": applied,
                    "total": diff.operation_count,
                    "cause": e.to_dict(),
                },
            ) from e
        return applied

    async def sync(self, directory: str, current: Iterable[str], desired: Iterable[str]) -> HostDiff:
        diff = reconcile(current, desired)
        if not diff.is_empty:
            await self.apply(directory, diff)
        return diff


async def read_hosts(store: KeyValueStore, directory: str) -> list[str]:
    """Hosts stored directly under ``directory``.

    Raises:
        NotFoundError: If the directory does not exist.
        DataIntegrityError: If a host entry is malformed.
    """
    node = await store.get(directory)
    return [decode_host_value(child.value) for child in node.nodes if not child.dir]
