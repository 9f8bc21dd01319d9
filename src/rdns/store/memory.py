"""In-process key-value store with etcd v2 semantics.

Used for development and tests. Keys form a tree of directories and leaves;
a node with a TTL disappears together with its subtree once its expiration
passes. Expiry is evaluated lazily against an injectable clock, so tests can
move time forward without sleeping.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog

from rdns.errors import ConflictError, NotFoundError, PreconditionFailedError
from rdns.store.base import KeyValueStore, Node

logger = structlog.get_logger()


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _split(key: str) -> list[str]:
    return [part for part in key.split("/") if part]


@dataclass
class _Entry:
    value: str = ""
    dir: bool = False
    expires_at: datetime | None = None
    children: dict[str, _Entry] = field(default_factory=dict)


class MemoryStore(KeyValueStore):
    """Dictionary-backed store honouring TTLs and existence preconditions.

    Each call holds an asyncio lock, so individual operations are atomic;
    sequences of calls are not, which matches the real store.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._root = _Entry(dir=True)
        self._lock = asyncio.Lock()

    def _purge(self, entry: _Entry, now: datetime) -> None:
        expired = [
            name
            for name, child in entry.children.items()
            if child.expires_at is not None and child.expires_at <= now
        ]
        for name in expired:
            del entry.children[name]
        for child in entry.children.values():
            if child.dir:
                self._purge(child, now)

    def _lookup(self, key: str) -> _Entry | None:
        entry = self._root
        for part in _split(key):
            if not entry.dir:
                return None
            child = entry.children.get(part)
            if child is None:
                return None
            entry = child
        return entry

    def _to_node(self, key: str, entry: _Entry, now: datetime, depth: int) -> Node:
        ttl = None
        if entry.expires_at is not None:
            ttl = max(0, math.ceil((entry.expires_at - now).total_seconds()))
        node = Node(
            key=key or "/",
            value="" if entry.dir else entry.value,
            dir=entry.dir,
            ttl=ttl,
            expiration=entry.expires_at,
        )
        if entry.dir and depth != 0:
            prefix = key.rstrip("/")
            node.nodes = [
                self._to_node(f"{prefix}/{name}", child, now, depth - 1)
                for name, child in entry.children.items()
            ]
        return node

    async def get(self, key: str, *, recursive: bool = False, sort: bool = False) -> Node:
        async with self._lock:
            now = self._clock()
            self._purge(self._root, now)
            entry = self._lookup(key)
            if entry is None:
                raise NotFoundError(f"Key not found: {key}", details={"key": key})
            node = self._to_node(_normalize(key), entry, now, -1 if recursive else 1)
        if sort:
            _sort_nodes(node)
        return node

    async def set(
        self,
        key: str,
        value: str = "",
        *,
        ttl: int | None = None,
        dir: bool = False,
        prev_exist: bool | None = None,
    ) -> Node:
        parts = _split(key)
        if not parts:
            raise ConflictError("Cannot set the root key", details={"key": key})

        async with self._lock:
            now = self._clock()
            self._purge(self._root, now)
            existing = self._lookup(key)

            if prev_exist is True and existing is None:
                raise PreconditionFailedError(
                    f"Key must already exist: {key}", details={"key": key}
                )
            if prev_exist is False and existing is not None:
                raise PreconditionFailedError(f"Key already exists: {key}", details={"key": key})
            if existing is not None and existing.dir != dir:
                raise ConflictError(
                    f"Cannot replace {'directory' if existing.dir else 'value'} at {key}",
                    details={"key": key},
                )
            if existing is not None and dir and prev_exist is not True:
                raise ConflictError(f"Directory already exists: {key}", details={"key": key})

            parent = self._root
            for depth, part in enumerate(parts[:-1], start=1):
                child = parent.children.get(part)
                if child is None:
                    child = parent.children[part] = _Entry(dir=True)
                elif not child.dir:
                    raise ConflictError(
                        f"Not a directory: {_normalize('/'.join(parts[:depth]))}",
                        details={"key": key},
                    )
                parent = child

            expires_at = now + timedelta(seconds=ttl) if ttl else None
            if existing is not None and dir:
                existing.expires_at = expires_at
                entry = existing
            else:
                entry = _Entry(value="" if dir else value, dir=dir, expires_at=expires_at)
                parent.children[parts[-1]] = entry

            logger.debug("memory store set", key=key, dir=dir, ttl=ttl)
            return self._to_node(_normalize(key), entry, now, 0)

    async def delete(self, key: str, *, dir: bool = False, recursive: bool = False) -> Node:
        parts = _split(key)
        if not parts:
            raise ConflictError("Cannot delete the root key", details={"key": key})

        async with self._lock:
            now = self._clock()
            self._purge(self._root, now)
            entry = self._lookup(key)
            if entry is None:
                raise NotFoundError(f"Key not found: {key}", details={"key": key})
            if entry.dir and not (dir or recursive):
                raise ConflictError(f"Not a file: {key}", details={"key": key})
            if entry.dir and entry.children and not recursive:
                raise ConflictError(f"Directory not empty: {key}", details={"key": key})

            parent = self._root
            for part in parts[:-1]:
                parent = parent.children[part]
            del parent.children[parts[-1]]
            logger.debug("memory store delete", key=key, recursive=recursive)
            return self._to_node(_normalize(key), entry, now, 0)


def _normalize(key: str) -> str:
    return "/" + "/".join(_split(key))


def _sort_nodes(node: Node) -> None:
    node.nodes.sort(key=lambda n: n.key)
    for child in node.nodes:
        _sort_nodes(child)
