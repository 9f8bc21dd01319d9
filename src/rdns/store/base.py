"""Key-value store interface consumed by the registration core.

The core talks to a hierarchical key space with directories and per-node
TTLs, modelled on the etcd v2 keys API. Implementations raise
:class:`~rdns.errors.NotFoundError` for absent keys so callers can tell
"not there" apart from every other failure.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# etcd reports nanoseconds; datetime keeps microseconds.
_FRACTION = re.compile(r"\.(\d{6})\d+")


def parse_expiration(value: str | None) -> datetime | None:
    """Parse an RFC 3339 expiration timestamp as reported by etcd."""
    if not value:
        return None
    value = _FRACTION.sub(r".\1", value.replace("Z", "+00:00"))
    return datetime.fromisoformat(value)


@dataclass
class Node:
    """A node returned by the store.

    Directory nodes carry their children in ``nodes`` when the read asked for
    them; leaf nodes carry a string ``value``.
    """

    key: str
    value: str = ""
    dir: bool = False
    ttl: int | None = None
    expiration: datetime | None = None
    nodes: list[Node] = field(default_factory=list)

    def walk(self) -> Iterator[Node]:
        """Yield every descendant, depth first, without recursion."""
        stack = list(reversed(self.nodes))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.nodes))

    def leaves(self) -> Iterator[Node]:
        """Yield every non-directory descendant."""
        return (node for node in self.walk() if not node.dir)

    @property
    def name(self) -> str:
        """Last path segment of the key."""
        return self.key.rsplit("/", 1)[-1]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        """Create from an etcd v2 JSON node."""
        return cls(
            key=data.get("key", "/"),
            value=data.get("value", ""),
            dir=data.get("dir", False),
            ttl=data.get("ttl"),
            expiration=parse_expiration(data.get("expiration")),
            nodes=[cls.from_dict(child) for child in data.get("nodes", [])],
        )


class KeyValueStore(ABC):
    """Hierarchical key-value store with TTLs and existence preconditions."""

    @abstractmethod
    async def get(self, key: str, *, recursive: bool = False, sort: bool = False) -> Node:
        """Read a key.

        Directories list their direct children; ``recursive`` lists the
        whole subtree.

        Raises:
            NotFoundError: If the key does not exist.
        """

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str = "",
        *,
        ttl: int | None = None,
        dir: bool = False,
        prev_exist: bool | None = None,
    ) -> Node:
        """Write a key or directory.

        ``prev_exist=True`` requires the key to exist already and
        ``prev_exist=False`` requires it to be absent; ``None`` writes either
        way. Returns the written node with its new expiration.

        Raises:
            PreconditionFailedError: If ``prev_exist`` was not satisfied.
        """

    @abstractmethod
    async def delete(self, key: str, *, dir: bool = False, recursive: bool = False) -> Node:
        """Delete a key, or a directory when ``dir`` is set.

        Raises:
            NotFoundError: If the key does not exist.
        """

    async def close(self) -> None:
        """Release any resources held by the store."""

    async def __aenter__(self) -> KeyValueStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
