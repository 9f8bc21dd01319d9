"""Domain request/snapshot types and the stored record formats.

Host entries and text registrations are stored as small JSON objects:

    host entry:        {"host": "1.2.3.4"}
    text registration: {"text": "some-value"}

Parsing goes through :class:`HostRecord` / :class:`TextRecord`, so a
malformed payload always surfaces as a ``DataIntegrityError``.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from rdns.errors import DataIntegrityError

HOST_KEY = "host"
TEXT_KEY = "text"


@dataclass(frozen=True)
class DomainOptions:
    """Caller input for one operation.

    ``hosts`` is treated as a set: order and duplicates do not matter.
    """

    fqdn: str = ""
    hosts: tuple[str, ...] = ()
    text: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "fqdn", self.fqdn.strip().rstrip(".").lower())
        object.__setattr__(self, "hosts", tuple(self.hosts))

    @classmethod
    def for_hosts(cls, hosts: Iterable[str], fqdn: str = "") -> DomainOptions:
        return cls(fqdn=fqdn, hosts=tuple(hosts))

    @classmethod
    def for_text(cls, fqdn: str, text: str) -> DomainOptions:
        return cls(fqdn=fqdn, text=text)

    @property
    def host_set(self) -> frozenset[str]:
        return frozenset(self.hosts)


@dataclass
class Domain:
    """Snapshot of a registration as read from the store.

    ``text`` is None for address registrations; a TXT registration always
    carries a string, possibly empty.
    """

    fqdn: str
    hosts: list[str] = field(default_factory=list)
    text: str | None = None
    expiration: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "fqdn": self.fqdn,
            "expiration": self.expiration.isoformat() if self.expiration else None,
        }
        if self.text is not None:
            data["text"] = self.text
        else:
            data["hosts"] = list(self.hosts)
        return data

    def __str__(self) -> str:
        content = f"text={self.text!r}" if self.text is not None else f"hosts={sorted(self.hosts)}"
        return f"{self.fqdn} {content} expires={self.expiration}"


def _load(raw: str, key: str) -> str:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise DataIntegrityError(
            f"Stored value is not valid JSON: {raw!r}",
            details={"raw": raw},
        ) from e
    if not isinstance(data, dict) or not isinstance(data.get(key), str):
        raise DataIntegrityError(
            f"Stored value has no {key!r} field: {raw!r}",
            details={"raw": raw, "expected": key},
        )
    return data[key]


@dataclass(frozen=True)
class HostRecord:
    """A single address stored under a registration directory."""

    KEY: ClassVar[str] = HOST_KEY

    host: str

    def to_json(self) -> str:
        return json.dumps({self.KEY: self.host}, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> HostRecord:
        return cls(host=_load(raw, cls.KEY))


@dataclass(frozen=True)
class TextRecord:
    """The value of a TXT registration."""

    KEY: ClassVar[str] = TEXT_KEY

    text: str

    def to_json(self) -> str:
        return json.dumps({self.KEY: self.text}, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> TextRecord:
        return cls(text=_load(raw, cls.KEY))
