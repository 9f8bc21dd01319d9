"""Tests for address registrations."""

from __future__ import annotations

import re

import pytest

from rdns.domains import hosts as hosts_module
from rdns.domains.hosts import SLUG_ALPHABET, RecordStore, generate_slug
from rdns.domains.records import DomainOptions
from rdns.domains.tokens import TokenManager
from rdns.errors import (
    DataIntegrityError,
    NotFoundError,
    PreconditionFailedError,
    SlugExhaustedError,
)
from rdns.store import MemoryStore

TTL = 864000
SLUG_FQDN = re.compile(r"^[a-z0-9]{6}\.lb\.rancher\.cloud$")


class RecordingStore(MemoryStore):
    """MemoryStore that records every write."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.writes: list[tuple[str, str]] = []

    async def set(self, key, value="", **kwargs):
        self.writes.append(("set", key))
        return await super().set(key, value, **kwargs)

    async def delete(self, key, **kwargs):
        self.writes.append(("delete", key))
        return await super().delete(key, **kwargs)


def _records(store, **kwargs) -> RecordStore:
    return RecordStore(
        store,
        TokenManager(store, TTL),
        "lb.rancher.cloud",
        prefix="/rdns",
        ttl=TTL,
        **kwargs,
    )


def _slugs(monkeypatch, *values):
    """Make generate_slug return ``values`` in order and count the calls."""
    calls = []
    pending = list(values)

    def fake(length=6):
        calls.append(length)
        return pending.pop(0) if len(pending) > 1 else pending[0]

    monkeypatch.setattr(hosts_module, "generate_slug", fake)
    return calls


class TestGenerateSlug:
    """Tests for random slug generation."""

    def test_shape(self):
        """Test length and alphabet."""
        slug = generate_slug()
        assert len(slug) == 6
        assert set(slug) <= set(SLUG_ALPHABET)

    def test_custom_length(self):
        """Test a longer slug."""
        assert len(generate_slug(10)) == 10


class TestCreate:
    """Tests for RecordStore.create."""

    @pytest.mark.asyncio
    async def test_create(self, store, clock):
        """Test that create registers a random subdomain with its hosts."""
        records = _records(store)
        domain = await records.create(DomainOptions.for_hosts(["1.2.3.4", "5.6.7.8"]))

        assert SLUG_FQDN.match(domain.fqdn)
        assert sorted(domain.hosts) == ["1.2.3.4", "5.6.7.8"]
        assert (domain.expiration - clock.now).total_seconds() == TTL

        slug = domain.fqdn.split(".")[0]
        directory = await store.get(f"/rdns/cloud/rancher/lb/{slug}")
        assert directory.dir is True
        assert sorted(child.name for child in directory.nodes) == ["1_2_3_4", "5_6_7_8"]

        token = await store.get(f"/token_origin/{slug}_lb_rancher_cloud")
        assert len(token.value) == 32
        assert token.ttl == TTL

    @pytest.mark.asyncio
    async def test_create_ignores_requested_fqdn(self, store):
        """Test that callers cannot pick the subdomain."""
        domain = await _records(store).create(
            DomainOptions.for_hosts(["1.2.3.4"], fqdn="mine.lb.rancher.cloud")
        )
        assert domain.fqdn != "mine.lb.rancher.cloud"
        assert SLUG_FQDN.match(domain.fqdn)

    @pytest.mark.asyncio
    async def test_duplicate_hosts_collapse(self, store):
        """Test that repeated hosts are stored once."""
        domain = await _records(store).create(DomainOptions.for_hosts(["1.2.3.4", "1.2.3.4"]))
        assert domain.hosts == ["1.2.3.4"]

    @pytest.mark.asyncio
    async def test_taken_slug_retried(self, store, monkeypatch):
        """Test that an occupied slug is skipped."""
        await store.set("/rdns/cloud/rancher/lb/aaaaaa", dir=True)
        calls = _slugs(monkeypatch, "aaaaaa", "bbbbbb")

        domain = await _records(store).create(DomainOptions.for_hosts(["1.2.3.4"]))

        assert domain.fqdn == "bbbbbb.lb.rancher.cloud"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_slug_exhaustion(self, store, monkeypatch):
        """Test that create gives up after the attempt bound."""
        await store.set("/rdns/cloud/rancher/lb/aaaaaa", dir=True)
        calls = _slugs(monkeypatch, "aaaaaa")

        with pytest.raises(SlugExhaustedError) as exc_info:
            await _records(store, max_slug_attempts=5).create(
                DomainOptions.for_hosts(["1.2.3.4"])
            )

        assert len(calls) == 5
        assert exc_info.value.details["attempts"] == 5
        with pytest.raises(NotFoundError):
            await store.get("/token_origin/aaaaaa_lb_rancher_cloud")


class TestGetUpdateDelete:
    """Tests for reading and changing existing registrations."""

    @pytest.mark.asyncio
    async def test_get(self, store):
        """Test reading hosts back."""
        records = _records(store)
        created = await records.create(DomainOptions.for_hosts(["1.2.3.4"]))

        domain = await records.get(DomainOptions(fqdn=created.fqdn))

        assert domain.fqdn == created.fqdn
        assert domain.hosts == ["1.2.3.4"]
        assert domain.expiration == created.expiration

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """Test NotFoundError for an unknown domain."""
        with pytest.raises(NotFoundError):
            await _records(store).get(DomainOptions(fqdn="nope00.lb.rancher.cloud"))

    @pytest.mark.asyncio
    async def test_get_corrupt_host(self, store):
        """Test that a malformed host entry surfaces as DataIntegrityError."""
        await store.set("/rdns/cloud/rancher/lb/x1/1_2_3_4", "garbage")
        with pytest.raises(DataIntegrityError):
            await _records(store).get(DomainOptions(fqdn="x1.lb.rancher.cloud"))

    @pytest.mark.asyncio
    async def test_update_replaces_hosts(self):
        """Test that update converges on the new host set."""
        store = RecordingStore()
        records = _records(store)
        created = await records.create(DomainOptions.for_hosts(["1.2.3.4", "5.6.7.8"]))
        directory = records.path(created.fqdn)
        store.writes.clear()

        domain = await records.update(
            DomainOptions.for_hosts(["5.6.7.8", "9.9.9.9"], fqdn=created.fqdn)
        )

        assert sorted(domain.hosts) == ["5.6.7.8", "9.9.9.9"]
        assert sorted((await records.get(DomainOptions(fqdn=created.fqdn))).hosts) == [
            "5.6.7.8",
            "9.9.9.9",
        ]
        host_writes = [w for w in store.writes if w[1].startswith(directory + "/")]
        assert host_writes == [
            ("delete", f"{directory}/1_2_3_4"),
            ("set", f"{directory}/9_9_9_9"),
        ]

    @pytest.mark.asyncio
    async def test_update_same_hosts_no_host_writes(self):
        """Test that an unchanged host set issues no host operations."""
        store = RecordingStore()
        records = _records(store)
        created = await records.create(DomainOptions.for_hosts(["1.2.3.4", "5.6.7.8"]))
        directory = records.path(created.fqdn)
        store.writes.clear()

        await records.update(
            DomainOptions.for_hosts(["5.6.7.8", "1.2.3.4"], fqdn=created.fqdn)
        )

        assert [w for w in store.writes if w[1].startswith(directory + "/")] == []
        assert ("set", directory) in store.writes

    @pytest.mark.asyncio
    async def test_update_keeps_token(self, store):
        """Test that the token survives updates."""
        records = _records(store)
        created = await records.create(DomainOptions.for_hosts(["1.2.3.4"]))
        token = await records.tokens.get_token_origin(created.fqdn)

        await records.update(DomainOptions.for_hosts(["5.6.7.8"], fqdn=created.fqdn))

        assert await records.tokens.get_token_origin(created.fqdn) == token

    @pytest.mark.asyncio
    async def test_update_unknown_domain_registers_it(self, store):
        """Test that updating an absent name creates it with a new token."""
        records = _records(store)
        domain = await records.update(
            DomainOptions.for_hosts(["1.2.3.4"], fqdn="custom.lb.rancher.cloud")
        )

        assert domain.hosts == ["1.2.3.4"]
        assert (await records.get(DomainOptions(fqdn="custom.lb.rancher.cloud"))).hosts == [
            "1.2.3.4"
        ]
        assert await records.tokens.get_token_origin("custom.lb.rancher.cloud")

    @pytest.mark.asyncio
    async def test_update_with_lapsed_token(self, store):
        """Test that an existing registration without a token cannot be updated."""
        await store.set("/rdns/cloud/rancher/lb/x1", dir=True)
        with pytest.raises(PreconditionFailedError):
            await _records(store).update(
                DomainOptions.for_hosts(["1.2.3.4"], fqdn="x1.lb.rancher.cloud")
            )

    @pytest.mark.asyncio
    async def test_delete(self, store):
        """Test that delete removes hosts but leaves the token to expire."""
        records = _records(store)
        created = await records.create(DomainOptions.for_hosts(["1.2.3.4"]))

        await records.delete(DomainOptions(fqdn=created.fqdn))

        with pytest.raises(NotFoundError):
            await records.get(DomainOptions(fqdn=created.fqdn))
        assert await records.tokens.get_token_origin(created.fqdn)

    @pytest.mark.asyncio
    async def test_delete_missing(self, store):
        """Test NotFoundError when deleting an unknown domain."""
        with pytest.raises(NotFoundError):
            await _records(store).delete(DomainOptions(fqdn="nope00.lb.rancher.cloud"))


class TestExpiry:
    """Tests for TTL behaviour of registrations."""

    @pytest.mark.asyncio
    async def test_lapses_without_renew(self, store, clock):
        """Test that a registration and its token vanish after the TTL."""
        records = _records(store)
        created = await records.create(DomainOptions.for_hosts(["1.2.3.4"]))

        clock.advance(TTL + 1)

        with pytest.raises(NotFoundError):
            await records.get(DomainOptions(fqdn=created.fqdn))
        with pytest.raises(NotFoundError):
            await records.tokens.get_token_origin(created.fqdn)

    @pytest.mark.asyncio
    async def test_renew_extends(self, store, clock):
        """Test that renew pushes the expiration forward."""
        records = _records(store)
        created = await records.create(DomainOptions.for_hosts(["1.2.3.4"]))

        clock.advance(TTL - 10)
        renewed = await records.renew(DomainOptions(fqdn=created.fqdn))
        clock.advance(20)

        domain = await records.get(DomainOptions(fqdn=created.fqdn))
        assert domain.hosts == ["1.2.3.4"]
        assert renewed.hosts == ["1.2.3.4"]
        assert renewed.expiration > created.expiration
        assert await records.tokens.get_token_origin(created.fqdn)

    @pytest.mark.asyncio
    async def test_renew_missing(self, store):
        """Test that renewing an unknown domain fails its precondition."""
        with pytest.raises(PreconditionFailedError):
            await _records(store).renew(DomainOptions(fqdn="nope00.lb.rancher.cloud"))
