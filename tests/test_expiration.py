"""Tests for renewal of registrations and their ACME entries."""

from __future__ import annotations

import pytest

from rdns.domains import DomainBackend
from rdns.domains.expiration import ExpirationRefresher
from rdns.domains.records import DomainOptions
from rdns.domains.tokens import TokenManager
from rdns.errors import PreconditionFailedError, StoreUnavailableError
from rdns.store import MemoryStore

TTL = 864000


class FailingAcmeStore(MemoryStore):
    """Store whose TTL refreshes of ACME entries fail."""

    async def set(self, key, value="", *, prev_exist=None, **kwargs):
        if "/_txt/" in key and prev_exist:
            raise StoreUnavailableError("etcd request failed: ReadTimeout", details={"key": key})
        return await super().set(key, value, prev_exist=prev_exist, **kwargs)


@pytest.fixture
def refresher(store):
    return ExpirationRefresher(store, TokenManager(store, TTL), TTL, prefix="/rdns")


class TestRenew:
    """Tests for renew_host through the backend."""

    @pytest.mark.asyncio
    async def test_refreshes_every_challenge_of_domain(self, backend, store, clock):
        """Test that renew resets the TTL of all matching ACME entries."""
        created = await backend.create_host(DomainOptions.for_hosts(["1.2.3.4"]))
        names = [f"_acme-challenge.{created.fqdn}", f"_acme-challenge.www.{created.fqdn}"]
        for i, name in enumerate(names):
            await backend.create_text(DomainOptions.for_text(name, f"tok{i}"))
        await backend.create_text(
            DomainOptions.for_text("_acme-challenge.other.lb.rancher.cloud", "x")
        )

        clock.advance(1000)
        await backend.renew_host(DomainOptions(fqdn=created.fqdn))

        for i, name in enumerate(names):
            path = backend.texts.path(name)
            node = await store.get(path)
            assert node.ttl == TTL
            assert node.value == f'{{"text":"tok{i}"}}'

        other = await store.get("/rdns/_txt/_acme-challenge/other/lb/rancher/cloud")
        assert other.ttl == TTL - 1000

    @pytest.mark.asyncio
    async def test_renew_refreshes_token(self, backend, store, clock):
        """Test that the token TTL moves with the registration."""
        created = await backend.create_host(DomainOptions.for_hosts(["1.2.3.4"]))
        token = await backend.get_token_origin(created.fqdn)

        clock.advance(1000)
        renewed = await backend.renew_host(DomainOptions(fqdn=created.fqdn))

        node = await store.get(f"/token_origin/{created.fqdn.replace('.', '_')}")
        assert node.value == token
        assert node.ttl == TTL
        assert renewed.hosts == ["1.2.3.4"]
        assert (renewed.expiration - clock.now).total_seconds() == TTL


    @pytest.mark.asyncio
    async def test_acme_failure_aborts_renew(self, clock):
        """Test that a failed ACME refresh fails the whole renew."""
        store = FailingAcmeStore(clock=clock)
        backend = DomainBackend(store, "lb.rancher.cloud", prefix="/rdns", ttl=TTL)
        created = await backend.create_host(DomainOptions.for_hosts(["1.2.3.4"]))
        challenge = f"_acme-challenge.{created.fqdn}"
        await backend.create_text(DomainOptions.for_text(challenge, "tok"))

        clock.advance(1000)
        with pytest.raises(StoreUnavailableError):
            await backend.renew_host(DomainOptions(fqdn=created.fqdn))

        node = await store.get(backend.texts.path(challenge))
        assert node.ttl == TTL - 1000
        assert node.value == '{"text":"tok"}'


class TestExpirationRefresher:
    """Tests for the refresher on its own."""

    @pytest.mark.asyncio
    async def test_no_acme_root(self, refresher):
        """Test that a store without challenges refreshes nothing."""
        assert await refresher.refresh_acme_entries("x1.lb.rancher.cloud") == []

    @pytest.mark.asyncio
    async def test_returns_refreshed_keys(self, refresher, store):
        """Test the refreshed key list and that similar names are skipped."""
        await store.set("/rdns/_txt/_acme-challenge/x1/lb/rancher/cloud", '{"text":"a"}', ttl=5)
        await store.set("/rdns/_txt/_acme-challenge/ax1/lb/rancher/cloud", '{"text":"b"}', ttl=5)

        refreshed = await refresher.refresh_acme_entries("x1.lb.rancher.cloud")

        assert refreshed == ["/rdns/_txt/_acme-challenge/x1/lb/rancher/cloud"]
        skipped = await store.get("/rdns/_txt/_acme-challenge/ax1/lb/rancher/cloud")
        assert skipped.ttl == 5

    @pytest.mark.asyncio
    async def test_missing_directory(self, refresher, store):
        """Test that renew fails when the registration is gone but the token remains."""
        await refresher.tokens.ensure_token("x1.lb.rancher.cloud", must_exist=False)
        with pytest.raises(PreconditionFailedError):
            await refresher.refresh(
                "/rdns/cloud/rancher/lb/x1", DomainOptions(fqdn="x1.lb.rancher.cloud")
            )
