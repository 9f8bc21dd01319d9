"""Dynamic domain registration core.

Clients obtain a random subdomain under a fixed root domain, bind it to a set
of addresses or a TXT value, and renew it before its TTL runs out.

Features:
- Reversed-label storage paths grouping subdomains by suffix
- Ownership tokens kept in step with the registration TTL
- Minimal add/remove host reconciliation
- ACME DNS-01 challenge values in a suffix-indexed namespace

Usage:
    from rdns.domains import DomainBackend, DomainOptions
    from rdns.store import MemoryStore

    backend = DomainBackend(MemoryStore(), root_domain="lb.example.com")
    domain = await backend.create_host(DomainOptions.for_hosts(["1.2.3.4"]))
    await backend.renew_host(DomainOptions(fqdn=domain.fqdn))
"""

from rdns.domains.backend import DomainBackend
from rdns.domains.expiration import ExpirationRefresher
from rdns.domains.hosts import RecordStore, generate_slug
from rdns.domains.paths import (
    acme_root,
    decode_host_value,
    encode_host_key,
    encode_host_value,
    from_storage_path,
    from_token_path,
    is_acme_challenge,
    to_acme_path,
    to_storage_path,
    to_text_path,
    to_token_path,
)
from rdns.domains.reconcile import HostDiff, HostReconciler, reconcile
from rdns.domains.records import Domain, DomainOptions, HostRecord, TextRecord
from rdns.domains.text import TextRecordStore
from rdns.domains.tokens import TokenManager, generate_token

__all__ = [
    "DomainBackend",
    "RecordStore",
    "TextRecordStore",
    "TokenManager",
    "ExpirationRefresher",
    "HostReconciler",
    "HostDiff",
    "reconcile",
    "Domain",
    "DomainOptions",
    "HostRecord",
    "TextRecord",
    "generate_slug",
    "generate_token",
    "to_storage_path",
    "from_storage_path",
    "to_token_path",
    "from_token_path",
    "to_acme_path",
    "to_text_path",
    "acme_root",
    "is_acme_challenge",
    "encode_host_key",
    "encode_host_value",
    "decode_host_value",
]
