"""Mapping between domain names and store keys.

Ordinary registrations live at the reversed-label path so siblings share a
directory:

    x1.lb.rancher.cloud -> /rdns/cloud/rancher/lb/x1

ACME challenge TXT entries live under a single ``_txt`` root in forward
label order, so every pending challenge can be found with one recursive
listing:

    _acme-challenge.x1.lb.rancher.cloud -> /rdns/_txt/_acme-challenge/x1/lb/rancher/cloud

Ownership tokens use a flat key:

    x1.lb.rancher.cloud -> /token_origin/x1_lb_rancher_cloud
"""

from __future__ import annotations

from rdns.domains.records import HostRecord

TOKEN_ORIGIN_ROOT = "/token_origin"
TXT_LABEL = "_txt"
ACME_LABEL = "_acme-challenge"


def _labels(fqdn: str) -> list[str]:
    return fqdn.strip(".").split(".")


def to_storage_path(fqdn: str, prefix: str = "") -> str:
    """Reversed-label path of a domain under ``prefix``."""
    return prefix + "/" + "/".join(reversed(_labels(fqdn)))


def from_storage_path(path: str, prefix: str = "") -> str:
    """Domain name for a reversed-label path."""
    if prefix and path.startswith(prefix):
        path = path[len(prefix) :]
    return ".".join(reversed(path.strip("/").split("/")))


def format_key(name: str) -> str:
    # 1.1.1.1 => 1_1_1_1
    return name.replace(".", "_")


def to_token_path(fqdn: str) -> str:
    return f"{TOKEN_ORIGIN_ROOT}/{format_key(fqdn)}"


def from_token_path(path: str) -> str:
    return path.rsplit("/", 1)[-1].replace("_", ".")


def is_acme_challenge(fqdn: str) -> bool:
    return ACME_LABEL in _labels(fqdn)


def forward_label_path(fqdn: str) -> str:
    """Labels of ``fqdn`` joined with ``/`` in their original order."""
    return "/".join(_labels(fqdn))


def to_acme_path(fqdn: str, prefix: str = "") -> str:
    return f"{prefix}/{TXT_LABEL}/{forward_label_path(fqdn)}"


def acme_root(prefix: str = "") -> str:
    """Directory holding every ACME challenge entry."""
    return f"{prefix}/{TXT_LABEL}/{ACME_LABEL}"


def to_text_path(fqdn: str, prefix: str = "") -> str:
    """Key of a TXT registration: ACME namespace for challenges, reversed path otherwise."""
    if is_acme_challenge(fqdn):
        return to_acme_path(fqdn, prefix)
    return to_storage_path(fqdn, prefix)


def encode_host_key(host: str) -> str:
    return format_key(host)


def encode_host_value(host: str) -> str:
    return HostRecord(host).to_json()


def decode_host_value(raw: str) -> str:
    """Address stored in a host entry.

    Raises:
        DataIntegrityError: If the payload is not a host record.
    """
    return HostRecord.from_json(raw).host


def host_key_path(directory: str, host: str) -> str:
    return f"{directory}/{encode_host_key(host)}"


def key_contains_labels(key: str, label_path: str) -> bool:
    """Whether ``label_path`` occurs in ``key`` on whole path segments."""
    # A bare substring test would let x1.lb.example.com claim entries of ax1.lb.example.com.
    return f"/{label_path}/" in f"{key.rstrip('/')}/"
