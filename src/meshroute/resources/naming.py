from __future__ import annotations

import hashlib

VIRTUAL_SERVICE_PREFIX = "vs-"
SERVICE_PREFIX = "s-"


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def virtual_service_name(fqdn: str) -> str:
    """
    Stable k8s resource name for the VirtualService of an FQDN.

    FQDNs may hold wildcards, unicode or run past the 253 char name limit,
    so the name is a fixed-length digest rather than the FQDN itself.
    """
    return f"{VIRTUAL_SERVICE_PREFIX}{_sha256_hex(fqdn)}"


def service_name(destination_guid: str) -> str:
    # guids may start with a digit; k8s service names must not
    return f"{SERVICE_PREFIX}{destination_guid}"
