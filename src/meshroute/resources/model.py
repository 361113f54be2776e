from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union


VIRTUAL_SERVICE_API_VERSION = "networking.istio.io/v1alpha3"
SERVICE_API_VERSION = "v1"

FQDN_ANNOTATION = "cloudfoundry.org/fqdn"
ROUTE_FQDN_ANNOTATION = "cloudfoundry.org/route-fqdn"
APP_GUID_LABEL = "cloudfoundry.org/app_guid"
PROCESS_TYPE_LABEL = "cloudfoundry.org/process_type"
ROUTE_GUID_LABEL = "cloudfoundry.org/route_guid"


@dataclass(frozen=True)
class ObjectMeta:
    name: str
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_manifest(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        if self.namespace:
            out["namespace"] = self.namespace
        out["labels"] = dict(self.labels)
        out["annotations"] = dict(self.annotations)
        return out


# ----------------------------
# VirtualService (istio)
# ----------------------------


@dataclass(frozen=True)
class HTTPMatchRequest:
    prefix: str

    def to_manifest(self) -> dict[str, Any]:
        return {"uri": {"prefix": self.prefix}}


@dataclass(frozen=True)
class HTTPRouteDestination:
    host: str
    weight: int
    request_headers: dict[str, str] = field(default_factory=dict)

    def to_manifest(self) -> dict[str, Any]:
        return {
            "destination": {"host": self.host},
            "headers": {"request": {"set": dict(self.request_headers)}},
            "weight": self.weight,
        }


@dataclass(frozen=True)
class HTTPRoute:
    route: tuple[HTTPRouteDestination, ...]
    match: Optional[HTTPMatchRequest] = None  # None = match every path

    def to_manifest(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.match is not None:
            out["match"] = [self.match.to_manifest()]
        out["route"] = [d.to_manifest() for d in self.route]
        return out


@dataclass(frozen=True)
class VirtualService:
    metadata: ObjectMeta
    hosts: tuple[str, ...]
    gateways: tuple[str, ...]
    http: tuple[HTTPRoute, ...]

    api_version = VIRTUAL_SERVICE_API_VERSION
    kind = "VirtualService"

    @property
    def fqdn(self) -> str:
        return self.hosts[0]

    def to_manifest(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_manifest(),
            "spec": {
                "hosts": list(self.hosts),
                "gateways": list(self.gateways),
                "http": [h.to_manifest() for h in self.http],
            },
        }


# ----------------------------
# Service (core/v1)
# ----------------------------


@dataclass(frozen=True)
class ServicePort:
    port: int
    name: str = "http"

    def to_manifest(self) -> dict[str, Any]:
        return {"port": self.port, "name": self.name}


@dataclass(frozen=True)
class Service:
    metadata: ObjectMeta
    selector: dict[str, str]
    ports: tuple[ServicePort, ...]

    api_version = SERVICE_API_VERSION
    kind = "Service"

    def to_manifest(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_manifest(),
            "spec": {
                "selector": dict(self.selector),
                "ports": [p.to_manifest() for p in self.ports],
            },
        }


Resource = Union[VirtualService, Service]
