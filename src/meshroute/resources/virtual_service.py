from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

import structlog

from meshroute.core.config import CompilerConfig
from meshroute.core.errors import (
    DomainMismatchError,
    NamespaceMismatchError,
    RouteValidationError,
    WeightPresenceMismatchError,
    WeightSumError,
)
from meshroute.domain.models import Route, RouteDestination
from meshroute.resources.index import (
    destinations_for_fqdn,
    group_by_fqdn,
    sort_routes_by_url,
    sorted_fqdns,
)
from meshroute.resources.model import (
    FQDN_ANNOTATION,
    HTTPMatchRequest,
    HTTPRoute,
    HTTPRouteDestination,
    ObjectMeta,
    VirtualService,
)
from meshroute.resources.naming import service_name, virtual_service_name

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SkippedFQDN:
    fqdn: str
    reason: str
    route_guid: str
    message: str


@dataclass(frozen=True)
class VirtualServiceBuildResult:
    virtual_services: tuple[VirtualService, ...]
    skipped: tuple[SkippedFQDN, ...]


class VirtualServiceBuilder:
    """
    Compile routes into one istio VirtualService per FQDN.

    Validation failures drop the whole VirtualService of the affected FQDN
    and are reported in the result; other FQDNs are unaffected.
    """

    def __init__(
        self,
        istio_gateways: Optional[Iterable[str]] = None,
        config: Optional[CompilerConfig] = None,
    ) -> None:
        if config is None:
            config = CompilerConfig(istio_gateways=list(istio_gateways or []))
        elif istio_gateways is not None:
            config = config.model_copy(update={"istio_gateways": list(istio_gateways)})
        self.config = config

    def build(self, routes: Iterable[Route]) -> VirtualServiceBuildResult:
        routes_by_fqdn = group_by_fqdn(routes)

        built: List[VirtualService] = []
        skipped: List[SkippedFQDN] = []

        for fqdn in sorted_fqdns(routes_by_fqdn):
            if not destinations_for_fqdn(fqdn, routes_by_fqdn):
                log.debug("virtual_service_no_destinations", fqdn=fqdn)
                continue

            try:
                vs = self._fqdn_to_virtual_service(fqdn, routes_by_fqdn[fqdn])
            except RouteValidationError as e:
                log.error(
                    "virtual_service_skipped",
                    fqdn=fqdn,
                    reason=e.reason,
                    route_guid=e.route_guid,
                    error=e.message,
                )
                skipped.append(
                    SkippedFQDN(fqdn=fqdn, reason=e.reason, route_guid=e.route_guid, message=e.message)
                )
                continue

            log.debug("virtual_service_built", fqdn=fqdn, name=vs.metadata.name, http_routes=len(vs.http))
            built.append(vs)

        return VirtualServiceBuildResult(virtual_services=tuple(built), skipped=tuple(skipped))

    # ----------------------------
    # Per-FQDN compilation
    # ----------------------------

    def _fqdn_to_virtual_service(self, fqdn: str, routes: List[Route]) -> VirtualService:
        _validate_routes_for_fqdn(fqdn, routes)

        if routes[0].spec.domain.internal:
            gateways = (self.config.mesh_gateway,)
        else:
            gateways = tuple(self.config.istio_gateways)

        http: List[HTTPRoute] = []
        for route in sort_routes_by_url(routes):
            if not route.spec.destinations:
                continue

            match = HTTPMatchRequest(prefix=route.spec.path) if route.spec.path else None
            http.append(
                HTTPRoute(
                    route=tuple(self._route_destinations(fqdn, route)),
                    match=match,
                )
            )

        return VirtualService(
            metadata=ObjectMeta(
                name=virtual_service_name(fqdn),
                namespace=routes[0].namespace,
                labels={},
                annotations={FQDN_ANNOTATION: fqdn},
            ),
            hosts=(fqdn,),
            gateways=gateways,
            http=tuple(http),
        )

    def _route_destinations(self, fqdn: str, route: Route) -> List[HTTPRouteDestination]:
        destinations = route.spec.destinations
        weights = resolve_weights(fqdn, route, expected=self.config.expected_weight)

        return [
            HTTPRouteDestination(
                host=service_name(dest.guid),
                weight=weight,
                request_headers=_identity_headers(route, dest),
            )
            for dest, weight in zip(destinations, weights)
        ]


def _validate_routes_for_fqdn(fqdn: str, routes: List[Route]) -> None:
    # Cloud Controller is expected to prevent both of these; it may lag behind.
    first = routes[0]
    for route in routes[1:]:
        if route.spec.domain.internal != first.spec.domain.internal:
            raise DomainMismatchError(
                fqdn,
                route.guid,
                f"route guid {first.guid} and route guid {route.guid} disagree on "
                "whether or not the domain is internal",
            )

    for route in routes[1:]:
        if route.namespace != first.namespace:
            raise NamespaceMismatchError(
                fqdn,
                route.guid,
                f"route guid {first.guid} and route guid {route.guid} share fqdn {fqdn} "
                f"but live in different namespaces ({first.namespace!r} != {route.namespace!r})",
            )


def resolve_weights(fqdn: str, route: Route, expected: int = 100) -> List[int]:
    """
    Validate a route's destination weights, or infer them when none are set.

    Inferred weights split `expected` evenly; the remainder lands on the
    first destination, e.g. 3 destinations -> [34, 33, 33].
    """
    destinations: List[RouteDestination] = route.spec.destinations
    if not destinations:
        return []

    present = [d.weight is not None for d in destinations]
    if any(present) and not all(present):
        raise WeightPresenceMismatchError(
            fqdn,
            route.guid,
            f"invalid destinations for route {route.guid}: weights must be set on all or none",
        )

    if all(present):
        weights = [d.weight for d in destinations if d.weight is not None]
        if any(w < 0 or w > expected for w in weights) or sum(weights) != expected:
            raise WeightSumError(
                fqdn,
                route.guid,
                f"invalid destinations for route {route.guid}: weights must sum up to {expected}",
            )
        return weights

    n = len(destinations)
    base = expected // n
    weights = [base] * n
    # TODO: destination order comes from upstream storage; confirm with Cloud Controller
    # that it is stable before relying on which destination receives the remainder.
    weights[0] += expected - n * base
    return weights


def _identity_headers(route: Route, dest: RouteDestination) -> dict[str, str]:
    return {
        "CF-App-Id": dest.app.guid,
        "CF-App-Process-Type": dest.app.process.type,
        "CF-Space-Id": route.space_guid,
        "CF-Organization-Id": route.org_guid,
    }
