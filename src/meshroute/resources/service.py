from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

import structlog

from meshroute.core.errors import MissingPortError
from meshroute.domain.models import Route, RouteDestination
from meshroute.resources.model import (
    APP_GUID_LABEL,
    PROCESS_TYPE_LABEL,
    ROUTE_FQDN_ANNOTATION,
    ROUTE_GUID_LABEL,
    ObjectMeta,
    Service,
    ServicePort,
)
from meshroute.resources.naming import service_name

log = structlog.get_logger(__name__)

HTTP_PORT_NAME = "http"


@dataclass(frozen=True)
class SkippedDestination:
    route_guid: str
    destination_guid: str
    reason: str


@dataclass(frozen=True)
class ServiceBuildResult:
    services: tuple[Service, ...]
    skipped: tuple[SkippedDestination, ...]


class ServiceBuilder:
    """One k8s Service per route destination, in input order."""

    def build(self, routes: Iterable[Route]) -> ServiceBuildResult:
        services: List[Service] = []
        skipped: List[SkippedDestination] = []

        for route in routes:
            for dest in route.spec.destinations:
                try:
                    services.append(_destination_to_service(route, dest))
                except MissingPortError as e:
                    log.error(
                        "service_skipped",
                        route_guid=e.route_guid,
                        destination_guid=e.destination_guid,
                        reason=e.reason,
                    )
                    skipped.append(
                        SkippedDestination(
                            route_guid=e.route_guid,
                            destination_guid=e.destination_guid,
                            reason=e.reason,
                        )
                    )

        return ServiceBuildResult(services=tuple(services), skipped=tuple(skipped))


def _selector(dest: RouteDestination) -> dict[str, str]:
    if dest.selector.match_labels:
        return dict(dest.selector.match_labels)
    return {
        APP_GUID_LABEL: dest.app.guid,
        PROCESS_TYPE_LABEL: dest.app.process.type,
    }


def _destination_to_service(route: Route, dest: RouteDestination) -> Service:
    if dest.port is None:
        raise MissingPortError(route.guid, dest.guid)

    return Service(
        metadata=ObjectMeta(
            name=service_name(dest.guid),
            namespace=route.namespace,
            labels={
                APP_GUID_LABEL: dest.app.guid,
                PROCESS_TYPE_LABEL: dest.app.process.type,
                ROUTE_GUID_LABEL: route.guid,
            },
            annotations={ROUTE_FQDN_ANNOTATION: route.fqdn},
        ),
        selector=_selector(dest),
        ports=(ServicePort(port=dest.port, name=HTTP_PORT_NAME),),
    )
