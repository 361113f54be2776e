from __future__ import annotations

from typing import Dict, Iterable, List

from meshroute.domain.models import Route, RouteDestination


def group_by_fqdn(routes: Iterable[Route]) -> Dict[str, List[Route]]:
    """Group routes by FQDN, keeping input order inside each group."""
    by_fqdn: Dict[str, List[Route]] = {}
    for route in routes:
        by_fqdn.setdefault(route.fqdn, []).append(route)
    return by_fqdn


def sorted_fqdns(routes_by_fqdn: Dict[str, List[Route]]) -> List[str]:
    # stable output order across runs, whatever order the routes arrived in
    return sorted(routes_by_fqdn.keys())


def destinations_for_fqdn(fqdn: str, routes_by_fqdn: Dict[str, List[Route]]) -> List[RouteDestination]:
    destinations: List[RouteDestination] = []
    for route in routes_by_fqdn.get(fqdn, []):
        destinations.extend(route.spec.destinations)
    return destinations


def sort_routes_by_url(routes: Iterable[Route]) -> List[Route]:
    """
    Order routes by url, descending.

    Istio takes the first matching http rule, and a descending sort puts
    `/path0/deeper` ahead of `/path0`. Equal urls fall back to
    (namespace, name) so ties do not depend on input order.
    """
    return sorted(
        routes,
        key=lambda r: (r.spec.url, r.namespace, r.guid),
        reverse=True,
    )
