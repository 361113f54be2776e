"""meshroute exception hierarchy.

Validation errors are scoped to one FQDN (or one destination). Builders
raise them internally and catch them at that boundary, so a bad route never
aborts the rest of a compile pass.
"""

from __future__ import annotations


class MeshrouteError(Exception):
    """Base for all meshroute-specific errors."""


class RouteInputError(MeshrouteError):
    """Raised when a route document cannot be read or does not validate."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = message
        super().__init__(f"invalid route input '{source}': {message}")


class RouteValidationError(MeshrouteError):
    """A route (or group of routes) that cannot be compiled for its FQDN.

    Attributes:
        fqdn: FQDN whose VirtualService is dropped
        route_guid: route that triggered the failure
        message: human-readable reason
    """

    reason = "invalid_route"

    def __init__(self, fqdn: str, route_guid: str, message: str) -> None:
        self.fqdn = fqdn
        self.route_guid = route_guid
        self.message = message
        super().__init__(message)


class DomainMismatchError(RouteValidationError):
    """Routes sharing an FQDN disagree on whether the domain is internal."""

    reason = "domain_mismatch"


class NamespaceMismatchError(RouteValidationError):
    """Routes sharing an FQDN live in different namespaces."""

    reason = "namespace_mismatch"


class WeightPresenceMismatchError(RouteValidationError):
    """A route mixes weighted and unweighted destinations."""

    reason = "weight_presence_mismatch"


class WeightSumError(RouteValidationError):
    """A route's explicit destination weights do not add up to the expected total."""

    reason = "weight_sum_invalid"


class MissingPortError(MeshrouteError):
    """A destination arrived without a port (upstream contract violation)."""

    reason = "missing_port"

    def __init__(self, route_guid: str, destination_guid: str) -> None:
        self.route_guid = route_guid
        self.destination_guid = destination_guid
        super().__init__(f"destination {destination_guid} of route {route_guid} has no port")
