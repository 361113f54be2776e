from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog
from pydantic import ValidationError

from meshroute.core.config import CompilerConfig
from meshroute.core.errors import RouteInputError
from meshroute.domain.models import Route, RouteList
from meshroute.resources.model import Resource, Service, VirtualService
from meshroute.resources.service import ServiceBuilder, SkippedDestination
from meshroute.resources.virtual_service import SkippedFQDN, VirtualServiceBuilder

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CompileResult:
    virtual_services: tuple[VirtualService, ...]
    services: tuple[Service, ...]
    skipped_fqdns: tuple[SkippedFQDN, ...]
    skipped_destinations: tuple[SkippedDestination, ...]
    routes_in: int

    @property
    def has_skips(self) -> bool:
        return bool(self.skipped_fqdns or self.skipped_destinations)

    def resources(self) -> list[Resource]:
        return [*self.virtual_services, *self.services]

    def to_manifest(self) -> dict[str, Any]:
        """Render as a `v1 List`, ready for `kubectl apply -f`."""
        return {
            "apiVersion": "v1",
            "kind": "List",
            "items": [r.to_manifest() for r in self.resources()],
        }


def parse_route_list(payload: Any, source: str = "<memory>") -> list[Route]:
    """
    Accept either a k8s RouteList (`{"items": [...]}`) or a bare array of routes.
    """
    try:
        if isinstance(payload, list):
            return RouteList.model_validate({"items": payload}).items
        if isinstance(payload, dict):
            return RouteList.model_validate(payload).items
    except ValidationError as e:
        raise RouteInputError(source, str(e)) from e

    raise RouteInputError(source, f"expected a RouteList object or an array, got {type(payload).__name__}")


def load_route_list(path: Path) -> list[Route]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RouteInputError(str(path), e.strerror or str(e)) from e

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise RouteInputError(str(path), f"not valid JSON: {e}") from e

    return parse_route_list(payload, source=str(path))


def _canonical_order(routes: Iterable[Route]) -> list[Route]:
    # Same route set -> same output bytes, regardless of how it was listed.
    return sorted(routes, key=lambda r: (r.namespace, r.guid, r.fqdn, r.spec.url))


def run_compile(
    routes: Iterable[Route],
    config: Optional[CompilerConfig] = None,
) -> CompileResult:
    config = config or CompilerConfig()
    snapshot = _canonical_order(routes)

    vs_result = VirtualServiceBuilder(config=config).build(snapshot)
    svc_result = ServiceBuilder().build(snapshot)

    result = CompileResult(
        virtual_services=vs_result.virtual_services,
        services=svc_result.services,
        skipped_fqdns=vs_result.skipped,
        skipped_destinations=svc_result.skipped,
        routes_in=len(snapshot),
    )

    log.info(
        "compile_finished",
        routes=result.routes_in,
        virtual_services=len(result.virtual_services),
        services=len(result.services),
        skipped_fqdns=len(result.skipped_fqdns),
        skipped_destinations=len(result.skipped_destinations),
    )
    return result
