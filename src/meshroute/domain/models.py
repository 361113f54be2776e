from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

SPACE_GUID_LABEL = "cloudfoundry.org/space_guid"
ORG_GUID_LABEL = "cloudfoundry.org/org_guid"


class _Model(BaseModel):
    # Route snapshots are read-only for the duration of a compile pass.
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ObjectMeta(_Model):
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class AppProcess(_Model):
    type: str = ""


class DestinationApp(_Model):
    guid: str = ""
    process: AppProcess = Field(default_factory=AppProcess)


class DestinationSelector(_Model):
    match_labels: dict[str, str] = Field(default_factory=dict, alias="matchLabels")


class RouteDestination(_Model):
    guid: str
    port: Optional[int] = None
    weight: Optional[int] = None  # None = infer from sibling count
    app: DestinationApp = Field(default_factory=DestinationApp)
    selector: DestinationSelector = Field(default_factory=DestinationSelector)


class RouteDomain(_Model):
    name: str
    internal: bool = False


class RouteSpec(_Model):
    host: str = ""
    path: str = ""
    url: str = ""
    domain: RouteDomain
    destinations: list[RouteDestination] = Field(default_factory=list)


class Route(_Model):
    """
    A single routing intent: host + domain + path -> weighted destinations.

    Mirrors the `routes.networking.cloudfoundry.org` custom resource so a
    `kubectl get routes -o json` dump validates without reshaping.
    """

    api_version: str = Field(default="networking.cloudfoundry.org/v1alpha1", alias="apiVersion")
    kind: str = "Route"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: RouteSpec

    @property
    def guid(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def fqdn(self) -> str:
        if not self.spec.host:
            return self.spec.domain.name
        return f"{self.spec.host}.{self.spec.domain.name}"

    @property
    def space_guid(self) -> str:
        return self.metadata.labels.get(SPACE_GUID_LABEL, "")

    @property
    def org_guid(self) -> str:
        return self.metadata.labels.get(ORG_GUID_LABEL, "")


class RouteList(_Model):
    api_version: str = Field(default="networking.cloudfoundry.org/v1alpha1", alias="apiVersion")
    kind: str = "RouteList"
    items: list[Route] = Field(default_factory=list)
