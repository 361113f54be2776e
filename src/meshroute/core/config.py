from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

GATEWAYS_ENV_VAR = "MESHROUTE_ISTIO_GATEWAYS"

# "mesh" is the reserved gateway name istio uses for sidecar-to-sidecar traffic
# https://istio.io/docs/reference/config/networking/v1alpha3/virtual-service/#VirtualService
MESH_INTERNAL_GATEWAY = "mesh"

# istio destination weights are percentages and must sum to 100
ISTIO_EXPECTED_WEIGHT = 100


class CompilerConfig(BaseModel):
    """Knobs for a compile pass. Everything else comes from the route snapshot."""

    model_config = ConfigDict(frozen=True)

    istio_gateways: list[str] = Field(default_factory=list)
    mesh_gateway: str = MESH_INTERNAL_GATEWAY
    expected_weight: int = Field(default=ISTIO_EXPECTED_WEIGHT, gt=0)

    @classmethod
    def from_env(
        cls,
        gateways: Optional[list[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "CompilerConfig":
        """
        Build a config, preferring explicit gateways over the environment.

        MESHROUTE_ISTIO_GATEWAYS is comma separated; blanks are dropped and
        order is kept.
        """
        if gateways:
            return cls(istio_gateways=list(gateways))

        env = os.environ if environ is None else environ
        raw = env.get(GATEWAYS_ENV_VAR, "")
        parsed = [g.strip() for g in raw.split(",") if g.strip()]
        return cls(istio_gateways=parsed)
