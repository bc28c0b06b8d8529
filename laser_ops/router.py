"""Static selection of the protocol adapter for a machine."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

import httpx

from .adapters import (
    GlowforgeCloudAdapter,
    GrblAdapter,
    LightBurnBridgeAdapter,
    ManualAdapter,
    ProtocolAdapter,
    RuidaAdapter,
)
from .domain import ConnectionType, Machine
from .settings import LaserOpsSettings


class DispatchRouter:
    """Maps every connection family to exactly one adapter."""

    def __init__(self, adapters: Mapping[ConnectionType, ProtocolAdapter]) -> None:
        missing = [ct.value for ct in ConnectionType if ct not in adapters]
        if missing:
            raise ValueError(f"No protocol adapter registered for: {', '.join(missing)}")
        self._adapters = MappingProxyType(dict(adapters))

    @property
    def adapters(self) -> Mapping[ConnectionType, ProtocolAdapter]:
        return self._adapters

    def route(self, machine: Machine) -> ProtocolAdapter:
        return self._adapters[machine.connection_type]


def build_default_router(
    client: httpx.Client, settings: Optional[LaserOpsSettings] = None
) -> DispatchRouter:
    settings = settings or LaserOpsSettings()
    timeouts = dict(
        send_timeout=settings.send_timeout_seconds,
        probe_timeout=settings.probe_timeout_seconds,
    )
    return DispatchRouter(
        {
            ConnectionType.LIGHTBURN_BRIDGE: LightBurnBridgeAdapter(
                client, default_port=settings.bridge_default_port, **timeouts
            ),
            ConnectionType.GRBL: GrblAdapter(
                client, default_port=settings.grbl_default_port, **timeouts
            ),
            ConnectionType.RUIDA: RuidaAdapter(),
            ConnectionType.GLOWFORGE_CLOUD: GlowforgeCloudAdapter(),
            ConnectionType.MANUAL: ManualAdapter(),
        }
    )


__all__ = ["DispatchRouter", "build_default_router"]
