# Initialisation du contrôleur réseau ADR
from __future__ import annotations

from .config import AdrConfig, GatewayPolicy, HistoryPolicy, load_config
from .device import EndDeviceStatus, GatewayReport, ReceivedPacketInfo
from .lorawan import LinkADRReq
from .network import ControllerComponent, NetworkController, NetworkStatus
from .adr import AdrComponent, AdrConsistencyError, AdrDecision, decide
from . import snr

# Mapping of component names to their factories
COMPONENTS = {
    "ADR": AdrComponent,
}


def build_controller(names=("ADR",), config: AdrConfig | None = None) -> NetworkController:
    """Return a :class:`NetworkController` with the ``names`` components installed."""
    controller = NetworkController()
    for name in names:
        try:
            factory = COMPONENTS[name]
        except KeyError:
            raise ValueError(f"unknown controller component {name!r}") from None
        component = factory(config) if config is not None else factory()
        controller.install(component)
    return controller


__all__ = [
    "AdrComponent",
    "AdrConfig",
    "AdrConsistencyError",
    "AdrDecision",
    "COMPONENTS",
    "ControllerComponent",
    "EndDeviceStatus",
    "GatewayPolicy",
    "GatewayReport",
    "HistoryPolicy",
    "LinkADRReq",
    "NetworkController",
    "NetworkStatus",
    "ReceivedPacketInfo",
    "build_controller",
    "decide",
    "load_config",
    "snr",
]
