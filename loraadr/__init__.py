"""Network-side Adaptive Data Rate controller for LoRaWAN."""

from .controller import (
    AdrComponent,
    AdrConfig,
    EndDeviceStatus,
    NetworkController,
    build_controller,
)

__all__ = [
    "AdrComponent",
    "AdrConfig",
    "EndDeviceStatus",
    "NetworkController",
    "build_controller",
]
