from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .device import EndDeviceStatus, ReceivedPacketInfo

logger = logging.getLogger(__name__)


@dataclass
class NetworkStatus:
    """Registry of the devices known to the network controller."""

    devices: dict[int, EndDeviceStatus] = field(default_factory=dict)

    def add_device(self, status: EndDeviceStatus) -> EndDeviceStatus:
        self.devices[status.id] = status
        return status

    def get(self, device_id: int) -> EndDeviceStatus | None:
        return self.devices.get(device_id)


class ControllerComponent:
    """Base class for components plugged into :class:`NetworkController`.

    Every hook is a no-op by default; subclasses override the ones they need.
    The ``status`` passed to a hook is only valid for the duration of the
    call and must not be kept.
    """

    name = "component"

    def on_received_packet(
        self,
        packet: ReceivedPacketInfo,
        status: EndDeviceStatus,
        network_status: NetworkStatus,
    ) -> None:
        pass

    def before_sending_reply(
        self, status: EndDeviceStatus, network_status: NetworkStatus
    ) -> None:
        pass

    def on_failed_reply(
        self, status: EndDeviceStatus, network_status: NetworkStatus
    ) -> None:
        pass


class NetworkController:
    """Dispatch uplink/downlink events to an ordered list of components."""

    def __init__(self, network_status: NetworkStatus | None = None):
        self.network_status = network_status or NetworkStatus()
        self._components: list[tuple[str, ControllerComponent]] = []

    @property
    def components(self) -> list[ControllerComponent]:
        return [component for _, component in self._components]

    @property
    def tags(self) -> list[str]:
        return [tag for tag, _ in self._components]

    def install(self, component: ControllerComponent, tag: str | None = None) -> str:
        """Append ``component`` to the pipeline under ``tag``.

        The tag defaults to the component ``name``; tags must be unique.
        """
        tag = tag or component.name
        if tag in self.tags:
            raise ValueError(f"component tag {tag!r} already installed")
        self._components.append((tag, component))
        logger.debug("NetworkController: installed component %s.", tag)
        return tag

    def remove(self, tag: str) -> ControllerComponent:
        for index, (existing, component) in enumerate(self._components):
            if existing == tag:
                del self._components[index]
                return component
        raise KeyError(tag)

    def on_new_packet(self, packet: ReceivedPacketInfo, status: EndDeviceStatus) -> None:
        """Record ``packet`` for ``status`` and notify every component."""
        status.record_packet(packet)
        for component in self.components:
            component.on_received_packet(packet, status, self.network_status)

    def before_sending_reply(self, status: EndDeviceStatus) -> None:
        status.initial_reply()
        for component in self.components:
            component.before_sending_reply(status, self.network_status)

    def on_failed_reply(self, status: EndDeviceStatus) -> None:
        for component in self.components:
            component.on_failed_reply(status, self.network_status)


__all__ = ["ControllerComponent", "NetworkController", "NetworkStatus"]
