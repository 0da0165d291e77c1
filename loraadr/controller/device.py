"""Device-side records read and written by the network controller."""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from .lorawan import LinkADRReq

if TYPE_CHECKING:
    from .adr import AdrDecision

# Taille par défaut de l'historique conservé pour chaque équipement
DEFAULT_HISTORY_SIZE = 64


class Direction(enum.Enum):
    UPLINK = "uplink"
    DOWNLINK = "downlink"


class MType(enum.Enum):
    """LoRaWAN message types written by the controller."""

    UNCONFIRMED_DATA_DOWN = 0b011


@dataclass(frozen=True)
class GatewayReport:
    """Received power (dBm) observed by each gateway for one uplink."""

    rx_power: Mapping[int, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "rx_power", {gw: float(p) for gw, p in dict(self.rx_power).items()}
        )

    def __len__(self) -> int:
        return len(self.rx_power)

    def powers(self) -> list[float]:
        return list(self.rx_power.values())


@dataclass(frozen=True)
class ReceivedPacketInfo:
    """One uplink as seen by the network, with its ADR request bit."""

    gateways: GatewayReport
    adr: bool = False
    fcnt: int = 0


@dataclass
class Reply:
    """Downlink staging area filled by controller components."""

    needs_reply: bool = False
    direction: Direction = Direction.UPLINK
    mtype: MType | None = None
    link_adr_req: LinkADRReq | None = None
    # Décision ayant produit link_adr_req
    adr_decision: AdrDecision | None = None

    def reset(self) -> None:
        self.needs_reply = False
        self.direction = Direction.UPLINK
        self.mtype = None
        self.link_adr_req = None
        self.adr_decision = None


class EndDeviceStatus:
    """State of one end device as tracked by the network.

    :param device_id: Identifiant de l'équipement.
    :param sf: Spreading factor currently used by the device (7 to 12).
    :param tx_power: Transmit power currently used by the device (dBm).
    :param history_size: Number of uplinks kept in ``received_packets``.
    """

    def __init__(
        self,
        device_id: int,
        sf: int = 12,
        tx_power: float = 14.0,
        *,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        self.id = device_id
        self.sf = sf
        self.tx_power = tx_power
        self.received_packets: deque[ReceivedPacketInfo] = deque(maxlen=history_size)
        self.reply = Reply()

    def record_packet(self, packet: ReceivedPacketInfo) -> None:
        """Append ``packet`` to the history, dropping the oldest if full."""
        self.received_packets.append(packet)

    @property
    def last_packet(self) -> ReceivedPacketInfo | None:
        return self.received_packets[-1] if self.received_packets else None

    @property
    def adr_requested(self) -> bool:
        last = self.last_packet
        return bool(last is not None and last.adr)

    def initial_reply(self) -> None:
        """Clear the staged reply before a new uplink/downlink cycle."""
        self.reply.reset()

    def __repr__(self):
        return (
            f"EndDeviceStatus(id={self.id}, SF={self.sf}, "
            f"TxPower={self.tx_power:.1f} dBm, history={len(self.received_packets)})"
        )


__all__ = [
    "DEFAULT_HISTORY_SIZE",
    "Direction",
    "EndDeviceStatus",
    "GatewayReport",
    "MType",
    "ReceivedPacketInfo",
    "Reply",
]
