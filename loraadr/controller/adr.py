"""Composant ADR du contrôleur réseau (gestion des commandes LinkADRReq).

The decision only runs once every gateway has reported the uplink, i.e. in
:meth:`AdrComponent.before_sending_reply`. It is a pure function of the
device snapshot: :func:`decide` returns an :class:`AdrDecision` and
:func:`stage_command` writes the resulting ``LinkADRReq`` on the device.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .config import AdrConfig, DEFAULT_CONFIG
from .device import Direction, EndDeviceStatus, MType, ReceivedPacketInfo
from .lorawan import LinkADRReq, sf_to_dr
from .network import ControllerComponent, NetworkStatus
from .snr import estimate_snr

logger = logging.getLogger(__name__)


class AdrConsistencyError(ValueError):
    """Device parameters outside the ADR bounds (collaborator defect)."""


@dataclass(frozen=True)
class AdrDecision:
    snr: float
    required_snr: float
    margin: float
    steps: int
    sf: int
    tx_power: float

    @property
    def data_rate(self) -> int:
        return sf_to_dr(self.sf)


def required_snr(data_rate: int, config: AdrConfig = DEFAULT_CONFIG) -> float:
    """Return the demodulation SNR threshold of ``data_rate``.

    Out of range indices are clamped to the table.
    """
    clamped = min(max(data_rate, 0), config.max_data_rate)
    if clamped != data_rate:
        logger.warning("Data rate %s outside threshold table, using DR%s.", data_rate, clamped)
    return config.required_snr[clamped]


def compute_margin(snr: float, sf: int, config: AdrConfig = DEFAULT_CONFIG) -> float:
    return snr - required_snr(sf_to_dr(sf), config) - config.device_margin_db


def compute_steps(margin: float, config: AdrConfig = DEFAULT_CONFIG) -> int:
    """Number of 3 dB steps available in ``margin`` (rounded down)."""
    return math.floor(margin / config.tx_power_step)


def apply_steps(
    sf: int, tx_power: float, steps: int, config: AdrConfig = DEFAULT_CONFIG
) -> tuple[int, float]:
    """Spend ``steps`` on the spreading factor first, then on the power.

    A positive count lowers the SF down to ``min_sf`` and then lowers the
    power. A negative count only raises the power: raising the SF is left to
    the device. Steps that would cross a bound are dropped.
    """
    step = config.tx_power_step
    while steps > 0 and sf > config.min_sf:
        sf -= 1
        steps -= 1
    while steps > 0 and tx_power - step >= config.min_tx_power:
        tx_power -= step
        steps -= 1
    while steps < 0 and tx_power + step <= config.max_tx_power:
        tx_power += step
        steps += 1
    return sf, tx_power


def check_device_state(sf: int, tx_power: float, config: AdrConfig = DEFAULT_CONFIG) -> None:
    if not config.min_sf <= sf <= config.max_sf:
        raise AdrConsistencyError(
            f"spreading factor {sf} outside [{config.min_sf}, {config.max_sf}]"
        )
    if not config.min_tx_power <= tx_power <= config.max_tx_power:
        raise AdrConsistencyError(
            f"tx power {tx_power} dBm outside "
            f"[{config.min_tx_power}, {config.max_tx_power}]"
        )


def decide(
    packets: list[ReceivedPacketInfo],
    sf: int,
    tx_power: float,
    config: AdrConfig = DEFAULT_CONFIG,
) -> AdrDecision:
    """Run the ADR algorithm on a history snapshot.

    :param packets: Received packets, oldest first. At least
        ``config.history_range`` are required.
    :param sf: Spreading factor currently used by the device.
    :param tx_power: Transmit power currently used by the device (dBm).
    :raises AdrConsistencyError: if ``sf`` or ``tx_power`` is out of bounds.
    """
    check_device_state(sf, tx_power, config)
    snr = estimate_snr(packets, config)
    margin = compute_margin(snr, sf, config)
    steps = compute_steps(margin, config)
    new_sf, new_power = apply_steps(sf, tx_power, steps, config)
    return AdrDecision(
        snr=snr,
        required_snr=required_snr(sf_to_dr(sf), config),
        margin=margin,
        steps=steps,
        sf=new_sf,
        tx_power=new_power,
    )


def build_command(decision: AdrDecision, config: AdrConfig = DEFAULT_CONFIG) -> LinkADRReq:
    return LinkADRReq(
        decision.data_rate,
        decision.tx_power,
        config.enabled_channels,
        config.repetitions,
    )


def stage_command(
    status: EndDeviceStatus,
    command: LinkADRReq,
    decision: AdrDecision | None = None,
) -> None:
    """Attach ``command`` (and the decision behind it) to the pending reply of ``status``."""
    reply = status.reply
    if reply.link_adr_req is not None:
        raise AdrConsistencyError(f"device {status.id} already has a staged LinkADRReq")
    reply.needs_reply = True
    reply.link_adr_req = command
    reply.adr_decision = decision
    reply.direction = Direction.DOWNLINK
    reply.mtype = MType.UNCONFIRMED_DATA_DOWN


class AdrComponent(ControllerComponent):
    """Network-side ADR: stages a ``LinkADRReq`` when the device asks for it."""

    name = "adr"

    def __init__(self, config: AdrConfig = DEFAULT_CONFIG):
        self.config = config

    def on_received_packet(
        self,
        packet: ReceivedPacketInfo,
        status: EndDeviceStatus,
        network_status: NetworkStatus,
    ) -> None:
        # Nothing to do yet: not every gateway has reported the packet.
        logger.debug("AdrComponent: packet received from device %s.", status.id)

    def before_sending_reply(
        self, status: EndDeviceStatus, network_status: NetworkStatus
    ) -> None:
        if not status.adr_requested:
            return

        capacity = status.received_packets.maxlen
        if capacity is not None and capacity < self.config.history_range:
            logger.warning(
                "Device %s keeps %d packets but ADR needs %d: no command can be sent.",
                status.id,
                capacity,
                self.config.history_range,
            )
            return

        packets = list(status.received_packets)
        if len(packets) < self.config.history_range:
            logger.debug(
                "Not enough packets received by device %s for ADR (%d/%d).",
                status.id,
                len(packets),
                self.config.history_range,
            )
            return

        try:
            decision = decide(packets, status.sf, status.tx_power, self.config)
        except AdrConsistencyError:
            logger.error("AdrComponent: inconsistent state for device %s.", status.id)
            raise

        command = build_command(decision, self.config)
        logger.debug(
            "Sending LinkAdrReq with DR = %d and TP = %.1f dBm to device %s "
            "(SNR %.2f dB, margin %.2f dB, %d steps).",
            command.data_rate,
            command.tx_power,
            status.id,
            decision.snr,
            decision.margin,
            decision.steps,
        )
        stage_command(status, command, decision)

    def on_failed_reply(
        self, status: EndDeviceStatus, network_status: NetworkStatus
    ) -> None:
        logger.debug("AdrComponent: reply to device %s failed.", status.id)


__all__ = [
    "AdrComponent",
    "AdrConsistencyError",
    "AdrDecision",
    "apply_steps",
    "build_command",
    "check_device_state",
    "compute_margin",
    "compute_steps",
    "decide",
    "required_snr",
    "stage_command",
]
