"""SNR estimation from gateway received power.

The noise model only accounts for thermal noise over the channel bandwidth
and the receiver noise figure; interfering packets are ignored.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

import numpy as np

from .config import AdrConfig, DEFAULT_CONFIG, GatewayPolicy, HistoryPolicy
from .device import GatewayReport, ReceivedPacketInfo

logger = logging.getLogger(__name__)

# Densité spectrale du bruit thermique à 290 K (dBm/Hz)
THERMAL_NOISE_DBM_HZ = -174.0


def noise_floor_dBm(config: AdrConfig = DEFAULT_CONFIG) -> float:
    """Return the receiver noise floor in dBm."""
    return THERMAL_NOISE_DBM_HZ + 10 * math.log10(config.bandwidth_hz) + config.noise_figure_db


def rx_power_to_snr(rx_power: float, config: AdrConfig = DEFAULT_CONFIG) -> float:
    """Convert a received power (dBm) to an SNR estimate (dB)."""
    return rx_power - noise_floor_dBm(config)


def max_rx_power(report: GatewayReport, config: AdrConfig = DEFAULT_CONFIG) -> float:
    powers = report.powers()
    if not powers:
        return _empty_report_fallback(config)
    return float(np.max(powers))


def average_rx_power(report: GatewayReport, config: AdrConfig = DEFAULT_CONFIG) -> float:
    powers = report.powers()
    if not powers:
        return _empty_report_fallback(config)
    return float(np.mean(powers))


def _empty_report_fallback(config: AdrConfig) -> float:
    logger.warning(
        "Empty gateway report, assuming %.1f dBm received power.", config.min_tx_power
    )
    return config.min_tx_power


def received_power(report: GatewayReport, config: AdrConfig = DEFAULT_CONFIG) -> float:
    """Return the per-packet received power under ``config.gateway_policy``."""
    if config.gateway_policy is GatewayPolicy.MAX:
        return max_rx_power(report, config)
    return average_rx_power(report, config)


def packet_snr(packet: ReceivedPacketInfo, config: AdrConfig = DEFAULT_CONFIG) -> float:
    return rx_power_to_snr(received_power(packet.gateways, config), config)


def recent_packets(
    packets: Sequence[ReceivedPacketInfo], history_range: int
) -> list[ReceivedPacketInfo]:
    """Return the last ``history_range`` packets, most recent first."""
    packets = list(packets)
    if len(packets) < history_range:
        raise ValueError(
            f"history holds {len(packets)} packets, {history_range} required"
        )
    return packets[::-1][:history_range]


def history_snrs(
    packets: Iterable[ReceivedPacketInfo], config: AdrConfig = DEFAULT_CONFIG
) -> np.ndarray:
    """Per-packet SNR of the window, most recent first."""
    window = recent_packets(list(packets), config.history_range)
    return np.array([packet_snr(p, config) for p in window], dtype=float)


def max_snr(packets: Iterable[ReceivedPacketInfo], config: AdrConfig = DEFAULT_CONFIG) -> float:
    return float(np.max(history_snrs(packets, config)))


def average_snr(
    packets: Iterable[ReceivedPacketInfo], config: AdrConfig = DEFAULT_CONFIG
) -> float:
    return float(np.mean(history_snrs(packets, config)))


def estimate_snr(
    packets: Iterable[ReceivedPacketInfo], config: AdrConfig = DEFAULT_CONFIG
) -> float:
    """Aggregate the window SNR under ``config.history_policy``."""
    if config.history_policy is HistoryPolicy.MAX:
        return max_snr(packets, config)
    return average_snr(packets, config)


__all__ = [
    "THERMAL_NOISE_DBM_HZ",
    "average_rx_power",
    "average_snr",
    "estimate_snr",
    "history_snrs",
    "max_rx_power",
    "max_snr",
    "noise_floor_dBm",
    "packet_snr",
    "received_power",
    "recent_packets",
    "rx_power_to_snr",
]
