"""Rejoue un historique d'uplinks à travers le contrôleur ADR.

The history is a CSV file with one row per (packet, gateway) reception::

    packet,gateway,rx_power
    1,0,-80.0
    1,1,-92.5
    2,0,-81.2

Packets are taken in order of first appearance; the last one is treated as
the uplink requesting ADR.
"""

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

from .controller import build_controller, load_config
from .controller.adr import AdrConsistencyError
from .controller.config import DEFAULT_CONFIG, GatewayPolicy, HistoryPolicy
from .controller.device import (
    DEFAULT_HISTORY_SIZE,
    EndDeviceStatus,
    GatewayReport,
    ReceivedPacketInfo,
)
from .controller.lorawan import dr_to_sf

REQUIRED_COLUMNS = ("packet", "gateway", "rx_power")

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def load_history(path: str | Path) -> list[ReceivedPacketInfo]:
    """Return the packets described by the CSV file at ``path``, oldest first."""
    df = pd.read_csv(path)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s) {', '.join(missing)}")

    packets = []
    for _, group in df.groupby("packet", sort=False):
        rows = group.dropna(subset=["gateway", "rx_power"])
        report = GatewayReport(
            {int(gw): float(p) for gw, p in zip(rows["gateway"], rows["rx_power"])}
        )
        packets.append(ReceivedPacketInfo(report, adr=False))
    if packets:
        last = packets[-1]
        packets[-1] = ReceivedPacketInfo(last.gateways, adr=True, fcnt=last.fcnt)
    return packets


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay an uplink history through the network ADR controller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("history", type=Path, help="CSV file (packet,gateway,rx_power)")
    parser.add_argument(
        "--sf", type=int, default=12, help="Current spreading factor of the device"
    )
    parser.add_argument(
        "--tx-power",
        type=float,
        default=14.0,
        help="Current transmit power of the device (dBm)",
    )
    parser.add_argument("--config", type=Path, help="INI file with an [adr] section")
    parser.add_argument(
        "--gateway-policy",
        choices=[p.value for p in GatewayPolicy],
        help="Combine gateway receptions with max or average",
    )
    parser.add_argument(
        "--history-policy",
        choices=[p.value for p in HistoryPolicy],
        help="Combine the SNR history with max or average",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(args.config) if args.config else DEFAULT_CONFIG
    overrides = {}
    if args.gateway_policy:
        overrides["gateway_policy"] = GatewayPolicy(args.gateway_policy)
    if args.history_policy:
        overrides["history_policy"] = HistoryPolicy(args.history_policy)
    if overrides:
        config = config.with_overrides(**overrides)

    try:
        packets = load_history(args.history)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    device = EndDeviceStatus(
        0,
        sf=args.sf,
        tx_power=args.tx_power,
        history_size=max(len(packets), DEFAULT_HISTORY_SIZE),
    )
    controller = build_controller(config=config)
    controller.network_status.add_device(device)
    for packet in packets:
        controller.on_new_packet(packet, device)
    try:
        controller.before_sending_reply(device)
    except AdrConsistencyError as exc:
        parser.error(str(exc))

    command = device.reply.link_adr_req
    if command is None:
        logger.info(
            "ADR skipped: %d packet(s) in history, %d required.",
            len(packets),
            config.history_range,
        )
        return 1

    decision = device.reply.adr_decision
    logger.info(f"Estimated SNR : {decision.snr:.2f} dB")
    logger.info(f"Required SNR  : {decision.required_snr:.2f} dB")
    logger.info(f"Margin        : {decision.margin:.2f} dB ({decision.steps} steps)")
    logger.info(
        f"LinkADRReq    : DR{command.data_rate} (SF{dr_to_sf(command.data_rate)}), "
        f"{command.tx_power:.1f} dBm, channels {list(command.enabled_channels)}, "
        f"NbTrans {command.repetitions}"
    )
    logger.info(f"Payload       : {command.to_bytes().hex()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
