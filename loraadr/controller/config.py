"""Paramètres ADR partagés en lecture seule par tous les appels du contrôleur."""

from __future__ import annotations

import configparser
import enum
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

from .lorawan import DR_TO_SF, SF_TO_DR

logger = logging.getLogger(__name__)

# Seuils de démodulation (dB) indexés par data rate DR0..DR5 (SF12..SF7)
REQUIRED_SNR: tuple[float, ...] = (-20.0, -17.5, -15.0, -12.5, -10.0, -7.5)
# Canaux obligatoires activés dans chaque LinkADRReq
DEFAULT_CHANNELS: tuple[int, ...] = (1, 2, 3)


class GatewayPolicy(enum.Enum):
    """How the received powers reported by several gateways are combined."""

    MAX = "max"
    AVERAGE = "average"


class HistoryPolicy(enum.Enum):
    """How per-packet SNR values of the history window are combined."""

    MAX = "max"
    AVERAGE = "average"


@dataclass(frozen=True)
class AdrConfig:
    """Immutable ADR policy constants.

    Defaults follow the EU868 values used by FLoRa: a 20 packet window,
    averaging on both axes and a 10 dB device margin.
    """

    gateway_policy: GatewayPolicy = GatewayPolicy.AVERAGE
    history_policy: HistoryPolicy = HistoryPolicy.AVERAGE
    history_range: int = 20
    min_sf: int = 7
    max_sf: int = 12
    min_tx_power: float = 2.0
    max_tx_power: float = 14.0
    tx_power_step: float = 3.0
    device_margin_db: float = 10.0
    bandwidth_hz: float = 125000.0
    noise_figure_db: float = 6.0
    required_snr: tuple[float, ...] = REQUIRED_SNR
    enabled_channels: tuple[int, ...] = field(default=DEFAULT_CHANNELS)
    repetitions: int = 1

    def __post_init__(self) -> None:
        if isinstance(self.history_range, bool) or self.history_range < 1:
            raise ValueError("history_range must be >= 1")
        if not min(SF_TO_DR) <= self.min_sf <= self.max_sf <= max(SF_TO_DR):
            raise ValueError(
                f"SF bounds must satisfy {min(SF_TO_DR)} <= min_sf <= max_sf <= {max(SF_TO_DR)}"
            )
        if not self.min_tx_power <= self.max_tx_power:
            raise ValueError("min_tx_power must be <= max_tx_power")
        if self.tx_power_step <= 0:
            raise ValueError("tx_power_step must be > 0")
        if self.bandwidth_hz <= 0:
            raise ValueError("bandwidth_hz must be > 0")
        # Le seuil est indexé par DR, indépendamment des bornes de SF
        n_rates = len(DR_TO_SF)
        if len(self.required_snr) != n_rates:
            raise ValueError(
                f"required_snr must hold {n_rates} entries, got {len(self.required_snr)}"
            )
        # Figer les séquences fournies sous forme de liste
        object.__setattr__(self, "required_snr", tuple(float(v) for v in self.required_snr))
        object.__setattr__(self, "enabled_channels", tuple(int(c) for c in self.enabled_channels))

    @property
    def max_data_rate(self) -> int:
        return len(self.required_snr) - 1

    def with_overrides(self, **changes) -> "AdrConfig":
        """Return a copy of the configuration with ``changes`` applied."""
        return replace(self, **changes)


DEFAULT_CONFIG = AdrConfig()


def _parse_policy(enum_cls, value: str):
    try:
        return enum_cls(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(p.value for p in enum_cls)
        raise ValueError(f"unknown {enum_cls.__name__} {value!r} (expected {choices})") from exc


def _parse_floats(value: str) -> tuple[float, ...]:
    return tuple(float(v) for v in value.replace(",", " ").split())


def _parse_ints(value: str) -> tuple[int, ...]:
    return tuple(int(v) for v in value.replace(",", " ").split())


def load_config(path: str | Path, *, section: str = "adr") -> AdrConfig:
    """Build an :class:`AdrConfig` from the ``[adr]`` section of an INI file.

    Missing keys keep their default value. A missing file or section yields
    :data:`DEFAULT_CONFIG`.

    Example::

        [adr]
        gateway_policy = max
        history_range = 10
        required_snr = -20 -17.5 -15 -12.5 -10 -7.5
    """
    cp = configparser.ConfigParser()
    read = cp.read(Path(path))
    if not read:
        logger.debug("ADR config %s not found, using defaults.", path)
        return DEFAULT_CONFIG
    if not cp.has_section(section):
        logger.debug("ADR config %s has no [%s] section, using defaults.", path, section)
        return DEFAULT_CONFIG

    d = DEFAULT_CONFIG
    changes = {
        "history_range": cp.getint(section, "history_range", fallback=d.history_range),
        "min_sf": cp.getint(section, "min_sf", fallback=d.min_sf),
        "max_sf": cp.getint(section, "max_sf", fallback=d.max_sf),
        "min_tx_power": cp.getfloat(section, "min_tx_power", fallback=d.min_tx_power),
        "max_tx_power": cp.getfloat(section, "max_tx_power", fallback=d.max_tx_power),
        "tx_power_step": cp.getfloat(section, "tx_power_step", fallback=d.tx_power_step),
        "device_margin_db": cp.getfloat(
            section, "device_margin_db", fallback=d.device_margin_db
        ),
        "bandwidth_hz": cp.getfloat(section, "bandwidth_hz", fallback=d.bandwidth_hz),
        "noise_figure_db": cp.getfloat(
            section, "noise_figure_db", fallback=d.noise_figure_db
        ),
        "repetitions": cp.getint(section, "repetitions", fallback=d.repetitions),
    }
    if cp.has_option(section, "gateway_policy"):
        changes["gateway_policy"] = _parse_policy(
            GatewayPolicy, cp.get(section, "gateway_policy")
        )
    if cp.has_option(section, "history_policy"):
        changes["history_policy"] = _parse_policy(
            HistoryPolicy, cp.get(section, "history_policy")
        )
    if cp.has_option(section, "required_snr"):
        changes["required_snr"] = _parse_floats(cp.get(section, "required_snr"))
    if cp.has_option(section, "enabled_channels"):
        changes["enabled_channels"] = _parse_ints(cp.get(section, "enabled_channels"))

    config = d.with_overrides(**changes)
    logger.debug("ADR config loaded from %s: %s", path, config)
    return config


__all__ = [
    "AdrConfig",
    "DEFAULT_CHANNELS",
    "DEFAULT_CONFIG",
    "GatewayPolicy",
    "HistoryPolicy",
    "REQUIRED_SNR",
    "load_config",
]
