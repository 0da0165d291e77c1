from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Conversions SF <-> DR (EU868, BW 125 kHz)
# ---------------------------------------------------------------------------

DR_TO_SF = {0: 12, 1: 11, 2: 10, 3: 9, 4: 8, 5: 7}
SF_TO_DR = {sf: dr for dr, sf in DR_TO_SF.items()}

# Nominal power of each LoRaWAN TXPower index, as used by the ns-3 module
TX_POWER_INDEX_TO_DBM = {
    0: 16.0,
    1: 14.0,
    2: 12.0,
    3: 10.0,
    4: 8.0,
    5: 6.0,
    6: 4.0,
    7: 2.0,
}

LINK_ADR_REQ_CID = 0x03


def sf_to_dr(sf: int) -> int:
    """Return the data rate index of spreading factor ``sf`` (DR = 12 - SF).

    :raises ValueError: if ``sf`` is not an EU868 spreading factor.
    """
    try:
        return SF_TO_DR[sf]
    except KeyError:
        raise ValueError(f"no data rate for spreading factor {sf}") from None


def dr_to_sf(dr: int) -> int:
    try:
        return DR_TO_SF[dr]
    except KeyError:
        raise ValueError(f"unknown data rate DR{dr}") from None


def tx_power_index(tx_power: float) -> int:
    """Return the TXPower index announced for ``tx_power`` dBm.

    Powers are bucketed downwards: anything at or above 16 dBm is index 0,
    anything below 4 dBm is index 7.
    """
    for index in range(7):
        if tx_power >= TX_POWER_INDEX_TO_DBM[index]:
            return index
    return 7


def channel_mask(channels) -> int:
    """Return the 16 bit ChMask enabling each channel index of ``channels``."""
    mask = 0
    for ch in channels:
        if not 0 <= ch < 16:
            raise ValueError(f"channel index {ch} outside ChMask range")
        mask |= 1 << ch
    return mask


@dataclass(frozen=True)
class LinkADRReq:
    """``LinkADRReq`` MAC command staged for a device.

    ``tx_power`` is kept in dBm; the TXPower index is only derived when the
    command is serialised.
    """

    data_rate: int
    tx_power: float
    enabled_channels: tuple[int, ...] = field(default=(1, 2, 3))
    repetitions: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "enabled_channels", tuple(self.enabled_channels))

    @property
    def tx_power_index(self) -> int:
        return tx_power_index(self.tx_power)

    @property
    def chmask(self) -> int:
        return channel_mask(self.enabled_channels)

    def to_bytes(self) -> bytes:
        dr_tx = ((self.data_rate & 0x0F) << 4) | (self.tx_power_index & 0x0F)
        return (
            bytes([LINK_ADR_REQ_CID, dr_tx])
            + self.chmask.to_bytes(2, "little")
            + bytes([self.repetitions & 0x0F])
        )

    @staticmethod
    def from_bytes(data: bytes) -> "LinkADRReq":
        if len(data) < 5 or data[0] != LINK_ADR_REQ_CID:
            raise ValueError("Invalid LinkADRReq")
        dr_tx = data[1]
        data_rate = (dr_tx >> 4) & 0x0F
        p_idx = dr_tx & 0x0F
        if p_idx not in TX_POWER_INDEX_TO_DBM:
            raise ValueError(f"Invalid TXPower index {p_idx}")
        chmask = int.from_bytes(data[2:4], "little")
        channels = tuple(ch for ch in range(16) if chmask & (1 << ch))
        return LinkADRReq(
            data_rate,
            TX_POWER_INDEX_TO_DBM[p_idx],
            channels,
            data[4] & 0x0F,
        )


__all__ = [
    "DR_TO_SF",
    "LINK_ADR_REQ_CID",
    "LinkADRReq",
    "SF_TO_DR",
    "TX_POWER_INDEX_TO_DBM",
    "channel_mask",
    "dr_to_sf",
    "sf_to_dr",
    "tx_power_index",
]
