import dataclasses
from pathlib import Path

import pytest

from loraadr.controller.config import (
    AdrConfig,
    DEFAULT_CONFIG,
    GatewayPolicy,
    HistoryPolicy,
    load_config,
)


def test_defaults():
    cfg = AdrConfig()
    assert cfg.gateway_policy is GatewayPolicy.AVERAGE
    assert cfg.history_policy is HistoryPolicy.AVERAGE
    assert cfg.history_range == 20
    assert (cfg.min_sf, cfg.max_sf) == (7, 12)
    assert (cfg.min_tx_power, cfg.max_tx_power, cfg.tx_power_step) == (2.0, 14.0, 3.0)
    assert cfg.device_margin_db == 10.0
    assert cfg.bandwidth_hz == 125000.0
    assert cfg.noise_figure_db == 6.0
    assert cfg.required_snr == (-20.0, -17.5, -15.0, -12.5, -10.0, -7.5)
    assert cfg.max_data_rate == 5


def test_config_is_read_only():
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_CONFIG.history_range = 5
    assert isinstance(DEFAULT_CONFIG.required_snr, tuple)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"history_range": 0},
        {"min_sf": 12, "max_sf": 7},
        {"min_sf": 6},
        {"max_sf": 13},
        {"max_sf": 11, "required_snr": (-17.5, -15.0, -12.5, -10.0, -7.5)},
        {"min_tx_power": 20.0},
        {"tx_power_step": 0.0},
        {"required_snr": (-20.0, -17.5)},
    ],
)
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        AdrConfig(**kwargs)


def test_load_config_from_ini(tmp_path: Path) -> None:
    path = tmp_path / "adr.ini"
    path.write_text(
        "[adr]\n"
        "gateway_policy = MAX\n"
        "history_policy = average\n"
        "history_range = 10\n"
        "device_margin_db = 15\n"
        "required_snr = -20, -17.5, -15, -12.5, -10, -7\n"
        "enabled_channels = 0 1 2\n"
    )
    cfg = load_config(path)
    assert cfg.gateway_policy is GatewayPolicy.MAX
    assert cfg.history_policy is HistoryPolicy.AVERAGE
    assert cfg.history_range == 10
    assert cfg.device_margin_db == 15.0
    assert cfg.required_snr[-1] == -7.0
    assert cfg.enabled_channels == (0, 1, 2)
    assert cfg.bandwidth_hz == DEFAULT_CONFIG.bandwidth_hz


def test_load_config_missing_file_or_section(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.ini") is DEFAULT_CONFIG
    path = tmp_path / "other.ini"
    path.write_text("[channel]\nfading = none\n")
    assert load_config(path) is DEFAULT_CONFIG


def test_load_config_rejects_unknown_policy(tmp_path: Path) -> None:
    path = tmp_path / "adr.ini"
    path.write_text("[adr]\nhistory_policy = median\n")
    with pytest.raises(ValueError, match="HistoryPolicy"):
        load_config(path)


def test_load_config_rejects_short_threshold_table(tmp_path: Path) -> None:
    path = tmp_path / "adr.ini"
    path.write_text("[adr]\nrequired_snr = -20 -17.5\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_load_config_rejects_sf_bounds_outside_eu868(tmp_path: Path) -> None:
    path = tmp_path / "adr.ini"
    path.write_text("[adr]\nmax_sf = 13\n")
    with pytest.raises(ValueError, match="SF bounds"):
        load_config(path)


def test_narrowed_sf_bounds_keep_full_threshold_table(tmp_path: Path) -> None:
    path = tmp_path / "adr.ini"
    path.write_text("[adr]\nmin_sf = 8\nmax_sf = 11\n")
    cfg = load_config(path)
    assert (cfg.min_sf, cfg.max_sf) == (8, 11)
    assert cfg.required_snr == DEFAULT_CONFIG.required_snr
    assert cfg.max_data_rate == 5
