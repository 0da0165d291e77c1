import pytest

from loraadr.controller.adr import (
    AdrConsistencyError,
    apply_steps,
    build_command,
    compute_margin,
    compute_steps,
    decide,
    required_snr,
)
from loraadr.controller.config import AdrConfig
from loraadr.controller.device import GatewayReport, ReceivedPacketInfo
from loraadr.controller.snr import noise_floor_dBm


def _history(snr_db: float, count: int = 20):
    """Return ``count`` packets received by one gateway at ``snr_db``."""
    rx_power = noise_floor_dBm() + snr_db
    return [ReceivedPacketInfo(GatewayReport({0: rx_power})) for _ in range(count)]


def test_worked_example_saturates_power_at_floor():
    packets = [ReceivedPacketInfo(GatewayReport({0: -80.0})) for _ in range(20)]
    decision = decide(packets, sf=7, tx_power=14.0)
    assert decision.snr == pytest.approx(37.03, abs=0.01)
    assert decision.required_snr == -7.5
    assert decision.margin == pytest.approx(34.53, abs=0.01)
    assert decision.steps == 11
    assert decision.data_rate == 5
    assert decision.tx_power == 2.0


def test_required_snr_table_and_clamping():
    assert required_snr(0) == -20.0
    assert required_snr(5) == -7.5
    assert required_snr(-1) == -20.0
    assert required_snr(9) == -7.5


def test_margin_and_steps():
    # SF9 -> DR3 -> -12.5 dB required
    assert compute_margin(5.0, 9) == pytest.approx(7.5)
    assert compute_steps(7.5) == 2
    assert compute_steps(2.9) == 0
    assert compute_steps(-0.1) == -1
    assert compute_steps(-7.5) == -3


def test_zero_steps_keeps_parameters():
    decision = decide(_history(-1.0), sf=9, tx_power=11.0)
    assert decision.steps == 0
    assert decision.sf == 9
    assert decision.tx_power == 11.0


def test_positive_steps_lower_sf_before_power():
    decision = decide(_history(5.0), sf=9, tx_power=14.0)
    assert decision.steps == 2
    assert (decision.sf, decision.tx_power) == (7, 14.0)

    decision = decide(_history(8.0), sf=9, tx_power=14.0)
    assert decision.steps == 3
    assert (decision.sf, decision.tx_power) == (7, 11.0)


def test_negative_steps_raise_power_but_never_sf():
    decision = decide(_history(-10.0), sf=9, tx_power=8.0)
    assert decision.steps == -3
    # two steps up to 14 dBm, the third one is dropped
    assert (decision.sf, decision.tx_power) == (9, 14.0)

    decision = decide(_history(-60.0), sf=7, tx_power=14.0)
    assert (decision.sf, decision.tx_power) == (7, 14.0)


def test_steps_never_cross_power_bounds():
    assert apply_steps(7, 4.0, 3) == (7, 4.0)
    assert apply_steps(7, 13.0, -2) == (7, 13.0)
    assert apply_steps(8, 13.0, 5) == (7, 4.0)


@pytest.mark.parametrize("sf", range(7, 13))
@pytest.mark.parametrize("tx_power", [2.0, 5.0, 8.0, 11.0, 14.0])
def test_decision_stays_within_bounds(sf, tx_power):
    for snr_db in range(-40, 45, 3):
        decision = decide(_history(float(snr_db)), sf=sf, tx_power=tx_power)
        assert 7 <= decision.sf <= 12
        assert 2.0 <= decision.tx_power <= 14.0
        assert decision.sf <= sf
        assert (decision.tx_power - tx_power) % 3.0 == 0.0


def test_better_link_never_raises_sf_or_power():
    for sf in range(7, 13):
        for base in range(-30, 30, 2):
            before = decide(_history(float(base)), sf=sf, tx_power=8.0)
            after = decide(_history(base + 4.5), sf=sf, tx_power=8.0)
            assert after.sf <= before.sf
            assert after.tx_power <= before.tx_power


def test_decision_is_deterministic():
    packets = _history(3.3)
    assert decide(packets, 10, 11.0) == decide(packets, 10, 11.0)


def test_config_margin_is_used():
    cfg = AdrConfig(device_margin_db=15.0)
    decision = decide(_history(5.0), sf=9, tx_power=14.0, config=cfg)
    assert decision.margin == pytest.approx(2.5)
    assert decision.sf == 9


@pytest.mark.parametrize("sf, tx_power", [(6, 14.0), (13, 14.0), (9, 20.0), (9, 0.0)])
def test_inconsistent_device_state_is_reported(sf, tx_power):
    with pytest.raises(AdrConsistencyError):
        decide(_history(0.0), sf=sf, tx_power=tx_power)


def test_build_command_uses_fixed_channels_and_repetitions():
    decision = decide(_history(8.0), sf=9, tx_power=14.0)
    command = build_command(decision)
    assert command.data_rate == 5
    assert command.tx_power == 11.0
    assert command.enabled_channels == (1, 2, 3)
    assert command.repetitions == 1


def test_narrowed_sf_bounds_keep_the_eu868_data_rates():
    config = AdrConfig(max_sf=11)
    packets = [ReceivedPacketInfo(GatewayReport({0: -80.0})) for _ in range(20)]
    decision = decide(packets, sf=7, tx_power=14.0, config=config)
    # SF7 is still DR5 and uses the DR5 threshold, not a clamped one.
    assert decision.required_snr == -7.5
    assert decision.data_rate == 5
    with pytest.raises(AdrConsistencyError):
        decide(packets, sf=12, tx_power=14.0, config=config)
