import math

import numpy as np
import pytest

from tinnitusbuilder_core.bands import BANDS, Band
from tinnitusbuilder_core.synth_functions.common import (
    normalize_block_peak,
    raised_cosine_envelope,
    ramp_samples,
)
from tinnitusbuilder_core.synth_functions.decorrelated_carrier import (
    MODE_AMPLITUDE,
    MODE_PHASE,
    ModulationMode,
    generate_block,
    harmonic_range,
    in_band_mask,
    modulation_terms,
    smr_drive,
)
from tinnitusbuilder_core.utils.rng import XorShift32

TWO_PI = 2.0 * math.pi


@pytest.mark.parametrize("mode", ["phase", "amplitude"])
@pytest.mark.parametrize("band_index", [0, 4, 6])
def test_block_peak_never_exceeds_target(mode, band_index):
    rng = XorShift32(2024)
    for _ in range(3):
        block = generate_block(BANDS[band_index], mode, rng, 1.0, sample_rate=44100)
        assert np.max(np.abs(block.samples)) <= 0.80


def test_block_length_rounds_duration():
    block = generate_block(BANDS[2], "phase", XorShift32(5), 0.25, sample_rate=44100)
    assert len(block) == 11025
    block = generate_block(BANDS[2], "phase", XorShift32(5), 1.0 / 3.0, sample_rate=3000)
    assert len(block) == 1000


def test_block_starts_and_ends_silent():
    block = generate_block(BANDS[3], "amplitude", XorShift32(77), 1.0, sample_rate=8000)
    assert block.samples[0] == pytest.approx(0.0, abs=1e-12)
    assert block.samples[-1] == pytest.approx(0.0, abs=1e-12)


def test_same_seed_gives_identical_blocks():
    a = generate_block(BANDS[5], "phase", XorShift32(42), 0.5, sample_rate=44100)
    b = generate_block(BANDS[5], "phase", XorShift32(42), 0.5, sample_rate=44100)
    assert a.f0 == b.f0
    np.testing.assert_array_equal(a.samples, b.samples)


def test_different_seeds_give_different_blocks():
    a = generate_block(BANDS[5], "phase", XorShift32(42), 0.5, sample_rate=44100)
    b = generate_block(BANDS[5], "phase", XorShift32(43), 0.5, sample_rate=44100)
    assert not np.array_equal(a.samples, b.samples)


def test_modes_differ_for_same_draws():
    a = generate_block(BANDS[4], "phase", XorShift32(9), 0.5, sample_rate=44100)
    b = generate_block(BANDS[4], "amplitude", XorShift32(9), 0.5, sample_rate=44100)
    assert a.f0 == b.f0
    assert not np.array_equal(a.samples, b.samples)


def test_draw_order_and_count():
    seed = 31337
    rng = XorShift32(seed)
    block = generate_block(BANDS[1], ModulationMode.AMPLITUDE, rng, 0.1, sample_rate=8000)

    replay = XorShift32(seed)
    replay.uniform(0.0, TWO_PI)  # p
    replay.uniform(0.0, TWO_PI)  # q
    f0 = replay.uniform(96.0, 256.0)
    n_min, n_max = harmonic_range(f0)
    for _ in range(n_max - n_min + 1):
        replay.uniform(0.0, TWO_PI)

    assert block.f0 == f0
    assert rng.state == replay.state


def test_fundamental_within_limits():
    rng = XorShift32(3)
    for _ in range(20):
        block = generate_block(BANDS[0], "phase", rng, 0.01, sample_rate=8000)
        assert 96.0 <= block.f0 < 256.0


def test_harmonic_range_at_fundamental_limits():
    assert harmonic_range(96.0) == (11, 166)
    assert harmonic_range(256.0) == (4, 62)
    assert harmonic_range(125.0) == (8, 128)


def test_in_band_mask_includes_both_edges():
    band = Band("edge", 1250.0, 2500.0)
    freqs = np.array([1000.0, 1249.999, 1250.0, 1875.0, 2500.0, 2500.001, 3750.0])
    mask = in_band_mask(freqs, band)
    assert mask.tolist() == [False, False, True, True, True, False, False]


def test_in_band_mask_agrees_with_band_contains():
    band = BANDS[3]
    freqs = np.linspace(2000.0, 6000.0, 41)
    mask = in_band_mask(freqs, band)
    assert mask.tolist() == [bool(band.contains(float(f))) for f in freqs]


def test_in_band_mask_matches_harmonic_series():
    # with f0 = 125 Hz, harmonics 8 and 16 land exactly on the 1-2 kHz band edges
    freqs = np.arange(8, 129, dtype=np.float64) * 125.0
    mask = in_band_mask(freqs, BANDS[0])
    assert mask[0] and freqs[0] == 1000.0
    assert mask[8] and freqs[8] == 2000.0
    assert not mask[9]
    assert int(np.count_nonzero(mask)) == 9


def test_amplitude_modulation_range():
    for mod_sin in np.linspace(-1.0, 1.0, 201):
        amp, psi = modulation_terms(mod_sin, MODE_AMPLITUDE, 1.0)
        assert 0.0 <= amp <= 2.0
        assert psi == 0.0


def test_phase_modulation_range():
    for mod_sin in np.linspace(-1.0, 1.0, 201):
        amp, psi = modulation_terms(mod_sin, MODE_PHASE, 1.0)
        assert amp == 1.0
        assert 0.0 <= psi <= TWO_PI + 1e-12


def test_smr_drive_range():
    t = np.arange(44100 * 8) / 44100.0
    s = smr_drive(t, 1.234)
    assert s.min() >= 4.5 - 3.0 - 1e-12
    assert s.max() <= 4.5 + 3.0 + 1e-12


def test_ramp_samples_split_between_ends():
    assert ramp_samples(1.0, 44100, 176400) == 22050
    # short blocks cap each half so the fades never overlap
    assert ramp_samples(1.0, 44100, 1000) == 500
    assert ramp_samples(0.0, 44100, 176400) == 0


def test_raised_cosine_envelope_shape():
    n_ramp = 22050
    env = raised_cosine_envelope(176400, n_ramp)
    assert env[0] == pytest.approx(0.0, abs=1e-12)
    assert env[n_ramp] == 1.0
    assert np.all(env[n_ramp:176400 - n_ramp] == 1.0)
    assert env[-1] == pytest.approx(0.0, abs=1e-12)
    assert np.all(np.diff(env[:n_ramp + 1]) >= -1e-15)
    assert np.all(np.diff(env[176400 - n_ramp - 1:]) <= 1e-15)
    # midpoint of the fade-in sits at half amplitude
    assert env[n_ramp // 2] == pytest.approx(0.5, abs=1e-4)


def test_raised_cosine_formula():
    n_ramp = 100
    env = raised_cosine_envelope(1000, n_ramp)
    x = np.arange(n_ramp) / n_ramp
    np.testing.assert_allclose(env[:n_ramp], 0.5 * (1.0 - np.cos(np.pi * x)), atol=1e-12)
    tail = (1000 - 1 - np.arange(1000 - n_ramp, 1000)) / n_ramp
    np.testing.assert_allclose(env[-n_ramp:], 0.5 * (1.0 - np.cos(np.pi * tail)), atol=1e-12)


def test_short_blocks_stay_at_or_below_target_peak():
    rng = XorShift32(1)
    worst = 0.0
    for i in range(200):
        band = BANDS[i % len(BANDS)]
        mode = "phase" if i % 2 else "amplitude"
        block = generate_block(band, mode, rng, 0.05, sample_rate=44100)
        worst = max(worst, float(np.max(np.abs(block.samples))))
    assert worst <= 0.80


def test_normalize_clamps_rounding_overshoot():
    rng = np.random.default_rng(0)
    for _ in range(500):
        samples = rng.uniform(-3.0, 3.0, 64)
        normalize_block_peak(samples, 0.8)
        assert np.max(np.abs(samples)) <= 0.8


def test_normalize_only_attenuates():
    loud = np.array([0.0, 2.0, -4.0])
    assert normalize_block_peak(loud, 0.8) == pytest.approx(0.2)
    assert np.max(np.abs(loud)) == pytest.approx(0.8)

    quiet = np.array([0.1, -0.2])
    assert normalize_block_peak(quiet, 0.8) == 1.0
    np.testing.assert_array_equal(quiet, [0.1, -0.2])

    silent = np.zeros(4)
    assert normalize_block_peak(silent, 0.8) == 1.0


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        generate_block(BANDS[0], "frequency", XorShift32(1), 0.1)
