"""Cross-frequency de-correlating carrier synthesis.

Implements Eq. (1)-(5) of Yukhnovich et al. (Hearing Research, 2025): a
harmonic complex on a random fundamental whose in-band harmonics are
amplitude or phase modulated by a drive whose spectral modulation rate
itself oscillates slowly (the SMR term).

Eq. (1)  x(t)  = sum_n A_n(t) sin(2 pi n f0 t + phi_n + psi_n(t))
Eq. (2)  A(t)  = 1 + d sin(2 pi [w t + F_n S(t)] + q)
Eq. (3)  psi(t) = pi (1 + d sin(2 pi [w t + F_n S(t)] + q))
Eq. (4)  F_n   = log2(n f0 / c)
Eq. (5)  S(t)  = mu + r sin(p + 2 pi nu t)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

import numba
import numpy as np

from ..errors import SynthesisInvariantError
from .common import apply_raised_cosine_ramp, normalize_block_peak, time_axis

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * np.pi

# Modulation parameters from the paper
MOD_DEPTH = 1.0          # d, Eq. 2-3
TEMPORAL_RATE_HZ = 1.0   # omega, Eq. 2-3
SMR_MEAN = 4.5           # mu, cycles/octave
SMR_RANGE = 3.0          # r, cycles/octave
SMR_RATE_HZ = 0.125      # nu, one SMR cycle every 8 s

# Carrier limits
F0_MIN_HZ = 96.0
F0_MAX_HZ = 256.0
CARRIER_MIN_HZ = 1000.0
CARRIER_MAX_HZ = 16000.0

DEFAULT_SAMPLE_RATE = 44100
DEFAULT_BLOCK_SECONDS = 4.0
DEFAULT_RAMP_SECONDS = 1.0
DEFAULT_TARGET_PEAK = 0.80


class ModulationMode(str, Enum):
    PHASE = "phase"
    AMPLITUDE = "amplitude"

    @property
    def code(self) -> int:
        return _MODE_CODES[self]


MODE_AMPLITUDE = 0
MODE_PHASE = 1
_MODE_CODES = {ModulationMode.AMPLITUDE: MODE_AMPLITUDE, ModulationMode.PHASE: MODE_PHASE}


@dataclass
class SynthBlock:
    """One rendered block; ``f0`` is informational."""

    samples: np.ndarray
    f0: float

    def __len__(self) -> int:
        return int(self.samples.shape[0])


@numba.njit(cache=True)
def modulation_terms(mod_sin, mode_code, depth):
    """Return ``(A, psi)`` for one in-band sample.

    Amplitude mode keeps ``A`` in ``[0, 2]`` with ``psi = 0``; phase mode keeps
    ``A = 1`` with ``psi`` in ``[0, 2 pi]``.
    """
    if mode_code == MODE_AMPLITUDE:
        return 1.0 + depth * mod_sin, 0.0
    return 1.0, math.pi * (1.0 + depth * mod_sin)


@numba.njit(cache=True)
def _harmonic_sum_core(t, smr, omega_ramp, freqs, phases, in_band, fn, q_phase, mode_code, depth):
    N = t.shape[0]
    out = np.zeros(N, dtype=np.float64)
    mod_sin = np.empty(N, dtype=np.float64)

    for h in range(freqs.shape[0]):
        w = 2.0 * math.pi * freqs[h]
        phi = phases[h]
        if in_band[h]:
            tau_fn = 2.0 * math.pi * fn[h]
            for i in range(N):
                mod_sin[i] = math.sin(omega_ramp[i] + tau_fn * smr[i] + q_phase)
            for i in range(N):
                amp, psi = modulation_terms(mod_sin[i], mode_code, depth)
                out[i] += amp * math.sin(w * t[i] + phi + psi)
        else:
            for i in range(N):
                out[i] += math.sin(w * t[i] + phi)

    return out


def harmonic_range(f0):
    """Harmonic numbers ``[n_min, n_max]`` whose frequencies fit the carrier limits."""
    n_min = int(math.ceil(CARRIER_MIN_HZ / f0))
    n_max = int(math.floor(CARRIER_MAX_HZ / f0))
    if n_min > n_max:
        raise SynthesisInvariantError(
            f"No harmonics of f0={f0:.3f} Hz fall within "
            f"{CARRIER_MIN_HZ:.0f}-{CARRIER_MAX_HZ:.0f} Hz"
        )
    return n_min, n_max


def in_band_mask(freqs, band):
    """Harmonics receiving modulation; both band edges count as in band."""
    return band.contains(freqs)


def smr_drive(t, p_phase, mean=SMR_MEAN, spread=SMR_RANGE, rate=SMR_RATE_HZ):
    """Eq. (5): ``S(t) = mu + r sin(p + 2 pi nu t)``."""
    return mean + spread * np.sin(p_phase + TWO_PI * rate * t)


def temporal_ramp(t, rate=TEMPORAL_RATE_HZ):
    """The ``2 pi w t`` term shared by Eq. (2) and (3)."""
    return TWO_PI * rate * t


def generate_block(
    band,
    mode,
    rng,
    duration,
    sample_rate=DEFAULT_SAMPLE_RATE,
    ramp_seconds=DEFAULT_RAMP_SECONDS,
    target_peak=DEFAULT_TARGET_PEAK,
):
    """
    Render one block of the de-correlated carrier.

    Args:
        band: :class:`~tinnitusbuilder_core.bands.Band` receiving modulation.
        mode: ``"phase"`` or ``"amplitude"`` (or a :class:`ModulationMode`).
        rng: :class:`~tinnitusbuilder_core.utils.rng.XorShift32` advanced by
            every draw made for the block.
        duration: Block length in seconds.
        sample_rate: Output sample rate in Hz.
        ramp_seconds: Total raised-cosine ramp time, half at each end.
        target_peak: Absolute peak ceiling after normalisation.

    Returns:
        :class:`SynthBlock` holding ``round(sample_rate * duration)`` float64
        samples and the fundamental drawn for the block.
    """
    mode = ModulationMode(mode)
    N = int(round(float(sample_rate) * float(duration)))
    t = time_axis(N, sample_rate)

    # Draw order is part of the output format: p, q, f0, then one phase per harmonic.
    p_phase = rng.uniform(0.0, TWO_PI)
    q_phase = rng.uniform(0.0, TWO_PI)
    f0 = rng.uniform(F0_MIN_HZ, F0_MAX_HZ)

    n_min, n_max = harmonic_range(f0)
    harmonics = np.arange(n_min, n_max + 1, dtype=np.float64)
    freqs = harmonics * f0
    phases = np.array([rng.uniform(0.0, TWO_PI) for _ in range(harmonics.shape[0])], dtype=np.float64)

    in_band = in_band_mask(freqs, band)
    fn = np.log2(freqs / band.centre_hz)

    smr = smr_drive(t, p_phase)
    omega_ramp = temporal_ramp(t)

    out = _harmonic_sum_core(
        t, smr, omega_ramp, freqs, phases, in_band, fn,
        q_phase, mode.code, MOD_DEPTH,
    )

    apply_raised_cosine_ramp(out, ramp_seconds, sample_rate)
    normalize_block_peak(out, target_peak)

    logger.debug(
        "Block %.3fs: f0=%.2f Hz, harmonics %d-%d (%d in band %s)",
        duration, f0, n_min, n_max, int(np.count_nonzero(in_band)), band.name,
    )
    return SynthBlock(samples=out, f0=f0)
