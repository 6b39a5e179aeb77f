"""
Common utilities shared by the stimulus synth functions.
"""
import numpy as np
from scipy.signal import windows

PEAK_FLOOR = 1e-9


def time_axis(num_samples, sample_rate):
    """Return ``t_i = i / sample_rate`` for ``i`` in ``[0, num_samples)``."""
    return np.arange(int(num_samples), dtype=np.float64) / float(sample_rate)


def ramp_samples(ramp_seconds, sample_rate, num_samples):
    """Samples in each half of a ``ramp_seconds`` raised-cosine ramp.

    ``ramp_seconds`` is the total ramp time, split evenly between fade-in and
    fade-out. Short blocks cap each half at ``num_samples // 2`` so the two
    fades never overlap.
    """
    n_ramp = int(round(float(ramp_seconds) * float(sample_rate) / 2.0))
    return max(0, min(n_ramp, int(num_samples) // 2))


def raised_cosine_envelope(num_samples, n_ramp):
    """
    Envelope that fades in over the first ``n_ramp`` samples and out over the
    last ``n_ramp`` samples with ``0.5 * (1 - cos(pi * x))``.

    The fade-in is the rising half of a symmetric Hann window of length
    ``2 * n_ramp + 1``, so sample 0 is exactly 0 and sample ``n_ramp`` is
    exactly 1. The fade-out mirrors it, ending on 0.
    """
    num_samples = int(num_samples)
    envelope = np.ones(num_samples, dtype=np.float64)
    if n_ramp <= 0 or num_samples == 0:
        return envelope
    fade_in = windows.hann(2 * n_ramp + 1, sym=True)[:n_ramp]
    envelope[:n_ramp] = fade_in
    envelope[num_samples - n_ramp:] = fade_in[::-1]
    return envelope


def apply_raised_cosine_ramp(samples, ramp_seconds, sample_rate):
    """Apply :func:`raised_cosine_envelope` in place and return ``samples``."""
    n_ramp = ramp_samples(ramp_seconds, sample_rate, samples.shape[0])
    samples *= raised_cosine_envelope(samples.shape[0], n_ramp)
    return samples


def normalize_block_peak(samples, target_peak=0.80):
    """
    Scale ``samples`` in place so the absolute peak does not exceed
    ``target_peak``. Quiet blocks are never amplified.

    Returns the scale factor applied.
    """
    peak = float(np.max(np.abs(samples))) if samples.size else 0.0
    peak = max(peak, PEAK_FLOOR)
    scale = min(1.0, float(target_peak) / peak)
    if scale != 1.0:
        samples *= scale
        # target / peak * peak can round one ulp above the target
        np.clip(samples, -target_peak, target_peak, out=samples)
    return scale
