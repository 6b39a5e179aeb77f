"""Numba status and render-throughput helpers."""
from __future__ import annotations

import logging
import os
import time

import numba

logger = logging.getLogger(__name__)

_NUMBA_LOGGED = False


def configure_numba(log: bool = True) -> str:
    """Log the Numba configuration once and return its version string."""

    global _NUMBA_LOGGED

    if log and not _NUMBA_LOGGED:
        cpu_name = os.environ.get("NUMBA_CPU_NAME", "generic")
        cpu_features = os.environ.get("NUMBA_CPU_FEATURES", "auto")
        logger.info(
            "Numba %s detected (threads=%d, target=%s, features=%s)",
            numba.__version__, numba.get_num_threads(), cpu_name, cpu_features,
        )
        _NUMBA_LOGGED = True

    return numba.__version__


def run_block_benchmark(block_seconds: float = 4.0, sample_rate: int = 44100,
                        mode: str = "phase", seed: int = 1) -> dict:
    """Time one block render after a warm-up call that triggers compilation.

    Returns the elapsed time, sample throughput and real-time factor.
    """
    from ..bands import BANDS
    from ..synth_functions.decorrelated_carrier import generate_block
    from .rng import XorShift32

    band = BANDS[-1]
    generate_block(band, mode, XorShift32(seed), 0.05, sample_rate)

    rng = XorShift32(seed)
    start = time.perf_counter()
    block = generate_block(band, mode, rng, block_seconds, sample_rate)
    elapsed = time.perf_counter() - start

    samples = len(block)
    elapsed = max(elapsed, 1e-9)
    return {
        "block_seconds": float(block_seconds),
        "elapsed": elapsed,
        "samples_per_second": samples / elapsed,
        "realtime_factor": float(block_seconds) / elapsed,
        "threads": numba.get_num_threads(),
    }
