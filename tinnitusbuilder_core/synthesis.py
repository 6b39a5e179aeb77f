"""Wrapper exports for stimulus synthesis utilities."""

from .synth_functions.decorrelated_carrier import (
    ModulationMode,
    SynthBlock,
    generate_block,
    harmonic_range,
    modulation_terms,
)

__all__ = [
    "ModulationMode",
    "SynthBlock",
    "generate_block",
    "harmonic_range",
    "modulation_terms",
]
