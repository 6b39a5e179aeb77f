"""Deterministic synthesis of cross-frequency de-correlating tinnitus stimuli."""

import logging

from .utils.numba_status import configure_numba

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Log Numba status once, before the kernels are compiled.
configure_numba()

from .bands import (
    Band,
    BandRole,
    BandSelection,
    BandTableRow,
    BANDS,
    MATCH_KEYS_KHZ,
    lookup_row,
    resolve_bands,
    resolve_match_key,
    select_band,
)
from .errors import (
    GenerationCancelled,
    InvalidRequestError,
    OutputResourceError,
    StimulusError,
    SynthesisInvariantError,
    UnmappedBandKeyError,
)
from .generation import (
    BlockPlan,
    GenerationJob,
    GenerationResult,
    JobState,
    ProgressEvent,
    SynthesisRequest,
    generate_example_set,
    generate_stimulus_files,
    plan_blocks,
    stimulus_filename,
)
from .synthesis import ModulationMode, SynthBlock, generate_block
from .utils.preferences import Preferences, load_preferences, save_preferences
from .utils.rng import XorShift32
from .utils.wav_stream import StreamingWavWriter, read_wav_header

__all__ = [
    "Band",
    "BandRole",
    "BandSelection",
    "BandTableRow",
    "BANDS",
    "MATCH_KEYS_KHZ",
    "lookup_row",
    "resolve_bands",
    "resolve_match_key",
    "select_band",
    "GenerationCancelled",
    "InvalidRequestError",
    "OutputResourceError",
    "StimulusError",
    "SynthesisInvariantError",
    "UnmappedBandKeyError",
    "BlockPlan",
    "GenerationJob",
    "GenerationResult",
    "JobState",
    "ProgressEvent",
    "SynthesisRequest",
    "generate_example_set",
    "generate_stimulus_files",
    "plan_blocks",
    "stimulus_filename",
    "ModulationMode",
    "SynthBlock",
    "generate_block",
    "Preferences",
    "load_preferences",
    "save_preferences",
    "XorShift32",
    "StreamingWavWriter",
    "read_wav_header",
]
