"""Exception types raised by the stimulus engine."""


class StimulusError(Exception):
    """Base class for all errors raised by :mod:`tinnitusbuilder_core`."""


class InvalidRequestError(StimulusError, ValueError):
    """A synthesis request was rejected before any output was opened."""


class UnmappedBandKeyError(StimulusError, LookupError):
    """The band table has no row for a resolved match key.

    The table is fixed and exhaustive, so this indicates a data error rather
    than bad user input.
    """


class OutputResourceError(StimulusError, OSError):
    """An output file could not be opened, written or finalised."""


class SynthesisInvariantError(StimulusError, RuntimeError):
    """Block synthesis reached a state the fixed carrier limits rule out."""


class GenerationCancelled(StimulusError):
    """A generation job was cancelled between blocks."""


__all__ = [
    "StimulusError",
    "InvalidRequestError",
    "UnmappedBandKeyError",
    "OutputResourceError",
    "SynthesisInvariantError",
    "GenerationCancelled",
]
