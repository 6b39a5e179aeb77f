"""Request validation and block-by-block rendering of stimulus files.

A :class:`GenerationJob` renders the active stimulus and, optionally, the
sham control for one :class:`SynthesisRequest`. Iterating the job performs
the work and yields a :class:`ProgressEvent` after every block; each yield
is the only point where the caller can relay progress or stop the job.
"""

from __future__ import annotations

import json
import logging
import math
import shutil
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .bands import Band, BandRole, BandSelection, resolve_bands
from .errors import GenerationCancelled, InvalidRequestError, StimulusError
from .synth_functions.decorrelated_carrier import ModulationMode, generate_block
from .utils.preferences import Preferences
from .utils.rng import XorShift32, default_seed
from .utils.wav_stream import StreamingWavWriter

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 120


def _parse_bool(value, default=False):
    """Convert various representations to bool.

    Accepts booleans, numeric values, and common string forms such as
    "true"/"false". Any unrecognised value returns ``default``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"true", "1", "yes", "on"}:
            return True
        if v in {"false", "0", "no", "off"}:
            return False
    return default


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class SynthesisRequest:
    """Validated parameters for one generation run."""

    target_frequency_hz: float
    modulation_mode: ModulationMode = ModulationMode.PHASE
    duration_minutes: int = 60
    use_active_alternate: bool = False
    use_sham_alternate: bool = False
    generate_sham_file: bool = False

    def __post_init__(self) -> None:
        try:
            freq = float(self.target_frequency_hz)
        except (TypeError, ValueError):
            raise InvalidRequestError(
                f"target_frequency_hz must be a number (got {self.target_frequency_hz!r})"
            ) from None
        if isinstance(self.target_frequency_hz, bool) or not math.isfinite(freq) or freq <= 0.0:
            raise InvalidRequestError(
                f"target_frequency_hz must be finite and positive (got {self.target_frequency_hz!r})"
            )

        try:
            mode = ModulationMode(str(getattr(self.modulation_mode, "value", self.modulation_mode)).lower())
        except ValueError:
            raise InvalidRequestError(
                f"modulation_mode must be 'phase' or 'amplitude' (got {self.modulation_mode!r})"
            ) from None

        minutes = self.duration_minutes
        if isinstance(minutes, float) and minutes.is_integer():
            minutes = int(minutes)
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise InvalidRequestError(f"duration_minutes must be an integer (got {self.duration_minutes!r})")
        if not MIN_DURATION_MINUTES <= minutes <= MAX_DURATION_MINUTES:
            raise InvalidRequestError(
                f"duration_minutes must lie within [{MIN_DURATION_MINUTES}, {MAX_DURATION_MINUTES}] "
                f"(got {minutes})"
            )

        object.__setattr__(self, "target_frequency_hz", freq)
        object.__setattr__(self, "modulation_mode", mode)
        object.__setattr__(self, "duration_minutes", minutes)
        for name in ("use_active_alternate", "use_sham_alternate", "generate_sham_file"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise InvalidRequestError(f"{name} must be a bool (got {value!r})")

    @property
    def total_seconds(self) -> float:
        return float(self.duration_minutes * 60)

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> "SynthesisRequest":
        """Build a request from the external JSON shape.

        Both the documented camelCase keys and the short aliases used by the
        web front end (``tinnitusHz``, ``mode``, ``minutes``, ``useAltActive``,
        ``useAltSham``, ``generateSham``) are accepted.
        """

        def pick(*names, default=None):
            for name in names:
                if name in params and params[name] is not None:
                    return params[name]
            return default

        freq = pick("targetFrequencyHz", "target_frequency_hz", "tinnitusHz")
        if freq is None:
            raise InvalidRequestError("Missing targetFrequencyHz")
        if isinstance(freq, str):
            try:
                freq = float(freq)
            except ValueError:
                raise InvalidRequestError(f"Invalid targetFrequencyHz: {freq!r}") from None

        minutes = pick("durationMinutes", "duration_minutes", "minutes", default=60)
        if isinstance(minutes, str):
            try:
                minutes = float(minutes)
            except ValueError:
                raise InvalidRequestError(f"Invalid durationMinutes: {minutes!r}") from None

        return cls(
            target_frequency_hz=freq,
            modulation_mode=pick("modulationMode", "modulation_mode", "mode", default="phase"),
            duration_minutes=minutes,
            use_active_alternate=_parse_bool(pick("useActiveAlternate", "use_active_alternate", "useAltActive")),
            use_sham_alternate=_parse_bool(pick("useShamAlternate", "use_sham_alternate", "useAltSham")),
            generate_sham_file=_parse_bool(pick("generateShamFile", "generate_sham_file", "generateSham")),
        )


@dataclass(frozen=True)
class ProgressEvent:
    role: str
    blocks_completed: int
    total_blocks: int
    fraction: float
    filename: str = ""

    def as_dict(self) -> Dict[str, object]:
        return {
            "role": self.role,
            "blocksCompleted": self.blocks_completed,
            "totalBlocks": self.total_blocks,
            "fraction": self.fraction,
            "filename": self.filename,
        }


@dataclass(frozen=True)
class GenerationResult:
    active: str
    sham: Optional[str]
    target_frequency_hz: int
    modulation_mode: ModulationMode
    duration_minutes: int
    active_band: Band
    sham_band: Optional[Band]
    match_key_khz: float
    seed: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "active": self.active,
            "sham": self.sham,
            "targetFrequencyHz": self.target_frequency_hz,
            "modulationMode": self.modulation_mode.value,
            "durationMinutes": self.duration_minutes,
            "activeBand": self.active_band.as_dict(),
            "shamBand": self.sham_band.as_dict() if self.sham_band is not None else None,
            "matchKeyKHz": self.match_key_khz,
            "seed": self.seed,
        }


@dataclass(frozen=True)
class BlockPlan:
    """How a file's samples are split into blocks."""

    full_blocks: int
    full_block_samples: int
    remainder_samples: int
    sample_rate: int

    @property
    def total_blocks(self) -> int:
        return self.full_blocks + (1 if self.remainder_samples > 0 else 0)

    @property
    def total_samples(self) -> int:
        return self.full_blocks * self.full_block_samples + self.remainder_samples

    def block_durations(self) -> List[float]:
        """Durations in seconds, full blocks first, then the remainder block."""
        durations = [self.full_block_samples / self.sample_rate] * self.full_blocks
        if self.remainder_samples > 0:
            durations.append(self.remainder_samples / self.sample_rate)
        return durations


def plan_blocks(total_seconds: float, block_seconds: float, sample_rate: int) -> BlockPlan:
    full_blocks = int(math.floor(total_seconds / block_seconds))
    full_block_samples = int(round(block_seconds * sample_rate))
    total_samples = int(round(total_seconds * sample_rate))
    remainder = max(0, total_samples - full_blocks * full_block_samples)
    return BlockPlan(
        full_blocks=full_blocks,
        full_block_samples=full_block_samples,
        remainder_samples=remainder,
        sample_rate=int(sample_rate),
    )


def stimulus_filename(role, mode, target_frequency_hz: float, duration_minutes: int) -> str:
    """e.g. ``active_phase_8000Hz_60min.wav``."""
    role = BandRole(role).value
    mode = ModulationMode(mode).value
    return f"{role}_{mode}_{_round_half_up(target_frequency_hz)}Hz_{duration_minutes}min.wav"


class JobState(str, Enum):
    IDLE = "idle"
    GENERATING_ACTIVE = "generating_active"
    GENERATING_SHAM = "generating_sham"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


class GenerationJob:
    """Render the files for one request; iterate to run.

    Each job owns its sequence generators and output handles, so separate
    jobs never share state. The active and sham files are rendered from the
    same seed, so paired stimuli differ only in their modulated band.
    """

    def __init__(
        self,
        request: SynthesisRequest,
        output_dir,
        seed: Optional[int] = None,
        preferences: Optional[Preferences] = None,
    ) -> None:
        if not isinstance(request, SynthesisRequest):
            raise TypeError(f"Expected SynthesisRequest, got {type(request).__name__}")
        self.request = request
        self.output_dir = Path(output_dir)
        self.seed = int(seed) if seed is not None else default_seed()
        self.preferences = (preferences or Preferences()).validate()
        self.bands: BandSelection = resolve_bands(request)
        self.plan = plan_blocks(
            request.total_seconds, float(self.preferences.block_seconds), int(self.preferences.sample_rate)
        )
        self.state = JobState.IDLE
        self.result: Optional[GenerationResult] = None
        self._cancel_requested = False
        self._started = False
        self._written: List[Path] = []

    def output_path(self, role) -> Path:
        r = self.request
        return self.output_dir / stimulus_filename(role, r.modulation_mode, r.target_frequency_hz, r.duration_minutes)

    def cancel(self) -> None:
        """Stop at the next block boundary; the job then raises :class:`GenerationCancelled`."""
        self._cancel_requested = True

    def __iter__(self) -> Iterator[ProgressEvent]:
        if self._started:
            raise RuntimeError(f"Generation job already started (state: {self.state.value})")
        self._started = True
        return self._run()

    def run(self, progress_callback: Optional[Callable[[ProgressEvent], None]] = None) -> GenerationResult:
        """Run to completion, passing every event to ``progress_callback``."""
        for event in self:
            if progress_callback is not None:
                progress_callback(event)
        return self.result

    def _run(self) -> Iterator[ProgressEvent]:
        r = self.request
        logger.info(
            "Generating %s stimulus: %.1f Hz, %d min, seed=%d, %d blocks per file",
            r.modulation_mode.value, r.target_frequency_hz, r.duration_minutes,
            self.seed, self.plan.total_blocks,
        )
        try:
            self.state = JobState.GENERATING_ACTIVE
            yield from self._render_file(BandRole.ACTIVE, self.bands.active)
            if self.bands.sham is not None:
                self.state = JobState.GENERATING_SHAM
                yield from self._render_file(BandRole.SHAM, self.bands.sham)
        except (GeneratorExit, GenerationCancelled):
            self.state = JobState.CANCELLED
            self._remove_written()
            logger.info("Generation cancelled; partial output removed")
            raise
        except Exception:
            self.state = JobState.FAILED
            self._remove_written()
            logger.exception("Generation failed for %.1f Hz", r.target_frequency_hz)
            raise

        self.result = GenerationResult(
            active=self.output_path(BandRole.ACTIVE).name,
            sham=self.output_path(BandRole.SHAM).name if self.bands.sham is not None else None,
            target_frequency_hz=_round_half_up(r.target_frequency_hz),
            modulation_mode=r.modulation_mode,
            duration_minutes=r.duration_minutes,
            active_band=self.bands.active,
            sham_band=self.bands.sham,
            match_key_khz=self.bands.match_key_khz,
            seed=self.seed,
        )
        self.state = JobState.COMPLETE
        logger.info("Generation complete: %s", self.result.as_dict())

    def _render_file(self, role: BandRole, band: Band) -> Iterator[ProgressEvent]:
        prefs = self.preferences
        path = self.output_path(role)
        has_sham = self.bands.sham is not None
        scale = 0.5 if has_sham else 1.0
        offset = 0.5 if role is BandRole.SHAM else 0.0
        total = self.plan.total_blocks
        rng = XorShift32(self.seed)

        logger.info("Writing %s (band %s)", path, band.name)
        with StreamingWavWriter(path, sample_rate=int(prefs.sample_rate)) as writer:
            for index, seconds in enumerate(self.plan.block_durations(), start=1):
                block = generate_block(
                    band,
                    self.request.modulation_mode,
                    rng,
                    seconds,
                    sample_rate=int(prefs.sample_rate),
                    ramp_seconds=float(prefs.ramp_seconds),
                    target_peak=float(prefs.target_peak),
                )
                writer.write_block(block.samples)
                yield ProgressEvent(
                    role=role.value,
                    blocks_completed=index,
                    total_blocks=total,
                    fraction=offset + (index / total) * scale,
                    filename=path.name,
                )
                if self._cancel_requested:
                    raise GenerationCancelled(f"Cancelled after block {index}/{total} of {path.name}")
        self._written.append(path)

    def _remove_written(self) -> None:
        for path in self._written:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
        self._written.clear()


def generate_stimulus_files(
    request,
    output_dir,
    *,
    seed: Optional[int] = None,
    preferences: Optional[Preferences] = None,
    progress_callback: Optional[Callable[[ProgressEvent], None]] = None,
) -> GenerationResult:
    """Render the active (and optional sham) file for ``request``.

    ``request`` may be a :class:`SynthesisRequest` or a mapping in the
    external request shape.
    """
    if not isinstance(request, SynthesisRequest):
        request = SynthesisRequest.from_mapping(request)
    job = GenerationJob(request, output_dir, seed=seed, preferences=preferences)
    return job.run(progress_callback)


EXAMPLE_FREQUENCIES: Tuple[Tuple[int, str], ...] = (
    (1000, "1.0 kHz (Low)"),
    (2000, "2.0 kHz (Low-Mid)"),
    (4000, "4.0 kHz (Mid)"),
    (6700, "6.7 kHz (Mid-High)"),
    (8000, "8.0 kHz (High)"),
    (11000, "11.0 kHz (Very High)"),
)
EXAMPLES_METADATA_FILE = "examples.json"


def generate_example_set(
    output_dir,
    *,
    frequencies: Sequence[Tuple[int, str]] = EXAMPLE_FREQUENCIES,
    modes: Sequence[str] = ("phase", "amplitude"),
    minutes: Optional[int] = None,
    seed: Optional[int] = None,
    preferences: Optional[Preferences] = None,
) -> List[Dict[str, object]]:
    """Render one active example per frequency and mode plus ``examples.json``.

    Examples that fail to render are logged and skipped.
    """
    prefs = preferences or Preferences()
    minutes = int(minutes if minutes is not None else prefs.example_minutes)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    examples: List[Dict[str, object]] = []
    with tempfile.TemporaryDirectory(dir=output_dir) as staging:
        for hz, label in frequencies:
            for mode in modes:
                request = SynthesisRequest(
                    target_frequency_hz=hz,
                    modulation_mode=mode,
                    duration_minutes=minutes,
                )
                logger.info("Generating example: %s, %s modulation", label, mode)
                try:
                    result = generate_stimulus_files(request, staging, seed=seed, preferences=prefs)
                except (StimulusError, OSError) as e:
                    logger.error("Example %s %s failed: %s", label, mode, e)
                    continue
                filename = f"example_{hz}Hz_{mode}.wav"
                shutil.move(str(Path(staging) / result.active), str(output_dir / filename))
                examples.append({
                    "frequency": hz,
                    "frequencyLabel": label,
                    "mode": mode,
                    "filename": filename,
                    "band": result.active_band.name,
                })

    with open(output_dir / EXAMPLES_METADATA_FILE, "w", encoding="utf-8") as f:
        json.dump(examples, f, indent=2)
    logger.info("Generated %d example files in %s", len(examples), output_dir)
    return examples


__all__ = [
    "SynthesisRequest",
    "ProgressEvent",
    "GenerationResult",
    "BlockPlan",
    "JobState",
    "GenerationJob",
    "plan_blocks",
    "stimulus_filename",
    "generate_stimulus_files",
    "generate_example_set",
    "EXAMPLE_FREQUENCIES",
]
