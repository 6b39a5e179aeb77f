import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
import json

logger = logging.getLogger(__name__)


@dataclass
class Preferences:
    sample_rate: int = 44100
    # Each block draws a new fundamental; the ramp is split between both ends
    block_seconds: float = 4.0
    ramp_seconds: float = 1.0
    # Peak amplitude of every rendered block (0-1.0)
    target_peak: float = 0.80
    output_dir: str = "generated"
    default_mode: str = "phase"
    default_minutes: int = 60
    # Duration of the files written by ``generate_example_set``
    example_minutes: int = 5

    def validate(self) -> "Preferences":
        if int(self.sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive (got {self.sample_rate})")
        if float(self.block_seconds) <= 0.0:
            raise ValueError(f"block_seconds must be positive (got {self.block_seconds})")
        if not 0.0 <= float(self.ramp_seconds) <= float(self.block_seconds):
            raise ValueError(
                f"ramp_seconds must lie within [0, block_seconds] (got {self.ramp_seconds})"
            )
        if not 0.0 < float(self.target_peak) <= 1.0:
            raise ValueError(f"target_peak must lie within (0, 1] (got {self.target_peak})")
        if self.default_mode not in ("phase", "amplitude"):
            raise ValueError(f"default_mode must be 'phase' or 'amplitude' (got {self.default_mode!r})")
        return self


PREF_FILE = Path.home() / ".tinnitusbuilder_prefs.json"
PREF_ENV_VAR = "TINNITUSBUILDER_PREFS"


def preferences_path() -> Path:
    override = os.environ.get(PREF_ENV_VAR)
    return Path(override) if override else PREF_FILE


def load_preferences(path=None) -> Preferences:
    path = Path(path) if path is not None else preferences_path()
    if path.is_file():
        try:
            with open(path, "r") as f:
                data = json.load(f)
            prefs = Preferences()
            known = {f.name for f in fields(Preferences)}
            for k, v in data.items():
                if k in known:
                    setattr(prefs, k, v)
            return prefs.validate()
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to load preferences from %s: %s", path, e)
    return Preferences()


def save_preferences(prefs: Preferences, path=None) -> Path:
    path = Path(path) if path is not None else preferences_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(asdict(prefs), f, indent=2)
    return path
