"""Modulation bands and the tinnitus-match lookup table.

The seven overlapping bands and the seventeen match keys reproduce Table 1 of
Yukhnovich et al. (Hearing Research, 2025). Each key carries a preferred
band for the active stimulus (A1) and for the sham control (C1), plus an
optional contingency band (A2/C2) used when the preferred one is inaudible
to the listener.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .errors import UnmappedBandKeyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Band:
    """A frequency interval that receives in-band modulation."""

    name: str
    low_hz: float
    high_hz: float

    def __post_init__(self) -> None:
        if not self.low_hz < self.high_hz:
            raise ValueError(
                f"Band '{self.name}' must satisfy low_hz < high_hz "
                f"(got {self.low_hz}, {self.high_hz})"
            )

    @property
    def centre_hz(self) -> float:
        """Geometric (log) centre of the band."""
        return math.sqrt(self.low_hz * self.high_hz)

    def contains(self, freq_hz):
        """Inclusive on both edges; ``freq_hz`` may be a scalar or a numpy array."""
        return (freq_hz >= self.low_hz) & (freq_hz <= self.high_hz)

    def as_dict(self) -> Dict[str, object]:
        return {"name": self.name, "lowHz": self.low_hz, "highHz": self.high_hz}


class BandRole(str, Enum):
    ACTIVE = "active"
    SHAM = "sham"


@dataclass(frozen=True)
class BandTableRow:
    """Band indices for one match key."""

    key_khz: float
    active_preferred: int
    active_alternate: Optional[int]
    sham_preferred: int
    sham_alternate: Optional[int]


BANDS: Tuple[Band, ...] = (
    Band("1-2k", 1000.0, 2000.0),
    Band("1.4-2.8k", 1400.0, 2800.0),
    Band("2-4k", 2000.0, 4000.0),
    Band("2.8-5.7k", 2800.0, 5700.0),
    Band("4-8k", 4000.0, 8000.0),
    Band("5.7-11k", 5700.0, 11000.0),
    Band("8-16k", 8000.0, 16000.0),
)

MATCH_KEYS_KHZ: Tuple[float, ...] = (
    1.0, 1.2, 1.4, 1.7, 2.0, 2.4, 2.8, 3.4, 4.0,
    4.8, 5.7, 6.7, 8.0, 9.5, 11.0, 13.0, 16.0,
)

# key -> (A1, A2, C1, C2)
_TABLE1: Dict[float, Tuple[int, Optional[int], int, Optional[int]]] = {
    1.0: (0, None, 2, None),
    1.2: (0, None, 2, None),
    1.4: (0, None, 2, None),
    1.7: (1, 0, 3, None),
    2.0: (1, None, 3, None),
    2.4: (2, 1, 4, None),
    2.8: (2, None, 4, None),
    3.4: (3, 2, 5, None),
    4.0: (3, None, 5, None),
    4.8: (4, 3, 2, 1),
    5.7: (4, None, 2, None),
    6.7: (5, 4, 3, 2),
    8.0: (5, None, 3, None),
    9.5: (5, None, 3, None),
    11.0: (6, None, 4, None),
    13.0: (6, None, 4, None),
    16.0: (6, None, 4, None),
}

BAND_TABLE: Dict[float, BandTableRow] = {
    key: BandTableRow(key, a1, a2, c1, c2) for key, (a1, a2, c1, c2) in _TABLE1.items()
}


@dataclass(frozen=True)
class BandSelection:
    """Bands chosen for one request."""

    match_key_khz: float
    active: Band
    sham: Optional[Band]


def resolve_match_key(freq_hz: float) -> float:
    """Return the match key (kHz) nearest to ``freq_hz``.

    Ties go to the key listed first, i.e. the lower of two equidistant keys.
    """
    khz = freq_hz / 1000.0
    best = MATCH_KEYS_KHZ[0]
    best_distance = abs(khz - best)
    for key in MATCH_KEYS_KHZ[1:]:
        distance = abs(khz - key)
        if distance < best_distance:
            best = key
            best_distance = distance
    return best


def lookup_row(key_khz: float) -> BandTableRow:
    row = BAND_TABLE.get(key_khz)
    if row is None:
        raise UnmappedBandKeyError(f"No band table row for match key {key_khz} kHz")
    return row


def select_band(row: BandTableRow, role, use_alternate: bool = False) -> int:
    """Return the band index for ``role`` (``"active"`` or ``"sham"``).

    The contingency band is used only when requested and when the row has one.
    """
    role = BandRole(role)
    if role is BandRole.ACTIVE:
        preferred, alternate = row.active_preferred, row.active_alternate
    else:
        preferred, alternate = row.sham_preferred, row.sham_alternate
    if use_alternate and alternate is not None:
        return alternate
    return preferred


def resolve_bands(request) -> BandSelection:
    """Resolve the active band and, if requested, the sham band for ``request``."""
    key = resolve_match_key(request.target_frequency_hz)
    row = lookup_row(key)
    active = BANDS[select_band(row, BandRole.ACTIVE, request.use_active_alternate)]
    sham = None
    if request.generate_sham_file:
        sham = BANDS[select_band(row, BandRole.SHAM, request.use_sham_alternate)]
    logger.info(
        "Target %.1f Hz matched key %.1f kHz: active=%s sham=%s",
        request.target_frequency_hz,
        key,
        active.name,
        sham.name if sham is not None else None,
    )
    return BandSelection(match_key_khz=key, active=active, sham=sham)


__all__ = [
    "Band",
    "BandRole",
    "BandTableRow",
    "BandSelection",
    "BANDS",
    "MATCH_KEYS_KHZ",
    "BAND_TABLE",
    "resolve_match_key",
    "lookup_row",
    "select_band",
    "resolve_bands",
]
