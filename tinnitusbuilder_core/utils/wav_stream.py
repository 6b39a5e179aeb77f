"""Incremental PCM16 WAV writer for long renders.

Blocks are appended as they are synthesised so memory stays bounded by one
block. The file is written under a ``.part`` name with a placeholder header
and only renamed to its final path once the header carries the real sizes,
so an interrupted render never leaves a file that looks complete.
"""

from __future__ import annotations

import logging
import os
import struct
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from ..errors import OutputResourceError

logger = logging.getLogger(__name__)

WAV_HEADER_BYTES = 44
PARTIAL_SUFFIX = ".part"
_INT16_MAX = 32767
_INT16_MIN = -32768
_PUBLISHED_MODE = 0o644

# Final paths with a writer currently in flight in this process
_claimed_paths = set()
_claim_lock = threading.Lock()


@dataclass(frozen=True)
class WavHeader:
    riff_chunk_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_bytes: int

    @property
    def num_frames(self) -> int:
        return self.data_bytes // self.block_align if self.block_align else 0


def build_wav_header(sample_rate, channels, bits_per_sample, data_bytes):
    """Return the canonical 44-byte RIFF/WAVE header for PCM data."""
    block_align = channels * (bits_per_sample // 8)
    byte_rate = sample_rate * block_align
    hdr = struct.pack('<4sI4s', b'RIFF', 36 + data_bytes, b'WAVE')
    fmt = struct.pack('<4sIHHIIHH',
                      b'fmt ', 16, 1, channels, sample_rate,
                      byte_rate, block_align, bits_per_sample)
    dat = struct.pack('<4sI', b'data', data_bytes)
    return hdr + fmt + dat


def read_wav_header(path) -> WavHeader:
    """Parse the canonical header written by :class:`StreamingWavWriter`."""
    with open(path, "rb") as f:
        raw = f.read(WAV_HEADER_BYTES)
    if len(raw) < WAV_HEADER_BYTES:
        raise ValueError(f"{path}: shorter than a WAV header")
    riff, riff_size, wave = struct.unpack_from('<4sI4s', raw, 0)
    if riff != b'RIFF' or wave != b'WAVE':
        raise ValueError(f"{path}: not a RIFF/WAVE file")
    (fmt_id, _fmt_size, audio_format, channels, sample_rate,
     byte_rate, block_align, bits) = struct.unpack_from('<4sIHHIIHH', raw, 12)
    data_id, data_bytes = struct.unpack_from('<4sI', raw, 36)
    if fmt_id != b'fmt ' or data_id != b'data':
        raise ValueError(f"{path}: not a canonical 44-byte PCM header")
    return WavHeader(
        riff_chunk_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_bytes=data_bytes,
    )


def float_to_pcm16(samples):
    """Clamp to ``[-1, 1]`` and quantise to little-endian int16 (round half up)."""
    x = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.floor(x * _INT16_MAX + 0.5)
    return np.clip(scaled, _INT16_MIN, _INT16_MAX).astype('<i2')


class StreamingWavWriter:
    """Write mono or interleaved PCM16 blocks to ``path`` incrementally.

    Use as a context manager: a clean exit finalises the file, an exception
    (including a closed generator) aborts it and removes the partial output.

    Every writer gets its own uniquely named partial file, and only one
    writer per process may target a given final path at a time; a second
    one fails to open with :class:`OutputResourceError`.
    """

    def __init__(self, path, sample_rate=44100, channels=1, bits_per_sample=16):
        if bits_per_sample != 16:
            raise ValueError("Only 16-bit PCM output is supported")
        self.path = Path(path)
        self.partial_path: Optional[Path] = None
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.bits_per_sample = int(bits_per_sample)
        self.frames_written = 0
        self._fh = None
        self._claim_key = None
        self._finalized = False

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def open(self) -> "StreamingWavWriter":
        if self._fh is not None:
            raise RuntimeError(f"{self.path} is already open")
        self._claim()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, partial = tempfile.mkstemp(
                prefix=self.path.name + ".", suffix=PARTIAL_SUFFIX, dir=self.path.parent
            )
            self.partial_path = Path(partial)
            self._fh = os.fdopen(fd, "w+b")
            self._fh.write(build_wav_header(self.sample_rate, self.channels, self.bits_per_sample, 0))
        except OSError as e:
            self._discard()
            raise OutputResourceError(f"Cannot open a partial file for {self.path}: {e}") from e
        logger.debug("Opened %s", self.partial_path)
        return self

    def write_block(self, samples) -> int:
        """Append ``samples`` and return the number of frames written."""
        if self._fh is None:
            raise RuntimeError("write_block() called on a writer that is not open")
        pcm = float_to_pcm16(samples)
        try:
            self._fh.write(pcm.tobytes())
        except OSError as e:
            raise OutputResourceError(f"Write to {self.partial_path} failed: {e}") from e
        frames = pcm.shape[0] // self.channels if pcm.ndim == 1 else pcm.shape[0]
        self.frames_written += frames
        return frames

    def finalize(self) -> Path:
        """Rewrite the header from the payload length and publish the file."""
        if self._fh is None:
            raise RuntimeError("finalize() called on a writer that is not open")
        try:
            self._fh.flush()
            file_bytes = os.fstat(self._fh.fileno()).st_size
            data_bytes = file_bytes - WAV_HEADER_BYTES
            self._fh.seek(0)
            self._fh.write(build_wav_header(self.sample_rate, self.channels, self.bits_per_sample, data_bytes))
            self._fh.close()
            self._fh = None
            os.chmod(self.partial_path, _PUBLISHED_MODE)
            os.replace(self.partial_path, self.path)
        except OSError as e:
            self._discard()
            raise OutputResourceError(f"Finalising {self.path} failed: {e}") from e
        self._release()
        self._finalized = True
        logger.debug("Finalised %s (%d data bytes)", self.path, data_bytes)
        return self.path

    def abort(self) -> None:
        """Close and delete the partial file without finalising it."""
        if self._finalized:
            return
        self._discard()
        logger.debug("Aborted %s", self.partial_path)

    def _discard(self) -> None:
        fh, self._fh = self._fh, None
        if fh is not None:
            try:
                fh.close()
            except OSError:
                logger.warning("Closing %s failed during abort", self.partial_path)
        if self.partial_path is not None:
            try:
                self.partial_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove partial file %s: %s", self.partial_path, e)
        self._release()

    def _claim(self) -> None:
        key = self.path.resolve()
        with _claim_lock:
            if key in _claimed_paths:
                raise OutputResourceError(f"{self.path} is already being written by another job")
            _claimed_paths.add(key)
        self._claim_key = key

    def _release(self) -> None:
        key, self._claim_key = self._claim_key, None
        if key is not None:
            with _claim_lock:
                _claimed_paths.discard(key)

    def __enter__(self) -> "StreamingWavWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self.finalize()
        else:
            self.abort()
        return None


__all__ = [
    "WAV_HEADER_BYTES",
    "WavHeader",
    "StreamingWavWriter",
    "build_wav_header",
    "read_wav_header",
    "float_to_pcm16",
]
