"""Command line front end for rendering tinnitus therapy stimuli."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import soundfile as sf

from .bands import BANDS, lookup_row, resolve_match_key
from .errors import InvalidRequestError, StimulusError
from .generation import SynthesisRequest, generate_example_set, generate_stimulus_files
from .utils.numba_status import configure_numba, run_block_benchmark
from .utils.preferences import load_preferences
from .utils.wav_stream import read_wav_header

logger = logging.getLogger(__name__)


def _print_progress(event) -> None:
    if event.blocks_completed % 10 == 0 or event.blocks_completed == event.total_blocks:
        print(
            f"  {event.role}: {event.blocks_completed}/{event.total_blocks} blocks "
            f"({event.fraction * 100:.0f}%)"
        )


def _cmd_generate(args, prefs) -> int:
    request = SynthesisRequest(
        target_frequency_hz=args.tinnitus_hz,
        modulation_mode=args.mode or prefs.default_mode,
        duration_minutes=args.minutes if args.minutes is not None else prefs.default_minutes,
        use_active_alternate=args.use_alt_active,
        use_sham_alternate=args.use_alt_sham,
        generate_sham_file=args.sham,
    )
    out_dir = Path(args.out or prefs.output_dir)
    result = generate_stimulus_files(
        request,
        out_dir,
        seed=args.seed,
        preferences=prefs,
        progress_callback=None if args.quiet else _print_progress,
    )
    print(json.dumps(result.as_dict(), indent=2))
    return 0


def _cmd_examples(args, prefs) -> int:
    out_dir = Path(args.out or Path(prefs.output_dir) / "examples")
    examples = generate_example_set(out_dir, minutes=args.minutes, seed=args.seed, preferences=prefs)
    print(f"Generated {len(examples)} example files in: {out_dir}")
    return 0


def _cmd_bands(args, prefs) -> int:
    key = resolve_match_key(args.frequency_hz)
    row = lookup_row(key)

    def name(index):
        return BANDS[index].name if index is not None else "-"

    print(f"Target frequency: {args.frequency_hz:.1f} Hz")
    print(f"Nearest match key: {key} kHz")
    print(f"Active band: {name(row.active_preferred)} (alternate: {name(row.active_alternate)})")
    print(f"Sham band:   {name(row.sham_preferred)} (alternate: {name(row.sham_alternate)})")
    return 0


def _cmd_inspect(args, prefs) -> int:
    header = read_wav_header(args.file)
    info = sf.info(str(args.file))
    print(f"File: {args.file}")
    print(f"  format: {info.format} / {info.subtype}")
    print(f"  channels: {header.channels}, sample rate: {header.sample_rate} Hz, "
          f"{header.bits_per_sample}-bit")
    print(f"  byte rate: {header.byte_rate}, block align: {header.block_align}")
    print(f"  data bytes: {header.data_bytes}, RIFF size: {header.riff_chunk_size}")
    print(f"  frames: {info.frames} ({info.duration:.2f} s)")
    return 0


def _cmd_benchmark(args, prefs) -> int:
    stats = run_block_benchmark(block_seconds=args.seconds, sample_rate=int(prefs.sample_rate), mode=args.mode)
    print(
        f"Rendered {stats['block_seconds']:.1f} s in {stats['elapsed']:.3f} s "
        f"(threads={stats['threads']}): {stats['samples_per_second'] / 1e6:.2f}M samples/s, "
        f"real-time factor {stats['realtime_factor']:.1f}x"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tinnitusbuilder",
        description="Render cross-frequency de-correlating tinnitus sound-therapy stimuli",
    )
    parser.add_argument("--prefs", type=Path, default=None, help="Preferences JSON file to load")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Render the active (and optional sham) stimulus")
    gen.add_argument("--tinnitus-hz", type=float, required=True, help="Matched tinnitus frequency in Hz")
    gen.add_argument("--mode", choices=["phase", "amplitude"], default=None)
    gen.add_argument("--minutes", type=int, default=None, help="Duration in minutes (5-120)")
    gen.add_argument("--out", type=Path, default=None, help="Output directory")
    gen.add_argument("--seed", type=int, default=None, help="Seed for reproducible output")
    gen.add_argument("--use-alt-active", action="store_true", help="Use the contingency active band if the table has one")
    gen.add_argument("--use-alt-sham", action="store_true", help="Use the contingency sham band if the table has one")
    gen.add_argument("--sham", action="store_true", help="Also render the sham control file")
    gen.add_argument("--quiet", action="store_true", help="Do not print per-block progress")
    gen.set_defaults(func=_cmd_generate)

    ex = sub.add_parser("examples", help="Render the example set and examples.json")
    ex.add_argument("--out", type=Path, default=None)
    ex.add_argument("--minutes", type=int, default=None)
    ex.add_argument("--seed", type=int, default=None)
    ex.set_defaults(func=_cmd_examples)

    bands = sub.add_parser("bands", help="Show the band choices for a frequency")
    bands.add_argument("frequency_hz", type=float)
    bands.set_defaults(func=_cmd_bands)

    inspect = sub.add_parser("inspect", help="Print the header of a rendered WAV file")
    inspect.add_argument("file", type=Path)
    inspect.set_defaults(func=_cmd_inspect)

    bench = sub.add_parser("benchmark", help="Time one block render")
    bench.add_argument("--seconds", type=float, default=4.0)
    bench.add_argument("--mode", choices=["phase", "amplitude"], default="phase")
    bench.set_defaults(func=_cmd_benchmark)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_numba(log=True)
    prefs = load_preferences(args.prefs)

    try:
        return args.func(args, prefs)
    except InvalidRequestError as e:
        print(f"Invalid request: {e}", file=sys.stderr)
        return 2
    except (StimulusError, OSError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
