"""Command-line entry point for drum chart extraction.

Subcommands:
  analyze  Build an onset chart from an audio or MIDI file
  tempo    Estimate BPM from a list of onset times

Usage:
  drumalong analyze song.mp3 --detector flux --output-json chart.json
  drumalong analyze groove.mid --midi-out normalized.mid
  drumalong tempo 0.0 0.5 1.0 1.5
"""

import argparse
import logging
import sys
from pathlib import Path

from drumalong.config import settings
from drumalong.models.onset import DrumType, Onset
from drumalong.services.byte_reader import MidiFormatError
from drumalong.services.midi_writer import write_midi
from drumalong.services.onset_detection import DETECTORS
from drumalong.services.pipeline import analyze_file
from drumalong.services.tempo import estimate_tempo


def _cmd_analyze(args: argparse.Namespace) -> None:
    path = Path(args.path)
    if not path.exists():
        print(f"Error: {path} not found", file=sys.stderr)
        sys.exit(1)

    try:
        result = analyze_file(path, detector=args.detector)
    except MidiFormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        # librosa surfaces decoder failures as several unrelated exception types
        print(f"Error: could not decode {path.name}: {e}", file=sys.stderr)
        sys.exit(1)

    payload = result.model_dump_json(indent=2)
    if args.output_json:
        Path(args.output_json).write_text(payload)
        print(f"Wrote {len(result.onsets)} onsets ({result.bpm:g} BPM) → {args.output_json}")
    else:
        print(payload)

    if args.midi_out:
        write_midi(result, Path(args.midi_out))


def _cmd_tempo(args: argparse.Namespace) -> None:
    # Lane is irrelevant to tempo; use kick as a placeholder
    try:
        onsets = [Onset.for_drum(t, DrumType.kick, 1.0) for t in sorted(args.times)]
    except ValueError:
        print("Error: onset times must be non-negative seconds", file=sys.stderr)
        sys.exit(1)
    print(estimate_tempo(onsets))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="drumalong", description="Drum onset charts from audio and MIDI files")
    parser.add_argument("--log-level", default=settings.log_level, help="Python logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="Extract an onset chart from a file")
    p_analyze.add_argument("path", help="Audio file or Standard MIDI File")
    p_analyze.add_argument(
        "--detector",
        choices=sorted(DETECTORS),
        default=settings.default_detector,
        help="Onset detector for audio input (default: %(default)s)",
    )
    p_analyze.add_argument("--output-json", default=None, help="Write the chart here instead of stdout")
    p_analyze.add_argument("--midi-out", default=None, help="Also export the chart as a drum MIDI file")
    p_analyze.set_defaults(func=_cmd_analyze)

    p_tempo = sub.add_parser("tempo", help="Estimate BPM from onset times in seconds")
    p_tempo.add_argument("times", nargs="+", type=float)
    p_tempo.set_defaults(func=_cmd_tempo)

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())
    args.func(args)


if __name__ == "__main__":
    main()
