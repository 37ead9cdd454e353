"""ibtelem command-line tool."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from .decoder import Sample, lap_filter
from .errors import IbtError
from .schema import type_name
from .storage import IbtReader

DEFAULT_CHANNELS = ["SessionTime", "Speed", "Throttle", "Brake"]


def _format_value(s: Sample) -> str:
    if isinstance(s.value, float):
        return f"{s.value:.6g}"
    return str(s.value)


def _format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.2f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def cmd_info(args: argparse.Namespace) -> None:
    """Print summary info about an .ibt file."""
    file_size = os.path.getsize(args.file)

    with IbtReader(args.file) as reader:
        h = reader.header
        d = reader.disk_header
        frames = reader.frames().count()

        print(f"File:         {args.file}")
        print(f"Size:         {file_size:,} bytes")
        print(f"Version:      {h.version}")
        print(f"Tick rate:    {h.tick_rate} Hz")
        print(f"Variables:    {h.num_vars}")
        print(f"Frame size:   {h.buf_len} bytes at offset {h.buf_offset}")
        print(f"Frames:       {frames:,} (header says {d.record_count:,})")
        if h.tick_rate > 0:
            print(f"Duration:     {_format_duration(frames / h.tick_rate)}")
        print(f"Laps:         {d.lap_count}")
        print(f"Session info: {h.session_info_length:,} bytes at offset {h.session_info_offset}")


def cmd_vars(args: argparse.Namespace) -> None:
    """List the variable table."""
    with IbtReader(args.file) as reader:
        print(f"  {'Name':<32s}  {'Type':<8s}  {'Offset':>6s}  {'Count':>5s}  {'Unit':<10s}  Description")
        for var in reader.vars.values():
            print(f"  {var.name:<32s}  {type_name(var.type):<8s}  {var.offset:6d}  "
                  f"{var.count:5d}  {var.unit:<10s}  {var.description}")


def cmd_dump(args: argparse.Namespace) -> None:
    """Print one line of channel values per frame."""
    if args.channels:
        channels = [c.strip() for c in args.channels.split(",") if c.strip()]
    else:
        channels = list(DEFAULT_CHANNELS)
    scanned = list(channels)
    predicate = None
    if args.lap is not None:
        if args.lap_channel.lower() not in (c.lower() for c in channels):
            scanned.append(args.lap_channel)
        predicate = lap_filter(args.lap, args.lap_channel)

    with IbtReader(args.file) as reader:
        if args.header:
            print(" ".join(reader.vars[c].name for c in channels))
        for samples in reader.samples(scanned, predicate):
            print(" ".join(_format_value(s) for s in samples[:len(channels)]))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="ibtelem", description="ibt telemetry tool")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # info
    p_info = sub.add_parser("info", help="Show summary info about a capture")
    p_info.add_argument("file", help="Path to .ibt file")

    # vars
    p_vars = sub.add_parser("vars", help="List variables in a capture")
    p_vars.add_argument("file", help="Path to .ibt file")

    # dump
    p_dump = sub.add_parser("dump", help="Dump channel values per frame")
    p_dump.add_argument("file", help="Path to .ibt file")
    p_dump.add_argument("--channels",
                        help=f"Comma-separated channel names (default: {','.join(DEFAULT_CHANNELS)})")
    p_dump.add_argument("--lap", type=int, help="Only frames from this lap")
    p_dump.add_argument("--lap-channel", default="Lap", help="Channel holding the lap number")
    p_dump.add_argument("--header", action="store_true", help="Print channel names first")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(levelname)s %(name)s: %(message)s")

    commands = {"info": cmd_info, "vars": cmd_vars, "dump": cmd_dump}
    cmd = commands.get(args.command)
    if cmd is None:
        parser.print_help()
        return

    try:
        cmd(args)
    except (IbtError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
