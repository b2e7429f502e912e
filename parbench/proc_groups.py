"""Benchmark runs that give each worker thread an ideal processor inside a group."""

from __future__ import annotations

import os
import sys
import threading
from typing import Sequence

from .group_affinity import ProcessorTopology, do_main_work, usage
from .group_params import PinningInfo, parse_group_cmd_line_args
from .run_params import HelpRequested
from .script import ValueType

_TYPE_FLAGS = {"--ints": int, "--doubles": float}
_TYPE_NAMES = {int: "int", float: "double"}
_DEFAULT_PROG = "parbench-proc-groups"

_ideal = threading.local()


def _group_relative(topology: ProcessorTopology, cpu: int) -> PinningInfo:
    offset = 0
    for group, size in enumerate(topology.group_sizes):
        if cpu < offset + size:
            return PinningInfo(group, cpu - offset)
        offset += size
    return PinningInfo(0, 0)


def _default_ideal_processor() -> PinningInfo:
    getaffinity = getattr(os, "sched_getaffinity", None)
    if getaffinity is None:
        return PinningInfo(0, 0)
    try:
        cpus = getaffinity(threading.get_native_id())
    except OSError:
        return PinningInfo(0, 0)
    if not cpus:
        return PinningInfo(0, 0)
    return _group_relative(ProcessorTopology(), min(cpus))


def current_ideal_processor() -> PinningInfo:
    """The processor the calling thread prefers to run on."""
    info = getattr(_ideal, "processor", None)
    return info if info is not None else _default_ideal_processor()


def set_ideal_processor(info: PinningInfo) -> PinningInfo:
    """Make ``info`` the preferred processor of the calling thread.

    The thread is not bound to it; this is only a scheduling preference.
    Returns the previous preference and raises ``RuntimeError`` when the
    processor does not exist.
    """
    try:
        ProcessorTopology().global_index(info)
    except IndexError:
        raise RuntimeError(
            f"SetThreadIdealProcessorEx with Group={info.group} and "
            f"Number={info.processor} failed"
        ) from None
    previous = current_ideal_processor()
    _ideal.processor = info
    print(f"  old ideal processor was: {previous}", flush=True)
    return previous


def do_work(argv: Sequence[str], value_type: ValueType = float) -> None:
    """Handle a full command line, program name first."""
    prog = argv[0] if argv else _DEFAULT_PROG
    parsed = parse_group_cmd_line_args(list(argv[1:]))
    if isinstance(parsed, HelpRequested):
        print(usage(prog), flush=True)
    else:
        do_main_work(parsed, value_type, pin=set_ideal_processor)


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point: ``[--ints|--doubles] [thread_count] [pin[:...]]``."""
    if argv is None:
        argv = sys.argv[1:]
    prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else _DEFAULT_PROG
    value_type: ValueType = float
    rest: list[str] = []
    for arg in argv:
        if arg in _TYPE_FLAGS:
            value_type = _TYPE_FLAGS[arg]
        else:
            rest.append(arg)
    # The int flavour reports top-level failures on stdout, the double one on stderr.
    error_stream = sys.stdout if value_type is int else sys.stderr
    try:
        print(f"version for {_TYPE_NAMES[value_type]}", flush=True)
        do_work([prog, *rest], value_type)
    except Exception as exc:  # noqa: BLE001 - reported, exit status stays 0
        print(f"main: exception caught: {exc}", end="", file=error_stream, flush=True)
    return 0