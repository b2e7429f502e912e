"""Benchmark runs whose worker threads can be pinned to logical processors."""

from __future__ import annotations

import os
import sys
import threading
import time
from typing import Optional, Sequence, TextIO

from .demo_script import DEMO_LIMIT, make_demo_script
from .run_params import (
    HelpRequested,
    NoPinning,
    Pinning,
    RunParams,
    SelectivePinning,
    SeqPinning,
    parse_cmd_line_args,
)
from .runner import format_seconds
from .script import ValueType, execute

_TYPE_FLAGS = {"--ints": int, "--doubles": float}
_TYPE_NAMES = {int: "int", float: "double"}
_DEFAULT_PROG = "parbench-affinity"


def pin_to_core(core_index: int) -> None:
    """Bind the calling thread to one logical processor.

    Raises ``RuntimeError`` if the binding cannot be made.
    """
    setaffinity = getattr(os, "sched_setaffinity", None)
    if setaffinity is None or core_index < 0:
        raise RuntimeError(f"SetThreadAffinityMask failed, core_index={core_index}")
    try:
        setaffinity(threading.get_native_id(), {core_index})
    except (OSError, ValueError, OverflowError):
        raise RuntimeError(
            f"SetThreadAffinityMask failed, core_index={core_index}"
        ) from None


def report_system_info(out: TextIO | None = None) -> None:
    """Write what is known about the processors available to this process."""
    stream = out if out is not None else sys.stdout
    lines = [
        "some system related information:",
        f"  os.cpu_count: {os.cpu_count()}",
        "  ---",
    ]
    getaffinity = getattr(os, "sched_getaffinity", None)
    if getaffinity is None:
        lines.append("  process affinity: unknown")
    else:
        cpus = getaffinity(0)
        mask = sum(1 << cpu for cpu in cpus)
        lines.append(f"  usable processors: {len(cpus)}")
        lines.append(f"  process affinity: {mask:x}")
    stream.write("\n".join(lines) + "\n")
    stream.flush()


def detect_threads_count(params: RunParams) -> int:
    """Number of worker threads; never more than the processors listed for pinning."""
    count = params.threads_count or 0
    if isinstance(params.pinning, SelectivePinning):
        listed = len(params.pinning.cores)
        count = min(count, listed) if params.threads_count is not None else listed
    if not count:
        raise ValueError("thread_count can't be 0")
    return count


class CoreIndexSelector:
    """Yields the processor each successive worker thread is to be pinned to."""

    def __init__(self, pinning: Pinning) -> None:
        self._pinning = pinning
        self._position = 0
        if isinstance(pinning, SeqPinning):
            message = (
                "simple sequential pinning will be used "
                f"(starting from: {pinning.start_from})"
            )
        elif isinstance(pinning, SelectivePinning):
            message = "pinning to selected cores will be used"
        elif isinstance(pinning, NoPinning):
            message = "no pinning will be used"
        else:
            raise TypeError(f"unknown pinning mode: {pinning!r}")
        print(message, flush=True)

    def current_index(self) -> Optional[int]:
        """Processor for the current worker, or None when no pinning is used."""
        pinning = self._pinning
        if isinstance(pinning, SeqPinning):
            return pinning.start_from + self._position
        if isinstance(pinning, SelectivePinning):
            try:
                return pinning.cores[self._position]
            except IndexError:
                raise IndexError(
                    f"no core listed for worker #{self._position + 1}"
                ) from None
        return None

    def advance(self) -> None:
        """Move on to the processor for the next worker."""
        if not isinstance(self._pinning, NoPinning):
            self._position += 1


def do_main_work(
    params: RunParams,
    value_type: ValueType = float,
    limit: int = DEMO_LIMIT,
) -> list[float]:
    """Start the workers, let them run the demo script together, report times."""
    report_system_info()

    threads_count = detect_threads_count(params)
    print(f"thread(s) to be used: {threads_count}", flush=True)

    demo_script = make_demo_script(limit)
    selector = CoreIndexSelector(params.pinning)
    start_barrier = threading.Barrier(threads_count)
    times = [0.0] * threads_count

    def body(slot: int, core_index: Optional[int]) -> None:
        try:
            try:
                if core_index is not None:
                    pin_to_core(core_index)
            finally:
                start_barrier.wait()
            started_at = time.perf_counter()
            execute(demo_script, value_type)
            times[slot] = time.perf_counter() - started_at
        except Exception as exc:  # noqa: BLE001 - each worker reports its own failure
            print(
                f"exec_demo_script_thread_body: exception caught: {exc}",
                file=sys.stderr,
                flush=True,
            )

    threads: list[threading.Thread] = []
    try:
        for slot in range(threads_count):
            core_index = selector.current_index()
            if core_index is not None:
                print(
                    f"starting worker #{slot + 1} on logical processor {core_index}",
                    flush=True,
                )
            thread = threading.Thread(target=body, args=(slot, core_index))
            thread.start()
            threads.append(thread)
            selector.advance()
    except BaseException:
        start_barrier.abort()
        raise
    finally:
        for thread in threads:
            thread.join()

    for elapsed in times:
        print(format_seconds(elapsed), flush=True)
    return times


def usage(prog: str) -> str:
    """Help text for the command."""
    return (
        "Usage:\n\t"
        f"{prog} [thread_count] [pin[:<core-index(es)>]]\n\n"
        "where `pin` can be in one of the following formats:\n\n"
        "pin             pin threads to logical processes sequentially\n"
        "                starting from 0\n"
        "pin:N+          pin threads to logical processes sequentially\n"
        "                starting from N\n"
        "                For example: pin:3+\n"
        "pin:I,J,K[,..]  pin thread only to specified logical processes\n"
        "                For example: pin:0,1,3,4\n"
        "\n"
        "NOTE: `thread_count` is optional only if `pin` with enumeration\n"
        "of logical processors is used. It means that:\n\n"
        f"\t{prog} pin:0,2,4\n\n"
        "is OK, but:\n\n"
        f"\t{prog} pin:1+\n\n"
        "is an error, it has to be:\n\n"
        f"\t{prog} 10 pin:1+"
    )


def do_work(argv: Sequence[str], value_type: ValueType = float) -> None:
    """Handle a full command line, program name first."""
    prog = argv[0] if argv else _DEFAULT_PROG
    parsed = parse_cmd_line_args(list(argv[1:]))
    if isinstance(parsed, HelpRequested):
        print(usage(prog), flush=True)
    else:
        do_main_work(parsed, value_type)


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