"""Benchmark runs whose worker threads are pinned inside processor groups."""

from __future__ import annotations

import os
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .affinity import report_system_info
from .demo_script import DEMO_LIMIT, make_demo_script
from .group_params import (
    GroupPinning,
    GroupRunParams,
    GroupSelectivePinning,
    GroupSeqPinning,
    PinningInfo,
    parse_group_cmd_line_args,
)
from .run_params import HelpRequested, NoPinning
from .runner import format_seconds
from .script import ValueType, execute
from .startup import StartupSync, WakeupController, WakeupType

_TYPE_FLAGS = {"--ints": int, "--doubles": float}
_TYPE_NAMES = {int: "int", float: "double"}
_DEFAULT_PROG = "parbench-group-affinity"


def _detect_group_sizes() -> tuple[int, ...]:
    count = os.cpu_count()
    return (count,) if count else ()


@dataclass(frozen=True)
class ProcessorTopology:
    """Processor groups and the number of logical processors in each."""

    group_sizes: tuple[int, ...] = field(default_factory=_detect_group_sizes)

    def __post_init__(self) -> None:
        object.__setattr__(self, "group_sizes", tuple(self.group_sizes))

    def group_count(self) -> int:
        """Number of active processor groups."""
        if not self.group_sizes:
            raise RuntimeError("unable to detect processor group count")
        return len(self.group_sizes)

    def processors_in_group(self, group: int) -> int:
        """Number of active processors in ``group``."""
        size = self.group_sizes[group] if 0 <= group < len(self.group_sizes) else 0
        if not size:
            raise RuntimeError(f"unable to detect processor count for group {group}")
        return size

    def global_index(self, info: PinningInfo) -> int:
        """Flat processor number of a group-relative processor."""
        if info.group >= len(self.group_sizes) or info.processor >= self.group_sizes[info.group]:
            raise IndexError(f"no logical processor {info}")
        return sum(self.group_sizes[: info.group]) + info.processor

    def group_mask(self, cpus: set[int]) -> tuple[int, int]:
        """Group holding the lowest of ``cpus`` and the mask of ``cpus`` inside it."""
        offset = 0
        for group, size in enumerate(self.group_sizes):
            inside = [cpu - offset for cpu in cpus if offset <= cpu < offset + size]
            if inside:
                return group, sum(1 << cpu for cpu in inside)
            offset += size
        return 0, 0


def pin_to_group_processor(info: PinningInfo) -> None:
    """Bind the calling thread to one processor of one group.

    Raises ``RuntimeError`` if the binding cannot be made.
    """
    failure = (
        f"SetThreadGroupAffinity with Group={info.group} and "
        f"Number={info.processor} failed"
    )
    topology = ProcessorTopology()
    try:
        cpu = topology.global_index(info)
    except IndexError:
        raise RuntimeError(failure) from None
    getaffinity = getattr(os, "sched_getaffinity", None)
    setaffinity = getattr(os, "sched_setaffinity", None)
    if getaffinity is None or setaffinity is None:
        raise RuntimeError(failure)
    tid = threading.get_native_id()
    try:
        previous = set(getaffinity(tid))
        setaffinity(tid, {cpu})
    except OSError as exc:
        raise RuntimeError(f"{failure} (errno={exc.errno})") from None
    except (ValueError, OverflowError):
        raise RuntimeError(failure) from None
    old_group, old_mask = topology.group_mask(previous)
    new_mask = 1 << info.processor
    print(
        f"  old group affinity was: group={old_group}, mask={old_mask:b}; "
        f"new group affinity is: group={info.group}, mask={new_mask:b}; ",
        flush=True,
    )


def detect_threads_count(params: GroupRunParams) -> int:
    """Number of worker threads; never more than the processors listed for pinning."""
    count = params.threads_count or 0
    if isinstance(params.pinning, GroupSelectivePinning):
        listed = len(params.pinning.cores)
        count = min(count, listed) if params.threads_count is not None else listed
    if not count:
        raise ValueError("thread_count can't be 0")
    return count


class GroupCoreSelector:
    """Yields the group processor each successive worker thread is pinned to."""

    def __init__(
        self, pinning: GroupPinning, topology: ProcessorTopology | None = None
    ) -> None:
        self._pinning = pinning
        self._position = 0
        if isinstance(pinning, GroupSeqPinning):
            print("simple sequential pinning will be used", flush=True)
            self._topology = topology if topology is not None else ProcessorTopology()
            self._current_group = 0
            self._current_processor = 0
            self._total_groups = self._topology.group_count()
            self._processors_in_group = self._topology.processors_in_group(0)
            print(
                f"starting from group {self._current_group} with "
                f"{self._processors_in_group} processor(s)",
                flush=True,
            )
        elif isinstance(pinning, GroupSelectivePinning):
            print("pinning to selected cores will be used", flush=True)
        elif isinstance(pinning, NoPinning):
            print("no pinning will be used", flush=True)
        else:
            raise TypeError(f"unknown pinning mode: {pinning!r}")

    def current_index(self) -> Optional[PinningInfo]:
        """Processor for the current worker, or None when no pinning is used."""
        pinning = self._pinning
        if isinstance(pinning, GroupSeqPinning):
            return PinningInfo(self._current_group, self._current_processor)
        if isinstance(pinning, GroupSelectivePinning):
            try:
                return pinning.cores[self._position]
            except IndexError:
                raise IndexError(
                    f"no core listed for worker #{self._position + 1}"
                ) from None
        return None

    def advance(self) -> None:
        """Move on to the processor for the next worker."""
        if isinstance(self._pinning, GroupSelectivePinning):
            self._position += 1
        elif isinstance(self._pinning, GroupSeqPinning):
            self._advance_sequentially()

    def _advance_sequentially(self) -> None:
        while self._current_group < self._total_groups:
            self._current_processor += 1
            if self._current_processor < self._processors_in_group:
                return
            self._current_group += 1
            if self._current_group < self._total_groups:
                self._current_processor = 0
                self._processors_in_group = self._topology.processors_in_group(
                    self._current_group
                )
                print(
                    "switching to the next processor group "
                    f"({self._current_group} of {self._total_groups}), "
                    f"processors in this group: {self._processors_in_group}",
                    flush=True,
                )
                if self._current_processor < self._processors_in_group:
                    return
        raise RuntimeError(
            f"no more processor groups available (total groups: {self._total_groups})"
        )


def do_main_work(
    params: GroupRunParams,
    value_type: ValueType = float,
    limit: int = DEMO_LIMIT,
    pin: Callable[[PinningInfo], None] = pin_to_group_processor,
) -> list[float]:
    """Start the workers, release them together, and report their times."""
    report_system_info()

    threads_count = detect_threads_count(params)
    print(f"thread(s) to be used: {threads_count}", flush=True)

    demo_script = make_demo_script(limit)
    selector = GroupCoreSelector(params.pinning)
    sync = StartupSync()
    times = [0.0] * threads_count

    def body(slot: int, info: Optional[PinningInfo]) -> None:
        try:
            if info is not None:
                pin(info)
            if sync.arrive_and_wait() is WakeupType.SHOULD_SHUTDOWN:
                return
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
        with WakeupController(sync) as controller:
            for slot in range(threads_count):
                info = selector.current_index()
                if info is not None:
                    print(
                        f"starting worker #{slot + 1} on logical processor {info}",
                        flush=True,
                    )
                thread = threading.Thread(target=body, args=(slot, info))
                thread.start()
                threads.append(thread)
                selector.advance()

            print("sending `start` signal to worker threads", flush=True)
            controller.wakeup_threads()
            for thread in threads:
                thread.join()
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
        "                starting from 0-0\n"
        "pin:I,J,K[,..]  pin thread only to specified logical processes\n"
        "                For example: pin:0-1,0-2,1-3,1-4\n"
        "\n"
        "NOTE: `thread_count` is optional only if `pin` with enumeration\n"
        "of logical processors is used. It means that:\n\n"
        f"\t{prog} pin:0-0,0-2,0-4\n\n"
        "is OK, but:\n\n"
        f"\t{prog} pin\n\n"
        "is an error, it has to be:\n\n"
        f"\t{prog} 10 pin"
    )


def do_work(argv: Sequence[str], value_type: ValueType = float) -> None:
    """Handle a full command line, program name first."""
    prog = argv[0] if argv else _DEFAULT_PROG
    parsed = parse_group_cmd_line_args(list(argv[1:]))
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