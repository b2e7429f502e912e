"""Run the demo script on several threads and report each thread's time."""

from __future__ import annotations

import os
import re
import sys
import threading
import time
from typing import Sequence

from .demo_script import DEMO_LIMIT, make_demo_script
from .script import Statement, ValueType, execute

DEFAULT_THREADS = 4

_LEADING_NUMBER = re.compile(r"\s*\+?(\d+)")
_TYPE_FLAGS = {"--ints": int, "--doubles": float}
_TYPE_NAMES = {int: "int", float: "double"}


def raise_thread_priority() -> bool:
    """Try to give the calling thread a higher scheduling priority.

    Returns whether the priority was changed.
    """
    getpriority = getattr(os, "getpriority", None)
    setpriority = getattr(os, "setpriority", None)
    if getpriority is None or setpriority is None:
        return False
    which = getattr(os, "PRIO_PROCESS", 0)
    tid = threading.get_native_id()
    try:
        current = getpriority(which, tid)
        setpriority(which, tid, current - 1)
    except OSError:
        return False
    return True


def run_timed(statement: Statement, value_type: ValueType = float) -> float:
    """Execute ``statement`` and return the elapsed wall time in seconds."""
    raise_thread_priority()
    started_at = time.perf_counter()
    execute(statement, value_type)
    return time.perf_counter() - started_at


def format_seconds(elapsed: float) -> str:
    """Truncate to whole milliseconds and show with four significant digits."""
    millis = int(elapsed * 1000)
    return f"{millis / 1000.0:.4g}"


def _parse_unsigned(text: str) -> int:
    match = _LEADING_NUMBER.match(text)
    if match is None:
        raise ValueError(f"invalid number: {text!r}")
    return int(match.group(1))


def parse_thread_count(args: Sequence[str]) -> int:
    """Thread count from a single argument, or the default of four."""
    if len(args) != 1:
        return DEFAULT_THREADS
    count = _parse_unsigned(args[0])
    if count == 0:
        raise ValueError("number of threads can't 0")
    return count


def do_work(
    args: Sequence[str],
    value_type: ValueType = float,
    limit: int = DEMO_LIMIT,
) -> list[float]:
    """Run the demo script on the requested threads; return their times."""
    threads_count = parse_thread_count(args)
    print(f"thread(s) to be used: {threads_count}", flush=True)

    times = [0.0] * threads_count
    demo_script = make_demo_script(limit)

    def body(slot: int) -> None:
        times[slot] = run_timed(demo_script, value_type)

    threads = [threading.Thread(target=body, args=(i,)) for i in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for elapsed in times:
        print(format_seconds(elapsed), flush=True)
    return times


def _split_options(argv: Sequence[str]) -> tuple[ValueType, int, list[str]]:
    value_type: ValueType = float
    limit = DEMO_LIMIT
    rest: list[str] = []
    items = iter(argv)
    for arg in items:
        if arg in _TYPE_FLAGS:
            value_type = _TYPE_FLAGS[arg]
        elif arg == "--limit":
            value = next(items, None)
            if value is None:
                raise ValueError("--limit needs a value")
            limit = _parse_unsigned(value)
        elif arg.startswith("--limit="):
            limit = _parse_unsigned(arg.partition("=")[2])
        else:
            rest.append(arg)
    return value_type, limit, rest


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point: ``[--ints|--doubles] [--limit N] [thread_count]``."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        value_type, limit, rest = _split_options(argv)
        print(f"version for {_TYPE_NAMES[value_type]}", flush=True)
        do_work(rest, value_type, limit)
    except Exception as exc:  # noqa: BLE001 - reported, exit status stays 0
        print(f"main: exception caught: {exc}", end="", flush=True)
    return 0