"""Command-line parameters for runs that pin threads to logical processors."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence, Union

_ULONG_MAX = 2**64 - 1
_UINT_MASK = 0xFFFFFFFF

_UNSIGNED_PREFIX = re.compile(r"[ \t\n\v\f\r]*([+-]?)([0-9]+)")
_START_FROM = re.compile(r"([0-9]+)\+")
_ONE_CORE = re.compile(r"([0-9]+)")
_CORE_WITH_COMMA = re.compile(r"([0-9]+),(.*)")

JUST_PIN = "pin"
PIN_PREFIX = "pin:"
HELP_FLAGS = frozenset({"-h", "--help"})


class ArgsError(ValueError):
    """The command line cannot be turned into run parameters."""


@dataclass(frozen=True)
class NoPinning:
    """Worker threads are not pinned at all."""


@dataclass(frozen=True)
class SeqPinning:
    """Worker threads are pinned to consecutive processors from ``start_from``."""

    start_from: int = 0


@dataclass(frozen=True)
class SelectivePinning:
    """Worker threads are pinned to the listed processors, in order."""

    cores: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "cores", tuple(self.cores))


Pinning = Union[NoPinning, SeqPinning, SelectivePinning]


@dataclass(frozen=True)
class RunParams:
    """How many worker threads to start and how to pin them."""

    threads_count: int | None = None
    pinning: Pinning = field(default_factory=NoPinning)


@dataclass(frozen=True)
class HelpRequested:
    """The user asked for usage information."""


ParseResult = Union[HelpRequested, RunParams]


def _to_unsigned(text: str) -> int:
    """Read a leading unsigned long the way ``strtoul`` does; trailing text is ignored."""
    match = _UNSIGNED_PREFIX.match(text)
    if match is None:
        raise ArgsError(f"invalid number: {text!r}")
    sign, digits = match.groups()
    value = int(digits)
    if value > _ULONG_MAX:
        raise ArgsError(f"number out of range: {text!r}")
    if sign == "-":
        value = -value % (_ULONG_MAX + 1)
    return value


def _core_index(text: str) -> int:
    return _to_unsigned(text) & _UINT_MASK


def parse_pinning(text: str) -> Pinning:
    """Parse what follows ``pin:``: either ``N+`` or a comma-separated list of cores."""
    start_from = _START_FROM.fullmatch(text)
    if start_from is not None:
        return SeqPinning(_core_index(start_from.group(1)))

    cores: list[int] = []
    rest = text
    while rest:
        single = _ONE_CORE.fullmatch(rest)
        if single is not None:
            cores.append(_core_index(single.group(1)))
            break
        with_comma = _CORE_WITH_COMMA.fullmatch(rest)
        if with_comma is None:
            raise ArgsError(
                "unable to parse enumeration of core indexes, problem "
                f"with substring: `{rest}`"
            )
        cores.append(_core_index(with_comma.group(1)))
        rest = with_comma.group(2)
    return SelectivePinning(tuple(cores))


def ensure_valid_params(result: ParseResult) -> None:
    """Raise ``ArgsError`` unless the thread count is given or cores are listed."""
    if isinstance(result, RunParams) and not result.threads_count:
        if not isinstance(result.pinning, SelectivePinning):
            raise ArgsError("thread count has to be specified")


def _parse_args(args: Sequence[str]) -> ParseResult:
    if not args:
        return HelpRequested()
    threads_count: int | None = None
    pinning: Pinning = NoPinning()
    for arg in args:
        if arg in HELP_FLAGS:
            return HelpRequested()
        if arg == JUST_PIN:
            pinning = SeqPinning()
        elif arg.startswith(PIN_PREFIX):
            pinning = parse_pinning(arg[len(PIN_PREFIX):])
        else:
            threads_count = _to_unsigned(arg) & _UINT_MASK
    return RunParams(threads_count, pinning)


def parse_cmd_line_args(args: Sequence[str]) -> ParseResult:
    """Parse the arguments that follow the program name and validate them."""
    result = _parse_args(args)
    ensure_valid_params(result)
    return result