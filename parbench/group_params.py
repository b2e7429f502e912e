"""Command-line parameters for runs that pin threads inside processor groups."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence, Union

from .run_params import (
    HELP_FLAGS,
    JUST_PIN,
    PIN_PREFIX,
    ArgsError,
    HelpRequested,
    NoPinning,
    _to_unsigned,
)

_USHORT_MASK = 0xFFFF
_UINT_MASK = 0xFFFFFFFF

_ONE_CORE = re.compile(r"([0-9]+)-([0-9]+)")
_CORE_WITH_COMMA = re.compile(r"([0-9]+)-([0-9]+),(.*)")


@dataclass(frozen=True)
class PinningInfo:
    """A logical processor identified by its group and its number in the group."""

    group: int
    processor: int

    def __str__(self) -> str:
        return f"{self.group}-{self.processor}"


@dataclass(frozen=True)
class GroupSeqPinning:
    """Worker threads are pinned to consecutive processors, group after group."""


@dataclass(frozen=True)
class GroupSelectivePinning:
    """Worker threads are pinned to the listed processors, in order."""

    cores: tuple[PinningInfo, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "cores", tuple(self.cores))


GroupPinning = Union[NoPinning, GroupSeqPinning, GroupSelectivePinning]


@dataclass(frozen=True)
class GroupRunParams:
    """How many worker threads to start and how to pin them."""

    threads_count: int | None = None
    pinning: GroupPinning = field(default_factory=NoPinning)


GroupParseResult = Union[HelpRequested, GroupRunParams]


def _pinning_info(group: str, processor: str) -> PinningInfo:
    return PinningInfo(
        _to_unsigned(group) & _USHORT_MASK,
        _to_unsigned(processor) & _USHORT_MASK,
    )


def parse_group_pinning(text: str) -> GroupSelectivePinning:
    """Parse what follows ``pin:``, a comma-separated list of ``group-processor``."""
    cores: list[PinningInfo] = []
    rest = text
    while rest:
        single = _ONE_CORE.fullmatch(rest)
        if single is not None:
            cores.append(_pinning_info(single.group(1), single.group(2)))
            break
        with_comma = _CORE_WITH_COMMA.fullmatch(rest)
        if with_comma is None:
            raise ArgsError(
                "unable to parse enumeration of core indexes, problem "
                f"with substring: `{rest}`"
            )
        cores.append(_pinning_info(with_comma.group(1), with_comma.group(2)))
        rest = with_comma.group(3)
    return GroupSelectivePinning(tuple(cores))


def ensure_valid_group_params(result: GroupParseResult) -> None:
    """Raise ``ArgsError`` unless the thread count is given or cores are listed."""
    if isinstance(result, GroupRunParams) and not result.threads_count:
        if not isinstance(result.pinning, GroupSelectivePinning):
            raise ArgsError("thread count has to be specified")


def _parse_args(args: Sequence[str]) -> GroupParseResult:
    if not args:
        return HelpRequested()
    threads_count: int | None = None
    pinning: GroupPinning = NoPinning()
    for arg in args:
        if arg in HELP_FLAGS:
            return HelpRequested()
        if arg == JUST_PIN:
            pinning = GroupSeqPinning()
        elif arg.startswith(PIN_PREFIX):
            pinning = parse_group_pinning(arg[len(PIN_PREFIX):])
        else:
            threads_count = _to_unsigned(arg) & _UINT_MASK
    return GroupRunParams(threads_count, pinning)


def parse_group_cmd_line_args(args: Sequence[str]) -> GroupParseResult:
    """Parse the arguments that follow the program name and validate them."""
    result = _parse_args(args)
    ensure_valid_group_params(result)
    return result