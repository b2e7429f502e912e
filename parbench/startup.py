"""Start-up synchronisation that lets worker threads begin together or bail out."""

from __future__ import annotations

import threading
from enum import Enum
from types import TracebackType


class WakeupType(Enum):
    """What a waiting worker thread is told to do."""

    STANDBY = "standby"
    NORMAL = "normal"
    SHOULD_SHUTDOWN = "should_shutdown"


class StartupSync:
    """Holds worker threads until they are told to work or to shut down."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._wakeup_type = WakeupType.STANDBY

    def arrive_and_wait(self) -> WakeupType:
        """Block until a signal other than standby is given; return that signal."""
        with self._cond:
            self._cond.wait_for(lambda: self._wakeup_type is not WakeupType.STANDBY)
            return self._wakeup_type

    def _signal(self, kind: WakeupType) -> None:
        with self._cond:
            self._wakeup_type = kind
            self._cond.notify_all()


class WakeupController:
    """Context manager that tells waiting workers to shut down when it is left.

    Calling :meth:`wakeup_threads` inside the block lets them work instead.
    """

    def __init__(self, sync: StartupSync) -> None:
        self._sync = sync
        self._signal_to_use = WakeupType.SHOULD_SHUTDOWN

    def __enter__(self) -> "WakeupController":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._sync._signal(self._signal_to_use)

    def wakeup_threads(self) -> None:
        """Tell every waiting worker to start its normal work."""
        self._sync._signal(WakeupType.NORMAL)