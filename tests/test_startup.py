import threading

import pytest

from parbench.startup import StartupSync, WakeupController, WakeupType


def _waiter(sync, results):
    results.append(sync.arrive_and_wait())


def test_wakeup_before_arrival_returns_normal():
    sync = StartupSync()
    with WakeupController(sync) as controller:
        controller.wakeup_threads()
        assert sync.arrive_and_wait() is WakeupType.NORMAL


def test_leaving_without_wakeup_signals_shutdown():
    sync = StartupSync()
    with WakeupController(sync):
        pass
    assert sync.arrive_and_wait() is WakeupType.SHOULD_SHUTDOWN


def test_blocked_workers_are_woken_normally():
    sync = StartupSync()
    results = []
    threads = [threading.Thread(target=_waiter, args=(sync, results)) for _ in range(3)]
    with WakeupController(sync) as controller:
        for thread in threads:
            thread.start()
        controller.wakeup_threads()
        for thread in threads:
            thread.join(timeout=5)
    assert results == [WakeupType.NORMAL] * 3
    assert not any(thread.is_alive() for thread in threads)


def test_error_inside_block_shuts_workers_down():
    sync = StartupSync()
    results = []
    threads = [threading.Thread(target=_waiter, args=(sync, results)) for _ in range(2)]
    with pytest.raises(RuntimeError, match="startup failed"):
        with WakeupController(sync):
            for thread in threads:
                thread.start()
            raise RuntimeError("startup failed")
    for thread in threads:
        thread.join(timeout=5)
    assert sync.arrive_and_wait() is WakeupType.SHOULD_SHUTDOWN
    assert results == [WakeupType.SHOULD_SHUTDOWN] * 2


def test_controller_enter_returns_itself():
    sync = StartupSync()
    controller = WakeupController(sync)
    with controller as entered:
        assert entered is controller