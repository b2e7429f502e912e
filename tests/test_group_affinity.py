import os
import threading

import pytest

from parbench.group_affinity import (
    GroupCoreSelector,
    ProcessorTopology,
    detect_threads_count,
    do_main_work,
    do_work,
    main,
    pin_to_group_processor,
    usage,
)
from parbench.group_params import (
    GroupRunParams,
    GroupSelectivePinning,
    GroupSeqPinning,
    PinningInfo,
)
from parbench.run_params import NoPinning


class _Recorder:
    def __init__(self):
        self.lock = threading.Lock()
        self.pinned = []

    def __call__(self, info):
        with self.lock:
            self.pinned.append(info)


def test_topology_reports_groups_and_sizes():
    topology = ProcessorTopology((4, 2))
    assert topology.group_count() == 2
    assert topology.processors_in_group(0) == 4
    assert topology.processors_in_group(1) == 2


def test_topology_errors():
    with pytest.raises(RuntimeError, match="processor group count"):
        ProcessorTopology(()).group_count()
    with pytest.raises(RuntimeError, match="for group 5"):
        ProcessorTopology((4,)).processors_in_group(5)
    with pytest.raises(RuntimeError, match="for group 1"):
        ProcessorTopology((4, 0)).processors_in_group(1)


def test_default_topology_is_one_group_of_all_cpus():
    topology = ProcessorTopology()
    assert topology.group_count() == 1
    assert topology.processors_in_group(0) == os.cpu_count()


def test_pin_to_missing_group_fails():
    with pytest.raises(RuntimeError, match="Group=999 and Number=0 failed"):
        pin_to_group_processor(PinningInfo(999, 0))


def test_detect_threads_count():
    two = (PinningInfo(0, 0), PinningInfo(0, 1))
    assert detect_threads_count(GroupRunParams(3, NoPinning())) == 3
    assert detect_threads_count(GroupRunParams(5, GroupSelectivePinning(two))) == len(two)
    assert detect_threads_count(GroupRunParams(None, GroupSelectivePinning(two))) == len(two)
    assert detect_threads_count(GroupRunParams(1, GroupSelectivePinning(two))) == 1
    with pytest.raises(ValueError, match="thread_count can't be 0"):
        detect_threads_count(GroupRunParams(0, NoPinning()))
    with pytest.raises(ValueError, match="thread_count can't be 0"):
        detect_threads_count(GroupRunParams(None, GroupSelectivePinning(())))


def test_sequential_selector_walks_through_groups(capsys):
    selector = GroupCoreSelector(GroupSeqPinning(), ProcessorTopology((2, 1)))
    seen = [selector.current_index()]
    selector.advance()
    seen.append(selector.current_index())
    selector.advance()
    seen.append(selector.current_index())
    assert seen == [PinningInfo(0, 0), PinningInfo(0, 1), PinningInfo(1, 0)]
    with pytest.raises(RuntimeError, match=r"no more processor groups available \(total groups: 2\)"):
        selector.advance()
    out = capsys.readouterr().out
    assert "simple sequential pinning will be used" in out
    assert "switching to the next processor group (1 of 2), processors in this group: 1" in out


def test_sequential_selector_stops_at_empty_group():
    selector = GroupCoreSelector(GroupSeqPinning(), ProcessorTopology((1, 0, 1)))
    with pytest.raises(RuntimeError, match="for group 1"):
        selector.advance()


def test_selective_selector_follows_list():
    cores = (PinningInfo(1, 3), PinningInfo(0, 2))
    selector = GroupCoreSelector(GroupSelectivePinning(cores))
    assert selector.current_index() == cores[0]
    selector.advance()
    assert selector.current_index() == cores[1]
    selector.advance()
    with pytest.raises(IndexError):
        selector.current_index()


def test_no_pinning_selector_yields_nothing(capsys):
    selector = GroupCoreSelector(NoPinning())
    selector.advance()
    assert selector.current_index() is None
    assert "no pinning will be used" in capsys.readouterr().out


def test_do_main_work_runs_every_worker(capsys):
    cores = (PinningInfo(0, 0), PinningInfo(0, 1))
    recorder = _Recorder()
    times = do_main_work(
        GroupRunParams(None, GroupSelectivePinning(cores)), int, 10, recorder
    )
    assert len(times) == len(cores)
    assert all(elapsed >= 0.0 for elapsed in times)
    assert sorted(recorder.pinned, key=str) == sorted(cores, key=str)
    out = capsys.readouterr().out
    assert out.count("j=10\n") == len(cores)
    assert "sending `start` signal to worker threads" in out
    assert "starting worker #2 on logical processor 0-1" in out


def test_do_main_work_shuts_workers_down_when_selector_fails(capsys):
    recorder = _Recorder()
    count = os.cpu_count()
    with pytest.raises(RuntimeError, match="no more processor groups"):
        do_main_work(GroupRunParams(count, GroupSeqPinning()), int, 10, recorder)
    assert len(recorder.pinned) == count
    assert "j=" not in capsys.readouterr().out


def test_do_main_work_reports_pin_failure(capsys):
    def failing_pin(info):
        raise RuntimeError("boom")

    times = do_main_work(
        GroupRunParams(None, GroupSelectivePinning((PinningInfo(0, 0),))),
        int,
        10,
        failing_pin,
    )
    assert times == [0.0]
    assert "exec_demo_script_thread_body: exception caught: boom" in capsys.readouterr().err


def test_usage_mentions_program():
    text = usage("bench")
    assert text.startswith("Usage:\n\tbench [thread_count] [pin[:<core-index(es)>]]")
    assert text.endswith("\tbench 10 pin")


def test_do_work_prints_help(capsys):
    do_work(["bench", "--help"])
    assert capsys.readouterr().out == usage("bench") + "\n"


def test_main_int_error_goes_to_stdout(capsys):
    assert main(["--ints", "0"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("version for int\n")
    assert out.endswith("main: exception caught: thread count has to be specified")


def test_main_double_error_goes_to_stderr(capsys):
    assert main(["pin"]) == 0
    captured = capsys.readouterr()
    assert captured.out.startswith("version for double\n")
    assert captured.err == "main: exception caught: thread count has to be specified"