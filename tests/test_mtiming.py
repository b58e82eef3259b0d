import os
import time
from unittest import mock

from distlab.mrapps import mtiming

DEAD_PID = 2**22 + 1000


def test_nparallel_counts_only_live_workers_of_phase(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / f"mr-worker-map-{DEAD_PID}").write_text("x")
    (tmp_path / f"mr-worker-reduce-{os.getpid()}").write_text("x")
    (tmp_path / "unrelated.txt").write_text("x")
    with mock.patch.object(mtiming.time, "sleep") as sleep_mock:
        assert mtiming.nparallel("map") == 1
    sleep_mock.assert_called_once_with(1)


def test_nparallel_removes_own_marker(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with mock.patch.object(mtiming.time, "sleep"):
        assert mtiming.nparallel("map") == 1
    assert not (tmp_path / f"mr-worker-map-{os.getpid()}").exists()
    assert list(tmp_path.iterdir()) == []


def test_nparallel_leaves_other_markers(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    other = tmp_path / f"mr-worker-map-{DEAD_PID}"
    other.write_text("x")
    with mock.patch.object(mtiming.time, "sleep"):
        assert mtiming.nparallel("map") == 1
    assert other.exists()


def test_map_reports_time_and_parallelism(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    pid = os.getpid()
    before = time.time()
    with mock.patch.object(mtiming.time, "sleep"):
        result = mtiming.map_func("f", "c")
    after = time.time()
    assert [kv.key for kv in result] == [f"times-{pid}", f"parallel-{pid}"]
    assert before - 0.1 <= float(result[0].value) <= after + 0.1
    assert result[1].value == "1"


def test_reduce_sorts_and_joins():
    assert mtiming.reduce_func("times-1", ["3.0", "1.5", "2.2"]) == "1.5 2.2 3.0"