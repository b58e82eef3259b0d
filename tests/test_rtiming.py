import os
from unittest import mock

from distlab.mr import KeyValue
from distlab.mrapps import mtiming, rtiming


def test_map_emits_ten_keys():
    result = rtiming.map_func("f", "anything")
    assert [kv.key for kv in result] == list("abcdefghij")
    assert {kv.value for kv in result} == {"1"}


def test_map_ignores_input():
    assert rtiming.map_func("x", "y") == rtiming.map_func("other", "contents")


def test_map_first_pair():
    assert rtiming.map_func("f", "c")[0] == KeyValue("a", "1")


def test_reduce_reports_running_reducers(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / f"mr-worker-map-{os.getpid()}").write_text("x")
    with mock.patch.object(mtiming.time, "sleep"):
        assert rtiming.reduce_func("a", ["1"]) == "1"
    assert not (tmp_path / f"mr-worker-reduce-{os.getpid()}").exists()


def test_nparallel_for_reduce_phase(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / f"mr-worker-reduce-{2**22 + 1000}").write_text("x")
    with mock.patch.object(mtiming.time, "sleep"):
        assert rtiming.nparallel("reduce") == 1