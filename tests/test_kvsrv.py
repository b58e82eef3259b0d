import itertools
import json
import threading
import time

import pytest

from distlab.kvrpc import Err, GetArgs, PutArgs
from distlab.kvsrv import Clerk, KVServer, start_kv_server
from distlab.labrpc import Network

SERVER = "kvserver-0"
_end_ids = itertools.count()


@pytest.fixture
def network():
    net = Network()
    start_kv_server(net, SERVER)
    yield net
    net.cleanup()


def make_clerk(net, enabled=True):
    endname = f"clerk-{next(_end_ids)}"
    end = net.make_end(endname)
    net.connect(endname, SERVER)
    net.enable(endname, enabled)
    return Clerk(end), endname


def test_server_get_missing_key():
    kv = KVServer()
    reply = kv.get(GetArgs("k"))
    assert reply.err == Err.NO_KEY


def test_server_put_installs_and_bumps_version():
    kv = KVServer()
    assert kv.put(PutArgs("k", "a", 0)).err == Err.OK
    reply = kv.get(GetArgs("k"))
    assert (reply.value, reply.version, reply.err) == ("a", 1, Err.OK)
    assert kv.put(PutArgs("k", "b", 1)).err == Err.OK
    reply = kv.get(GetArgs("k"))
    assert (reply.value, reply.version) == ("b", 2)


def test_server_put_version_mismatch():
    kv = KVServer()
    kv.put(PutArgs("k", "a", 0))
    assert kv.put(PutArgs("k", "b", 0)).err == Err.VERSION
    assert kv.get(GetArgs("k")).value == "a"


def test_server_put_missing_key_nonzero_version():
    kv = KVServer()
    assert kv.put(PutArgs("y", "a", 1)).err == Err.NO_KEY
    assert kv.get(GetArgs("y")).err == Err.NO_KEY


def test_reliable_put(network):
    val = "6.5840"
    ver = 0
    ck, _ = make_clerk(network)
    assert ck.put("k", val, ver) == Err.OK

    value, version, err = ck.get("k")
    assert err == Err.OK
    assert value == val
    assert version == ver + 1

    assert ck.put("k", val, 0) == Err.VERSION
    assert ck.put("y", val, 1) == Err.NO_KEY
    _, _, err = ck.get("y")
    assert err == Err.NO_KEY


def test_put_concurrent_reliable(network):
    nclnt = 10
    done = threading.Event()
    results = [None] * nclnt
    errors = []

    def client(me):
        ck, _ = make_clerk(network)
        nok = nmaybe = 0
        try:
            while not done.is_set():
                _, version, err = ck.get("k")
                if err == Err.NO_KEY:
                    version = 0
                perr = ck.put("k", json.dumps({"id": me, "v": version}), version)
                if perr == Err.OK:
                    nok += 1
                elif perr == Err.MAYBE:
                    nmaybe += 1
                elif perr != Err.VERSION:
                    errors.append(perr)
        finally:
            results[me] = (nok, nmaybe)

    threads = [threading.Thread(target=client, args=(i,)) for i in range(nclnt)]
    for t in threads:
        t.start()
    time.sleep(1)
    done.set()
    for t in threads:
        t.join()

    assert errors == []
    total_ok = sum(r[0] for r in results)
    total_maybe = sum(r[1] for r in results)
    ck, _ = make_clerk(network)
    _, version, err = ck.get("k")
    assert err == Err.OK
    assert total_maybe == 0
    assert version == total_ok


def test_get_retries_until_enabled(network):
    ck, endname = make_clerk(network, enabled=False)
    setup, _ = make_clerk(network)
    assert setup.put("k", "v", 0) == Err.OK
    outcome = []
    thread = threading.Thread(target=lambda: outcome.append(ck.get("k")))
    thread.start()
    time.sleep(0.3)
    assert outcome == []
    network.enable(endname, True)
    thread.join(timeout=5)
    assert outcome == [("v", 1, Err.OK)]


def test_unreliable_net(network):
    ntry = 100
    network.reliable(False)
    ck, _ = make_clerk(network)

    retried = False
    for attempt in range(ntry):
        for i in itertools.count():
            err = ck.put("k", json.dumps(i), attempt)
            if err != Err.MAYBE:
                if i > 0:
                    assert err == Err.VERSION
                else:
                    assert err == Err.OK
                break
            retried = True
        value, version, err = ck.get("k")
        assert err == Err.OK
        assert version == attempt + 1
        assert json.loads(value) == 0
    assert retried