# distlab

`distlab` is a small toolkit for building and testing distributed services
inside a single Python process. It uses only the standard library.

## Modules

- **`distlab.labgob`**: `LabEncoder` and `LabDecoder` write and read values,
  one JSON document per line, on a binary stream. Dataclasses carry their type
  name and are rebuilt on decoding; types can be made known in advance with
  `register(value_type)` or `register_name(name, value_type)`. Two mistakes are
  reported on standard output and counted: dataclass fields whose names start
  with an underscore (they are never transmitted), and decoding while passing
  in an object that already holds non-default values. `error_count()` returns
  the number of reports so far. Malformed input raises `LabGobError`; an empty
  stream raises `EOFError`.

- **`distlab.labrpc`**: a simulated network. A `Network` holds named client
  end-points (`ClientEnd`, made with `make_end`, initially disabled and
  unconnected) and named `Server`s. A server carries one or more `Service`
  objects; every public method of the receiver that takes exactly one argument
  is a handler, called as `end.call("Service.method", args)`, which returns the
  handler's result. Arguments and results are passed through `labgob`, so no
  objects are shared. When no reply arrives `call` raises `RPCFailure`: the end
  is disabled or unconnected, the server was deleted while the handler ran, or,
  with `reliable(False)`, the request or reply was dropped. `long_delays(True)`
  and `long_reordering(True)` add longer delays. `get_count(servername)`,
  `get_total_count()` and `get_total_bytes()` report traffic. The network is a
  context manager whose exit calls `cleanup()`.

- **`distlab.kvrpc`**: `PutArgs`, `PutReply`, `GetArgs`, `GetReply` and the
  `Err` enumeration (`OK`, `NO_KEY`, `VERSION`, `MAYBE`, `WRONG_LEADER`,
  `WRONG_GROUP`).

- **`distlab.kvsrv`**: a versioned in-memory key/value server `KVServer` and
  its client `Clerk`. A put succeeds only when its version matches the key's
  version, and increments it; a new key needs version 0, otherwise the reply is
  `Err.NO_KEY`. The clerk resends lost RPCs forever; a `VERSION` reply to a
  resent put is reported as `Err.MAYBE`, since an earlier attempt may have
  taken effect. `start_kv_server(network, servername)` creates a server and adds
  it to a network.

- **`distlab.lock`**: `Lock(clerk, name)`, a lock kept in one key of the
  key/value service, with `acquire()`, `release()` (which raises
  `RuntimeError` if the lock is not held) and use as a context manager.

- **`distlab.kvmodel`**: a sequential model of the versioned key/value service:
  `KvInput`, `KvOutput`, `KvState`, `Operation`, and the functions
  `partition` (split a history by key), `init_state`, `step` and
  `describe_operation`.

- **`distlab.mr`**: `KeyValue`, the example RPC types `ExampleArgs` and
  `ExampleReply`, `ihash(key)` (a 31-bit FNV-1a hash for choosing a reduce
  bucket) and `coordinator_sock()` (a per-user socket path).

- **`distlab.mrapps`**: MapReduce applications, each with `map_func` and
  `reduce_func`:
  - `wc`: word count
  - `indexer`: inverted index
  - `crash`: exits the process or stalls at random (`maybe_crash`)
  - `nocrash`: the same output as `crash`, without failures
  - `early_exit`: counts per file, with slow reduces for some keys
  - `jobcount`: counts map invocations through marker files in the current
    directory
  - `mtiming` and `rtiming`: count how many map or reduce tasks run at the
    same time (`nparallel`), using marker files in the current directory

- **`distlab.mrsequential`**: a sequential MapReduce runner.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running a sequential MapReduce job

```
mrsequential wc pg-*.txt
```

or `python -m distlab.mrsequential wc pg-*.txt`. The first argument names an
application in `distlab.mrapps` (a path such as `mrapps/wc.so` is accepted;
only its stem is used). Every input file is passed to the map function, the
intermediate pairs are sorted by key, and reduce is called once per distinct
key. One `key output` line per key is written to `mr-out-0`. The command
exits with status 1 on bad usage, an unknown application or an unreadable
file.

From Python, `load_app(name)` returns an application's map and reduce
functions, and `run_sequential(mapf, reducef, filenames, output_path)` runs
the same job and returns the `(key, output)` pairs it wrote.

## What the package does not do

- There is no distributed MapReduce: no coordinator and no worker processes.
  `distlab.mr` holds only the shared types and helpers they would use.
- `distlab.kvmodel` is only the model of the service; there is no checker that
  searches a history for a linearizable order.
- The key/value service is a single in-memory server: there is no replication
  and nothing is persisted.