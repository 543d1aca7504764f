# gnmikit

Building blocks for collectors of gNMI streaming telemetry, in pure Python
with no third-party dependencies.

## Modules

- `gnmikit.ctree`: a thread-safe tree keyed by sequences of strings. Each
  node is either a branch or a leaf.
  - `Tree.add(path, value)` creates any missing branches. It raises
    `TreeError` in two cases: when a value would go below an existing leaf,
    and when a leaf would replace a branch.
  - `Tree.get`, `Tree.get_leaf` and `Tree.get_leaf_value` look up a fully
    specified path.
  - `Tree.query(path, visit)` accepts `"*"` globs. `Tree.walk` and
    `Tree.walk_sorted` visit every leaf. A visit callback receives
    `(path, leaf, value)` and may raise to stop early.
  - `Tree.delete`, `Tree.delete_conditional` and `Tree.walk_deleted` remove
    leaves, then prune any branches left empty. The first two return the
    paths of the removed leaves.
  - `Leaf` is a live handle: `Leaf.value()` always returns the current
    content. `detached_leaf(val)` makes a leaf that belongs to no tree.
- `gnmikit.latency`: `Latency` keeps average, maximum and minimum latency
  over sliding windows. Durations and timestamps are integer nanoseconds, and
  the module provides the constants `SECOND`, `MINUTE` and so on.
  - `Latency.compute(ts)` records one update.
  - `Latency.update_reset(meta)` folds the interval into every window. It
    writes the statistics through `meta.set_int(name, value)` once a window
    has been fully covered.
  - `Latency.update_last(meta)` does the same without waiting for coverage.
  - `LatencyOptions` sets the averaging precision, the latency function and
    the clock.
  - Helpers: `parse_windows`, `parse_duration` (for example `"1h10m30s"`),
    `format_duration`, `compact_duration_string`, `path` and
    `metadata_name`.
- `gnmikit.metadata`: `Metadata` holds per-target flags, counters and strings.
  The methods are `set_bool`/`get_bool`, `set_int`/`add_int`/`get_int`,
  `set_str`/`get_str`, `reset_entry` and `clear`.
  - Names must be registered in `TARGET_BOOL_VALUES`, `TARGET_INT_VALUES`
    or `TARGET_STR_VALUES`. Unknown names raise `InvalidValueError`, and
    values never set raise `UnsetValueError`.
  - `register_int_value`, `unregister_int_value` and
    `register_latency_metadata` extend the integer registry.
  - `path(name)` and `latency_path(window, typ)` give the path of a
    metadata value, rooted at `ROOT` (`"meta"`).
- `gnmikit.errlist`: `ErrorList.add(*errors)` collects errors and ignores
  `None`. It flattens lists of errors and objects with an `errors()` method.
  `ErrorList.err()` returns a `MultiError`, or `None` when empty. The
  message joins the errors with the list's `separator`, falling back to the
  module's `SEPARATOR`.

## Example

```python
from gnmikit import latency, metadata
from gnmikit.ctree import Tree
from gnmikit.latency import SECOND, Latency, LatencyOptions, StatType

tree = Tree()
tree.add(["dev1", "interfaces", "eth0", "counters"], 42)
tree.add(["dev1", "interfaces", "eth1", "counters"], 7)

found = {}
tree.query(["dev1", "*", "*", "counters"],
           lambda path, leaf, value: found.update({"/".join(path): value}))
# found == {"dev1/interfaces/eth0/counters": 42, "dev1/interfaces/eth1/counters": 7}

windows = latency.parse_windows(["2s"], 2 * SECOND)
metadata.register_latency_metadata(windows)
meta = metadata.Metadata()

now = [100 * SECOND]
lat = Latency(windows, LatencyOptions(clock=lambda: now[0]))
lat.compute(97 * SECOND)   # 3s latency
lat.compute(99 * SECOND)   # 1s latency
now[0] = 102 * SECOND
lat.update_reset(meta)
meta.get_int(latency.metadata_name(2 * SECOND, StatType.AVG))  # 2_000_000_000
```

## What this package does not do

It has no network code. It does not dial devices, open gNMI subscriptions or
reconnect to targets. It does not match subscriptions against incoming
updates. It does not convert gNMI path messages into index strings. It
provides no command-line program and no server. It keeps everything in
memory and stores nothing on disk.

## Tests

```
pip install -e .[test]
pytest
```