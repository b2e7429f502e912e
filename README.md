# parbench

`parbench` runs the same small script on several threads at once and reports
how long each thread took. The script is executed by a tiny tree-walking
interpreter: a variable `j` is set to zero, incremented in a
`while j < limit` loop, and then printed as `j=<value>`. By default the
limit is 1,000,000,000.

When every thread has finished, the elapsed time of each one is printed in
seconds, one line per thread, truncated to whole milliseconds and shown with
four significant digits.

## Installation

```
pip install .
```

For running the test suite:

```
pip install .[test]
pytest
```

## Commands

Every command first prints `version for double` or `version for int`.
Variables are floats by default; pass `--ints` to run the script on
integers (`--doubles` selects floats explicitly). If the command fails, it
prints `main: exception caught: <message>` and still exits with status 0.

### `parbench`

```
parbench [--ints|--doubles] [--limit N] [thread_count]
```

Starts `thread_count` worker threads (4 by default; zero is rejected). Each
one runs the demo script counting up to `N` (`--limit N` or `--limit=N`).
Each worker first tries to raise its own scheduling priority where the
platform allows it; if that is not permitted, it runs at its normal priority.

```
parbench --limit 1000000 8
```

### `parbench-affinity`

```
parbench-affinity [--ints|--doubles] [thread_count] [pin[:<core-index(es)>]]
```

The same benchmark, but threads may be pinned to logical processors:

| argument         | meaning                                                       |
|------------------|---------------------------------------------------------------|
| `pin`            | pin threads to logical processors in order, starting from 0   |
| `pin:N+`         | pin threads to logical processors in order, starting from `N` |
| `pin:I,J,K[,..]` | pin threads only to the listed logical processors             |

`thread_count` may be left out only when processors are listed explicitly;
the thread count is then the number of processors listed. When both are
given, the smaller of the two is used. With no arguments, or with `-h` /
`--help`, a usage message is shown.

Before the workers start, a short summary of the processors available to
the process is printed. Workers wait for each other and start the script
together. A worker that cannot be pinned reports the failure on stderr and
does not run the script.

```
parbench-affinity pin:0,2,4
parbench-affinity 10 pin:1+
```

### `parbench-group-affinity` and `parbench-proc-groups`

```
parbench-group-affinity [--ints|--doubles] [thread_count] [pin[:<group-processor list>]]
parbench-proc-groups [--ints|--doubles] [thread_count] [pin[:<group-processor list>]]
```

These variants address processors as `group-number` pairs:

| argument           | meaning                                                           |
|--------------------|-------------------------------------------------------------------|
| `pin`              | walk through every processor of every group, starting from `0-0`  |
| `pin:G-P,G-P[,..]` | use only the listed processors, for example `pin:0-1,0-2,1-3,1-4` |

The same rules for `thread_count` apply as for `parbench-affinity`.

`parbench-group-affinity` binds each thread to its processor and prints the
thread's previous and new group affinity. `parbench-proc-groups` only
records the processor as the thread's preferred ("ideal") processor and
prints the previous preference; the thread is not bound.

All workers are started first and then released together, so no thread gets
a head start. If starting a worker fails, the ones already waiting are told
to quit without running.

```
parbench-group-affinity pin:0-0,0-2,0-4
parbench-proc-groups 10 pin
```

## Using the interpreter directly

```python
from parbench.demo_script import make_demo_script
from parbench.script import execute

script = make_demo_script(1000)
ctx = execute(script, int)   # prints: j=1000
ctx.get("j")                 # 1000
```

Scripts are built from the statement classes in `parbench.script`
(`CompoundStatement`, `WhileLoop`, `AssignTo`, `IncrementBy`, `PrintValue`)
and the `LessThan` condition, and run against an `ExecContext` that holds
variables of one value type. Reading a variable that was never assigned
raises `LookupError`; `execute` catches such errors and reports them on
stderr as `exception caught: <message>`.

The argument parsers are available as `parbench.run_params.parse_cmd_line_args`
and `parbench.group_params.parse_group_cmd_line_args`; both raise
`parbench.run_params.ArgsError` for command lines they cannot accept.

## Limitations

- Pinning uses `os.sched_setaffinity`. Where the platform does not provide it,
  every pinning attempt fails and the affected workers do not run.
- Processor groups are not detected from the operating system: all logical
  processors reported by `os.cpu_count()` are treated as group 0, so only
  `0-P` pairs can be used.
- `parbench-affinity`, `parbench-group-affinity` and `parbench-proc-groups`
  have no `--limit` option; they always count to 1,000,000,000.
- The worker threads share one Python interpreter, so the timings show how
  this interpreter's threads behave, not how separate processes would.