# fancontrol

Tools for notebook fans on Linux. The package can:

- read and write registers of the embedded controller (EC),
- search for the EC registers that affect the fan,
- bring downloaded model configuration files up to date,
- start, stop and locate the fan control service.

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Embedded controller access

`fancontrol.ec` defines the `EmbeddedController` interface. Its methods are:

- `open()` and `close()`
- `read_byte(register)` and `write_byte(register, value)`
- `read_word(register)` and `write_word(register, value)`

A word is stored little-endian in two consecutive registers. A failed access
raises `ECError`. A register or value outside its range raises `ValueError`.
Every controller can be used as a context manager, which opens it on entry
and closes it on exit.

There are three implementations:

- `PortController(path="/dev/port")` talks to the EC through the I/O port
  file, using the ACPI command port (0x66) and data port (0x62). Each access
  is retried up to five times before it fails with a timeout.
- `DummyController` keeps 256 registers in memory, all zero after `open()`.
  Using it before `open()` raises `ECError`.
- `DebugController(controller, logger=None)` wraps another controller. It
  logs every access at debug level, and also logs failures as warnings.

`check_working(controller)` reports whether a controller can be opened and
register 0 read. `find_working(controllers)` returns the first controller that
works, and raises `ECError` if none does.

```python
from fancontrol.ec import DummyController

with DummyController() as ec:
    ec.write_word(0x10, 0x1234)
    assert ec.read_byte(0x10) == 0x34
    assert ec.read_byte(0x11) == 0x12
```

## Number arguments

`fancontrol.numbers.parse_number(text, minimum, maximum)` parses an integer in
decimal, hexadecimal (`0x1F`) or octal (`017`) notation. It raises
`ValueError` if the text is not a number or lies outside
`[minimum, maximum]`.

## Finding the fan register

`fancontrol-bruteforce` helps to find which EC registers affect the fan. It
writes each candidate value to each candidate register in turn. After every
such write, it steps the fan register through the given fan values and prints
one line per step.

When the run ends, including when it ends in an error, the touched registers
get their original values back.

```
fancontrol-bruteforce -f 0x2F -F 0-255 -b 0x90-0x95 -v 0,1 -s 0.5
```

| Option | Meaning |
| ------ | ------- |
| `-f`, `--fan-register` | The fan speed register (required). |
| `-F`, `--fan-values` | The values to write to the fan register (required). |
| `-b`, `--bruteforce-registers` | The candidate registers (required). |
| `-v`, `--bruteforce-values` | The values to try on each candidate register (required). |
| `-s`, `--sleep` | Seconds to wait after each step, from 0.1 to 100 (default 0.5). |
| `-e`, `--embedded-controller` | `dev_port` for the I/O port file. If left out, the first working controller is used. |

Lists are comma separated and may contain inclusive ranges such as `3-7`.
Each number must lie between 0 and 255. The same list parsing is available as
`fancontrol.bruteforce.expand_ints`.

The command must be run as root. It exits with status 0 on success, 1 on an
access failure or when not run as root, and 2 on a bad command line.

From Python, `Bruteforcer(controller, options)` runs the same search with a
`BruteforceOptions`. `run()` does the search and `reset()` restores the
registers.

## Updating configurations

`fancontrol.update` keeps a directory of model configuration files current:

- `update_configs(listing_url, mutable_dir, static_dir, parallel=10, quiet=False)`
  downloads a JSON directory listing from `listing_url`.
- For each listed file, it looks first in `mutable_dir` and then in
  `static_dir`, and compares the local copy by its git blob SHA-1
  (`git_blob_sha1`, `file_matches_sha`).
- It then downloads the new and changed files into `mutable_dir`, with up to
  `parallel` downloads at a time. If any download fails, it raises
  `UpdateError` once all files have been tried.

Each file's state is a `FileState`: `UP_TO_DATE`, `NEW` or `CHANGED`.
`summarize` counts the new and the changed files.

`update_model_support(url, target)` downloads the model support database to
`target`.

Every download goes through a `fetcher` argument, which defaults to
`fetch`. `fetch` uses `urllib`. The caller has to supply all URLs; the package
has none built in.

## Service control

`fancontrol.service_control` has the following functions:

- `get_pid(pid_file)` returns the PID in the service's pid file. It returns
  `None` if there is no such file, and raises `ServiceError` if the file is
  unreadable or holds something that is not a PID.
- `start_service(pid_file, read_only=False)` runs `nbfc_service -f`, adding
  `-r` for read-only mode, unless a PID is already recorded. It returns the
  program's exit status.
- `stop_service(pid_file)` sends SIGINT to the recorded PID and removes the
  pid file. It returns `False` if the service was not running.
- `restart_service(pid_file, read_only=False)` stops the service, waits one
  second and starts it again.
- `wait_for_hwmon(root="/sys/class/hwmon", tries=30, delay=1.0)` waits until a
  `coretemp`, `k10temp` or `zenpower` sensor appears in hwmon, and returns
  whether one did.

## What the package does not do

- It does not contain the fan control service. `start_service` only runs an
  `nbfc_service` program that must already be installed.
- It has no client command for status, sensors, fan speeds or configuration.
  The only command is `fancontrol-bruteforce`.
- It does not find out the machine's model name, and it does not choose or
  recommend a model configuration.