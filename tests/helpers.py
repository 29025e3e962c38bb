import os
import stat

from errors import ProcessLaunchError


class FakeHandle:
    def __init__(self, node_id, command, returncode=None):
        self.node_id = node_id
        self.command = command
        self.pid = 1000 + len(node_id)
        self.log_path = None
        self._returncode = returncode

    @property
    def returncode(self):
        return self._returncode

    def is_alive(self):
        return self._returncode is None

    def read_log(self):
        return "boom"


class FakeLauncher:
    """Records every subcommand into `events`; `fail_on` makes one step exit nonzero."""

    def __init__(self, events=None, fail_on=None, start_returncode=None):
        self.events = events if events is not None else []
        self.fail_on = fail_on
        self.start_returncode = start_returncode
        self.specs = []

    def _record(self, step, spec, command):
        self.events.append((step, spec.id))
        self.specs.append((step, spec))
        if self.fail_on == (step, spec.id):
            raise ProcessLaunchError(command, 3, f"{step} {spec.id} failed")

    def create(self, spec, global_flags=()):
        command = ["frugalos"] + list(global_flags) + ["create", "--id", spec.id]
        self._record("create", spec, command)
        return ""

    def join(self, spec):
        self._record("join", spec, ["frugalos", "join", "--id", spec.id])
        return ""

    def start(self, spec, flags=(), env=None):
        command = ["frugalos", "start", "--data-dir", spec.data_dir]
        self._record("start", spec, command)
        return FakeHandle(spec.id, command, self.start_returncode)


class Recorder:
    """Stands in for time.sleep; logs the delay into the shared event list."""

    def __init__(self, events):
        self.events = events
        self.now = 0.0

    def sleep(self, seconds):
        self.events.append(("sleep", seconds))
        self.now += seconds

    def clock(self):
        return self.now


def write_script(path, body):
    """Write an executable shell script standing in for the frugalos binary."""
    path.write_text("#!/bin/sh\n" + body + "\n")
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)
