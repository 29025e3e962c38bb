import logging
import os
import shutil
import subprocess

import psutil

from config import COMMAND_TIMEOUT, LOGS_SUBDIR
from errors import ClusterEnvironmentError, ProcessLaunchError

logger = logging.getLogger(__name__)


class ProcessHandle:
    """Tracks one long-lived `frugalos start` process launched in the background."""

    def __init__(self, node_id, command, proc, log_path=None):
        self.node_id = node_id
        self.command = list(command)
        self.log_path = log_path
        self._proc = proc

    @property
    def pid(self):
        return self._proc.pid

    @property
    def returncode(self):
        return self._proc.poll()

    def is_alive(self):
        if self._proc.poll() is not None:
            return False
        try:
            return self._proc.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False

    def read_log(self):
        if not self.log_path or not os.path.exists(self.log_path):
            return ""
        with open(self.log_path, 'r', errors='replace') as f:
            return f.read()

    def terminate(self):
        try:
            self._proc.terminate()
        except psutil.NoSuchProcess:
            pass

    def __repr__(self):
        return f"ProcessHandle(node_id={self.node_id!r}, pid={self.pid})"


def ensure_writable_dir(path):
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise ClusterEnvironmentError(f"Cannot create directory {path}: {e}") from e
    if not os.access(path, os.W_OK):
        raise ClusterEnvironmentError(f"Directory {path} is not writable")


def stage_binary(binary, work_dir):
    """Copy the built binary to <work_dir>/bin/ and return the staged path."""
    if not os.path.isfile(binary):
        raise ClusterEnvironmentError(f"frugalos binary not found at {binary}")
    bin_dir = os.path.join(work_dir, "bin")
    ensure_writable_dir(bin_dir)
    dest = os.path.join(bin_dir, os.path.basename(binary))
    try:
        shutil.copy2(binary, dest)
    except OSError as e:
        raise ClusterEnvironmentError(f"Cannot copy {binary} to {bin_dir}: {e}") from e
    logger.info(f"Staged {binary} -> {dest}")
    return dest


class ProcessLauncher:
    """Invokes the `create`, `join` and `start` subcommands of the frugalos binary."""

    def __init__(self, binary, work_dir, timeout=COMMAND_TIMEOUT):
        # Commands run with cwd=work_dir, so relative paths are pinned to the caller's cwd now.
        # A bare name is left for PATH lookup.
        self.binary = os.path.abspath(binary) if os.sep in binary else binary
        self.work_dir = os.path.abspath(work_dir)
        self.timeout = timeout

    def check_binary(self):
        if os.path.isfile(self.binary) and os.access(self.binary, os.X_OK):
            return
        if shutil.which(self.binary):
            return
        raise ClusterEnvironmentError(f"frugalos binary not found or not executable: {self.binary}")

    def run(self, args):
        """Run a short-lived subcommand to completion; nonzero exit is fatal."""
        command = [self.binary] + list(args)
        logger.debug(f"Running {' '.join(command)}")
        try:
            result = subprocess.run(command, capture_output=True, text=True,
                                    timeout=self.timeout, cwd=self.work_dir)
        except FileNotFoundError as e:
            raise ClusterEnvironmentError(f"Cannot execute {self.binary}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise ProcessLaunchError(command, None, message=f"{' '.join(command)} timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise ProcessLaunchError(command, result.returncode, (result.stdout or "") + (result.stderr or ""))
        return result.stdout

    def create(self, spec, global_flags=()):
        args = list(global_flags) + ["create", "--id", spec.id]
        if spec.rpc_address:
            args += ["--addr", spec.rpc_address]
        return self.run(args + ["--data-dir", spec.data_dir])

    def join(self, spec):
        return self.run([
            "join", "--id", spec.id, "--addr", spec.rpc_address, "--data-dir", spec.data_dir,
            "--contact-server", spec.contact_address,
        ])

    def start(self, spec, flags=(), env=None):
        """Launch `start` in the background with output sent to <work_dir>/logs/<id>.log."""
        command = [self.binary, "start", "--data-dir", spec.data_dir] + list(flags) + [
            "--http-server-bind-addr", spec.http_address,
        ]
        log_dir = os.path.join(self.work_dir, LOGS_SUBDIR)
        ensure_writable_dir(log_dir)
        log_path = os.path.join(log_dir, f"{spec.id}.log")

        proc_env = dict(os.environ)
        proc_env.update(env or {})

        logger.debug(f"Launching {' '.join(command)}")
        with open(log_path, 'w') as log_file:
            try:
                proc = psutil.Popen(command, stdout=log_file, stderr=subprocess.STDOUT,
                                    env=proc_env, cwd=self.work_dir)
            except FileNotFoundError as e:
                raise ClusterEnvironmentError(f"Cannot execute {self.binary}: {e}") from e
        return ProcessHandle(spec.id, command, proc, log_path)
