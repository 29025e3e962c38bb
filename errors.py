class BootstrapError(Exception):
    """Base class for every failure that halts a bootstrap or sweep run."""

    exit_status = 1


class ConfigurationError(BootstrapError):
    """Invalid topology, port layout or sweep parameters."""


class BootstrapOrderError(ConfigurationError):
    """A bootstrap step was issued before the steps it depends on."""


class ClusterEnvironmentError(BootstrapError):
    """Missing binary or a data directory that cannot be written."""


class ProcessLaunchError(BootstrapError):
    """An invoked frugalos subcommand exited with a nonzero status."""

    def __init__(self, command, returncode, output="", message=None):
        self.command = list(command)
        self.returncode = returncode
        self.output = output or ""
        super().__init__(message or f"Command {' '.join(self.command)} exited with status {returncode}")

    @property
    def exit_status(self):
        # Negative return codes mean the process was killed by a signal
        if self.returncode is None or self.returncode <= 0:
            return 1
        return self.returncode


class ReadinessTimeout(ProcessLaunchError):
    """A node did not report ready before its barrier timed out."""

    def __init__(self, label, timeout, command=()):
        self.label = label
        self.timeout = timeout
        message = f"{label} not ready after {timeout}s"
        super().__init__(command, None, message=message)
