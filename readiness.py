import logging
import time

from config import PORT_CHECK_TIMEOUT, READINESS_POLL_INTERVAL, READINESS_TIMEOUT
from errors import ProcessLaunchError, ReadinessTimeout
from utils import is_port_open

logger = logging.getLogger(__name__)


class ReadinessBarrier:
    """
    Blocks until a node is ready to accept the next membership change.

    The barrier always waits `floor` seconds first, so it is never shorter
    than the fixed delay it stands in for. After that it polls `check` every
    `poll_interval` seconds and gives up after `timeout` more seconds.
    """

    def __init__(self, floor, timeout=READINESS_TIMEOUT, poll_interval=READINESS_POLL_INTERVAL,
                 sleep=time.sleep, clock=time.monotonic):
        self.floor = floor
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def wait(self, check=None, label="node"):
        if self.floor > 0:
            logger.debug(f"Waiting {self.floor}s for {label} to settle")
            self._sleep(self.floor)
        if check is None:
            return

        deadline = self._clock() + self.timeout
        while True:
            if check():
                logger.debug(f"{label} is ready")
                return
            if self._clock() >= deadline:
                raise ReadinessTimeout(label, self.timeout)
            self._sleep(self.poll_interval)


def process_check(handle):
    """Ready while the start process is alive; a nonzero exit aborts the run."""
    def check():
        if handle.is_alive():
            return True
        returncode = handle.returncode
        if returncode:
            raise ProcessLaunchError(handle.command, returncode, handle.read_log())
        return False
    return check


def http_check(handle, http_address, timeout=PORT_CHECK_TIMEOUT):
    """Ready once the start process is alive and its HTTP server accepts connections."""
    alive = process_check(handle)

    def check():
        return alive() and is_port_open(http_address, timeout=timeout)
    return check
