import os

from errors import ConfigurationError


def env_int(name, default=None):
    """Read an integer from the environment; unset or empty means default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"${name} must be an integer, got {value!r}") from None


# Binary / Workspace
FRUGALOS_BIN = os.environ.get("FRUGALOS_BIN", "target/debug/frugalos")
WORK_DIR = os.environ.get("WORK_DIR", "/tmp/frugalos_test/")
SWEEP_WORK_DIR = os.environ.get("SWEEP_WORK_DIR", "/tmp/frugalos_it/")

# Network Constants
HOST = "127.0.0.1"
RPC_PORT = 14278
HTTP_PORT = 3100

# Cluster Shape (server count excludes the seed node); $SERVER_COUNT, $DEVICE_COUNT,
# $TOLERABLE_FAULTS and $DATA_FRAGMENTS override these, read through env_int()
DEFAULT_SERVER_COUNT = 2
DEFAULT_DEVICE_COUNT = 1

# Node Start
START_FLAGS = os.environ.get("FRUGALOS_START_FLAGS", "--sampling-rate 1.0")
REPAIR_ENABLED = True
SNAPSHOT_THRESHOLD = 10

# Barriers (seconds)
SEED_STABILIZE_DELAY = 6
JOIN_PRE_START_DELAY = 1
JOIN_POST_START_DELAY = 3
READINESS_TIMEOUT = 60
READINESS_POLL_INTERVAL = 0.5
PORT_CHECK_TIMEOUT = 1.0

# Parameter Sweep
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
MAX_CONCURRENT_LOGS_VALUES = (64, 4096, 10000)
SWEEP_NODE_ID = "srv5"
SWEEP_DATA_SUBDIR = "srv1"

# Subprocess
COMMAND_TIMEOUT = 240  # Seconds for create/join
LOGS_SUBDIR = "logs"
TOPOLOGY_FILE = "topology.json"
