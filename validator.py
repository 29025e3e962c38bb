from dataclasses import dataclass

from config import LOG_LEVELS
from errors import ConfigurationError


@dataclass(frozen=True)
class SweepTrial:
    loglevel: str
    max_concurrent_logs: int

    def global_flags(self):
        return ["--loglevel", self.loglevel, "--max_concurrent_logs", str(self.max_concurrent_logs)]


def _is_positive_int(value):
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def validate(topology):
    """Reject degenerate topologies, including ones produced by manual overrides."""
    for field in ("server_count", "device_count", "tolerable_faults", "data_fragments"):
        value = getattr(topology, field)
        if not _is_positive_int(value):
            raise ConfigurationError(f"{field} must be an integer >= 1, got {value!r}")
    return topology


def validate_trial(trial):
    if trial.loglevel not in LOG_LEVELS:
        raise ConfigurationError(
            f"loglevel must be one of {', '.join(LOG_LEVELS)}, got {trial.loglevel!r}")
    if not _is_positive_int(trial.max_concurrent_logs):
        raise ConfigurationError(
            f"max_concurrent_logs must be a positive integer, got {trial.max_concurrent_logs!r}")
    return trial


def validate_ports(base_rpc_port, base_http_port, server_count):
    """Every node gets base + i for i in 0..server_count; the two ranges must not collide."""
    rpc_ports = range(base_rpc_port, base_rpc_port + server_count + 1)
    http_ports = range(base_http_port, base_http_port + server_count + 1)
    for port in (rpc_ports[0], rpc_ports[-1], http_ports[0], http_ports[-1]):
        if not 1 <= port <= 65535:
            raise ConfigurationError(f"Port {port} is outside 1-65535")
    if set(rpc_ports) & set(http_ports):
        raise ConfigurationError(
            f"RPC ports {rpc_ports[0]}-{rpc_ports[-1]} overlap HTTP ports {http_ports[0]}-{http_ports[-1]}")
