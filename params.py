from dataclasses import asdict, dataclass
from typing import Optional

from errors import ConfigurationError


@dataclass(frozen=True)
class ClusterTopology:
    """
    Redundancy parameters of one bootstrap run.

    server_count excludes the seed node, so a topology describes
    server_count + 1 processes. data_fragments + tolerable_faults is meant to
    come out close to that total so that each node holds about one fragment.
    """

    server_count: int
    device_count: int
    tolerable_faults: int
    data_fragments: int

    @property
    def total_nodes(self) -> int:
        return self.server_count + 1

    def to_dict(self):
        data = asdict(self)
        data["total_nodes"] = self.total_nodes
        return data


def _require_count(name, value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be >= 1, got {value}")


def default_tolerable_faults(server_count: int) -> int:
    return max(1, server_count // 2 - 1)


def default_data_fragments(server_count: int, tolerable_faults: int) -> int:
    # +1 accounts for the seed node that server_count leaves out
    return max(1, server_count + 1 - tolerable_faults)


def derive(server_count: int, device_count: int,
           tolerable_faults: Optional[int] = None,
           data_fragments: Optional[int] = None) -> ClusterTopology:
    """
    Compute the topology for a cluster of server_count joiners plus the seed.

    Explicit overrides are used as given and are not clamped; validating them
    is left to validator.validate().
    """
    _require_count("server_count", server_count)
    _require_count("device_count", device_count)

    if tolerable_faults is None:
        tolerable_faults = default_tolerable_faults(server_count)
    if data_fragments is None:
        data_fragments = default_data_fragments(server_count, tolerable_faults)

    return ClusterTopology(
        server_count=server_count,
        device_count=device_count,
        tolerable_faults=tolerable_faults,
        data_fragments=data_fragments,
    )
