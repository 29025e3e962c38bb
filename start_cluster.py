import logging
import os
import shlex
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional

from cleanup_ports import reset_cluster
from config import (HOST, HTTP_PORT, JOIN_POST_START_DELAY, JOIN_PRE_START_DELAY, READINESS_POLL_INTERVAL,
                    READINESS_TIMEOUT, REPAIR_ENABLED, RPC_PORT, SEED_STABILIZE_DELAY, SNAPSHOT_THRESHOLD,
                    START_FLAGS, TOPOLOGY_FILE)
from errors import BootstrapOrderError
from launcher import ProcessHandle, ProcessLauncher, ensure_writable_dir, stage_binary
from readiness import ReadinessBarrier, http_check, process_check
from utils import format_addr, write_json
from validator import validate, validate_ports

logger = logging.getLogger(__name__)


class Role(Enum):
    SEED = "seed"
    JOINER = "joiner"


class BootstrapState(Enum):
    UNINITIALIZED = "uninitialized"
    SEED_CREATED = "seed_created"
    SEED_STARTED = "seed_started"
    JOIN_ISSUED = "join_issued"
    JOIN_STARTED = "join_started"
    STABLE = "stable"


@dataclass(frozen=True)
class NodeSpec:
    id: str
    rpc_address: str
    http_address: str
    data_dir: str
    role: Role
    contact_address: Optional[str] = None


class ClusterBootstrapper:
    """
    Creates and starts the seed node, then joins the remaining nodes one at a
    time, each through the seed's RPC address.

    Steps are strictly sequential. Seed create precedes seed start, seed start
    plus its stabilization barrier precedes the first join, and each joiner's
    start plus its settle barrier precedes the next join. The first failing
    command aborts the run; nodes already launched are left running.
    """

    def __init__(self, launcher, topology, work_dir, host=HOST, rpc_port=RPC_PORT, http_port=HTTP_PORT,
                 start_flags=START_FLAGS, repair_enabled=REPAIR_ENABLED, snapshot_threshold=SNAPSHOT_THRESHOLD,
                 wait_for_http=True, readiness_timeout=READINESS_TIMEOUT,
                 poll_interval=READINESS_POLL_INTERVAL, sleep=time.sleep, clock=time.monotonic):
        self.launcher = launcher
        self.topology = topology
        self.work_dir = os.path.abspath(work_dir)
        self.host = host
        self.rpc_port = rpc_port
        self.http_port = http_port
        if isinstance(start_flags, str):
            start_flags = shlex.split(start_flags)
        self.start_flags = list(start_flags)
        self.repair_enabled = repair_enabled
        self.snapshot_threshold = snapshot_threshold
        self.wait_for_http = wait_for_http

        self.seed_barrier = ReadinessBarrier(SEED_STABILIZE_DELAY, readiness_timeout, poll_interval, sleep, clock)
        self.pre_start_barrier = ReadinessBarrier(JOIN_PRE_START_DELAY, readiness_timeout, poll_interval, sleep, clock)
        self.post_start_barrier = ReadinessBarrier(JOIN_POST_START_DELAY, readiness_timeout, poll_interval, sleep, clock)

        self.state = BootstrapState.UNINITIALIZED
        self.seed_address = None
        self.joined = 0

    def _node_spec(self, index, role, contact_address=None):
        node_id = f"srv{index}"
        return NodeSpec(
            id=node_id,
            rpc_address=format_addr(self.host, self.rpc_port + index),
            http_address=format_addr(self.host, self.http_port + index),
            data_dir=os.path.join(self.work_dir, node_id),
            role=role,
            contact_address=contact_address,
        )

    def seed_spec(self):
        return self._node_spec(0, Role.SEED)

    def joiner_spec(self, index):
        if not 1 <= index <= self.topology.server_count:
            raise ValueError(f"Joiner index must be in 1..{self.topology.server_count}, got {index}")
        return self._node_spec(index, Role.JOINER, self.seed_spec().rpc_address)

    @property
    def start_env(self):
        return {
            "FRUGALOS_REPAIR_ENABLED": "1" if self.repair_enabled else "0",
            "FRUGALOS_SNAPSHOT_THRESHOLD": str(self.snapshot_threshold),
        }

    def _require_state(self, step, *allowed):
        if self.state not in allowed:
            raise BootstrapOrderError(
                f"Cannot {step} in state {self.state.value}; "
                f"expected {' or '.join(s.value for s in allowed)}")

    def _readiness_check(self, handle, spec):
        if self.wait_for_http:
            return http_check(handle, spec.http_address)
        return process_check(handle)

    def _start(self, spec, barrier):
        handle = self.launcher.start(spec, self.start_flags, self.start_env)
        logger.info(f"Started {spec.id} (pid {handle.pid}), http on {spec.http_address}")
        barrier.wait(self._readiness_check(handle, spec), label=spec.id)
        return handle

    def create_seed(self, spec):
        self._require_state("create the seed", BootstrapState.UNINITIALIZED)
        logger.info(f"Creating seed {spec.id} at {spec.rpc_address}")
        self.launcher.create(spec)
        self.seed_address = spec.rpc_address
        self.state = BootstrapState.SEED_CREATED

    def start_seed(self, spec) -> ProcessHandle:
        self._require_state("start the seed", BootstrapState.SEED_CREATED)
        handle = self._start(spec, self.seed_barrier)
        self.state = BootstrapState.SEED_STARTED
        return handle

    def join_node(self, spec, contact_address) -> ProcessHandle:
        self._require_state("join a node", BootstrapState.SEED_STARTED, BootstrapState.JOIN_STARTED)
        if contact_address != self.seed_address:
            raise BootstrapOrderError(
                f"{spec.id} must join through the seed at {self.seed_address}, not {contact_address}")
        spec = replace(spec, contact_address=contact_address)

        logger.info(f"Joining {spec.id} at {spec.rpc_address} via {contact_address}")
        self.state = BootstrapState.JOIN_ISSUED
        self.launcher.join(spec)
        self.pre_start_barrier.wait(label=spec.id)

        handle = self._start(spec, self.post_start_barrier)
        self.joined += 1
        self.state = BootstrapState.JOIN_STARTED
        return handle

    def run(self) -> List[ProcessHandle]:
        validate(self.topology)
        validate_ports(self.rpc_port, self.http_port, self.topology.server_count)
        logger.info(
            f"Bootstrapping {self.topology.total_nodes} nodes "
            f"(tolerable_faults={self.topology.tolerable_faults}, "
            f"data_fragments={self.topology.data_fragments})")

        seed = self.seed_spec()
        self.create_seed(seed)
        handles = [self.start_seed(seed)]

        for i in range(1, self.topology.server_count + 1):
            handles.append(self.join_node(self.joiner_spec(i), seed.rpc_address))
            logger.info(f"Node {i}/{self.topology.server_count} joined")

        self.state = BootstrapState.STABLE
        logger.info("Cluster is stable")
        return handles


def start_cluster(topology, binary, work_dir, stage=True, reset=reset_cluster, **options):
    """
    Full bootstrap run: check the binary, reset the previous run, stage the
    binary in <work_dir>/bin, bring the cluster up and record its topology.

    Nothing is torn down unless the binary exists. Staging happens after the
    reset because the old nodes may still be executing <work_dir>/bin.
    """
    validate(topology)
    work_dir = os.path.abspath(work_dir)
    rpc_port = options.get("rpc_port", RPC_PORT)
    http_port = options.get("http_port", HTTP_PORT)
    validate_ports(rpc_port, http_port, topology.server_count)

    ProcessLauncher(binary, work_dir).check_binary()
    ensure_writable_dir(work_dir)
    reset(work_dir, topology.server_count, rpc_port, http_port)
    if stage:
        binary = stage_binary(binary, work_dir)

    launcher = ProcessLauncher(binary, work_dir)
    launcher.check_binary()
    handles = ClusterBootstrapper(launcher, topology, work_dir, **options).run()

    write_json(os.path.join(work_dir, TOPOLOGY_FILE), {
        "topology": topology.to_dict(),
        "nodes": [{"id": h.node_id, "pid": h.pid} for h in handles],
    })
    return handles
