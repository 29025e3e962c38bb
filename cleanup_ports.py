import logging
import os
import shutil

import psutil

from config import DEFAULT_SERVER_COUNT, HTTP_PORT, LOGS_SUBDIR, RPC_PORT, WORK_DIR, env_int
from errors import ClusterEnvironmentError

logger = logging.getLogger(__name__)


def cluster_ports(server_count, rpc_port=RPC_PORT, http_port=HTTP_PORT):
    """Every RPC and HTTP port a run of server_count joiners plus the seed binds."""
    ports = []
    for i in range(server_count + 1):
        ports.append(rpc_port + i)
        ports.append(http_port + i)
    return ports


def node_data_dirs(work_dir, server_count):
    return [os.path.join(work_dir, f"srv{i}") for i in range(server_count + 1)]


def kill_processes_on_ports(ports, wait_timeout=5):
    """Kill every process holding one of `ports` and wait for it to go away."""
    logger.info("Checking for leftover processes on cluster ports...")
    ports = set(ports)
    victims = []

    for proc in psutil.process_iter(['pid', 'name']):
        if proc.pid == os.getpid():
            continue
        try:
            for conn in proc.net_connections(kind='inet'):
                if conn.laddr and conn.laddr.port in ports:
                    logger.info(f"Killing {proc.name()} (PID: {proc.pid}) on port {conn.laddr.port}")
                    proc.kill()
                    victims.append(proc)
                    break
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            # Gone already, or not ours to inspect
            continue

    if victims:
        psutil.wait_procs(victims, timeout=wait_timeout)
        logger.info(f"Killed {len(victims)} processes.")
    else:
        logger.info("No conflicting processes found.")
    return len(victims)


def clear_data_dir(path):
    """Remove a node data directory. Missing directories are fine."""
    if os.path.lexists(path):
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.remove(path)
        except OSError as e:
            raise ClusterEnvironmentError(f"Cannot clear {path}: {e}") from e
        logger.debug(f"Cleared {path}")
        return True
    return False


def reset_cluster(work_dir=WORK_DIR, server_count=DEFAULT_SERVER_COUNT, rpc_port=RPC_PORT, http_port=HTTP_PORT,
                  kill=kill_processes_on_ports):
    """
    Tear down whatever a previous run left behind: processes on the cluster
    ports first, then the node data directories and logs. Idempotent.
    """
    kill(cluster_ports(server_count, rpc_port, http_port))
    cleared = 0
    for path in node_data_dirs(work_dir, server_count) + [os.path.join(work_dir, LOGS_SUBDIR)]:
        if clear_data_dir(path):
            cleared += 1
    logger.info(f"Reset {work_dir}: cleared {cleared} directories")
    return cleared


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - Reset - %(levelname)s - %(message)s')
    reset_cluster(server_count=env_int("SERVER_COUNT", DEFAULT_SERVER_COUNT))
