import json
import os
import socket

from errors import ClusterEnvironmentError


def format_addr(host, port):
    return f"{host}:{port}"


def split_addr(addr):
    """
    Split a host:port string into (host, port).
    """
    host, _, port = addr.rpartition(":")
    if not host or not port.isdigit():
        raise ValueError(f"Invalid address: {addr!r}")
    return host, int(port)


def is_port_open(addr, timeout=1.0):
    """
    Return True if something accepts TCP connections at host:port.
    """
    host, port = split_addr(addr)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def write_json(path, data):
    """
    Write data as pretty JSON, creating the parent directory if needed.
    """
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True)
    except OSError as e:
        raise ClusterEnvironmentError(f"Cannot write {path}: {e}") from e
