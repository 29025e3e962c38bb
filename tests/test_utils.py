import json

import pytest

from errors import ClusterEnvironmentError
from utils import format_addr, split_addr, write_json


def test_format_and_split_addr():
    assert format_addr("127.0.0.1", 14278) == "127.0.0.1:14278"
    assert split_addr("127.0.0.1:14278") == ("127.0.0.1", 14278)
    for bad in ("127.0.0.1", ":80", "host:port"):
        with pytest.raises(ValueError):
            split_addr(bad)


def test_write_json_creates_parent(tmp_path):
    path = tmp_path / "work" / "topology.json"
    write_json(str(path), {"b": 1, "a": 2})
    assert json.loads(path.read_text()) == {"a": 2, "b": 1}


def test_write_json_reports_unwritable_target(tmp_path):
    blocker = tmp_path / "work"
    blocker.write_text("not a directory")
    with pytest.raises(ClusterEnvironmentError):
        write_json(str(blocker / "topology.json"), {})
