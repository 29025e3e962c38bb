import pytest

import main
from errors import ProcessLaunchError


def test_params_prints_derived_topology(capsys):
    assert main.main(["params", "--server-count", "8", "--device-count", "1"]) == 0
    out = capsys.readouterr().out
    assert "tolerable_faults=3" in out
    assert "data_fragments=6" in out
    assert "total_nodes=9" in out


def test_params_honours_overrides(capsys):
    assert main.main(["params", "--server-count", "8", "--tolerable-faults", "2"]) == 0
    out = capsys.readouterr().out
    assert "tolerable_faults=2" in out
    assert "data_fragments=7" in out


@pytest.mark.parametrize("argv", [
    ["params", "--server-count", "0"],
    ["params", "--server-count", "2", "--data-fragments", "0"],
])
def test_configuration_errors_exit_nonzero(argv):
    assert main.main(argv) == 1


def test_no_command_prints_help(capsys):
    assert main.main([]) == 1
    assert "bootstrap" in capsys.readouterr().out


def test_launch_failure_returns_command_status(monkeypatch, capsys):
    def failing_sweep(launcher, work_dir):
        raise ProcessLaunchError(["frugalos", "create"], 42, "disk full")

    monkeypatch.setattr(main, "run_sweep", failing_sweep)
    assert main.main(["sweep", "--binary", "frugalos", "--work-dir", "/tmp/x"]) == 42
    assert "disk full" in capsys.readouterr().err


def test_bootstrap_passes_options(monkeypatch, tmp_path):
    calls = []

    def fake_start_cluster(topology, binary, work_dir, **kwargs):
        calls.append((topology, binary, work_dir, kwargs))
        return []

    monkeypatch.setattr(main, "start_cluster", fake_start_cluster)
    assert main.main([
        "bootstrap", "--server-count", "4", "--binary", "bin/frugalos", "--work-dir", str(tmp_path),
        "--rpc-port", "15000", "--no-http-check", "--no-stage",
    ]) == 0

    topology, binary, work_dir, kwargs = calls[0]
    assert topology.server_count == 4
    assert binary == "bin/frugalos"
    assert work_dir == str(tmp_path)
    assert kwargs["rpc_port"] == 15000
    assert kwargs["wait_for_http"] is False
    assert kwargs["stage"] is False


def test_reset_command(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "reset_cluster", lambda *args: calls.append(args))
    assert main.main(["reset", "--work-dir", "/tmp/w", "--server-count", "3"]) == 0
    assert calls == [("/tmp/w", 3, 14278, 3100)]


def test_environment_supplies_missing_options(monkeypatch, capsys):
    monkeypatch.setenv("SERVER_COUNT", "8")
    monkeypatch.setenv("TOLERABLE_FAULTS", "2")
    assert main.main(["params"]) == 0
    out = capsys.readouterr().out
    assert "server_count=8" in out
    assert "tolerable_faults=2" in out

    assert main.main(["params", "--server-count", "2", "--tolerable-faults", "1"]) == 0
    assert "server_count=2" in capsys.readouterr().out


@pytest.mark.parametrize("name", ["SERVER_COUNT", "DEVICE_COUNT", "DATA_FRAGMENTS"])
def test_non_integer_environment_is_a_configuration_error(monkeypatch, name):
    monkeypatch.setenv(name, "abc")
    assert main.main(["params"]) == 1


def test_reset_defaults_server_count_from_environment(monkeypatch):
    calls = []
    monkeypatch.setenv("SERVER_COUNT", "5")
    monkeypatch.setattr(main, "reset_cluster", lambda *args: calls.append(args))
    assert main.main(["reset", "--work-dir", "/tmp/w"]) == 0
    assert calls == [("/tmp/w", 5, 14278, 3100)]


def test_unremovable_sweep_dir_exits_cleanly(monkeypatch, tmp_path):
    (tmp_path / "srv1").mkdir()

    def refuse(path, *args, **kwargs):
        raise PermissionError(13, "Permission denied", path)

    monkeypatch.setattr("cleanup_ports.shutil.rmtree", refuse)
    assert main.main(["sweep", "--binary", "frugalos", "--work-dir", str(tmp_path)]) == 1
