import os
import re
import socket
import subprocess
from unittest import mock

import pytest

from tntwire.box import Box, BoxOptions, PortAlreadyInUse, new_box
from tntwire.errors import TarantoolError

HAPPY = ["STARTING", "BINDING", "READY", "RUNNING"]


def _version_output(text):
    return subprocess.CompletedProcess(["tarantool", "--version"], 0, stdout=text, stderr="")


class _Launcher:
    """Stands in for subprocess.Popen; replays status messages to the notify socket."""

    def __init__(self, *status_runs):
        self.status_runs = list(status_runs)
        self.processes = []

    def __call__(self, args, cwd=None, **kwargs):
        statuses = self.status_runs.pop(0) if len(self.status_runs) > 1 else self.status_runs[0]
        process = _FakeProcess(args, cwd, statuses)
        self.processes.append(process)
        return process


class _FakeProcess:
    def __init__(self, args, cwd, statuses):
        self.args = args
        self.cwd = cwd
        self.killed = False
        with open(args[1]) as handle:
            self.script = handle.read()
        path = re.search(r'local path = "([^"]+)"', self.script).group(1)
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
            for status in statuses:
                sock.sendto(status.encode(), path)

    def poll(self):
        return 0

    def kill(self):
        self.killed = True

    def wait(self):
        return 0


def _patched(launcher, version_text="Tarantool 2.10.4-0-gabc\nTarget: Linux\n"):
    return (
        mock.patch("subprocess.run", return_value=_version_output(version_text)),
        mock.patch("subprocess.Popen", side_effect=launcher),
    )


def test_version_parsed_and_cached(tmp_path):
    box = Box(root=str(tmp_path), listen="127.0.0.1:8000", port=8000)
    with mock.patch(
        "subprocess.run", return_value=_version_output("Tarantool 2.10.4-0-gabc\n")
    ) as run:
        assert box.version() == "2.10.4"
        assert box.version() == "2.10.4"
    assert run.call_count == 1
    assert run.call_args[0][0] == ["tarantool", "--version"]


def test_version_skips_unparsable_lines(tmp_path):
    box = Box(root=str(tmp_path), listen="127.0.0.1:8000", port=8000)
    output = "Something else\nTarantool dev\nTarantool 1.6.9-1\n"
    with mock.patch("subprocess.run", return_value=_version_output(output)):
        assert box.version() == "1.6.9"


def test_version_unknown(tmp_path):
    box = Box(root=str(tmp_path), listen="127.0.0.1:8000", port=8000)
    with mock.patch("subprocess.run", return_value=_version_output("nothing useful\n")):
        with pytest.raises(TarantoolError, match="unknown Tarantool version"):
            box.version()


def test_fresh_box_is_stopped(tmp_path):
    box = Box(root=str(tmp_path), listen="127.0.0.1:8000", port=8000)
    assert box.is_stopped()
    assert box.addr() == "127.0.0.1:8000"


def test_new_box_starts_and_closes():
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        box = new_box("box.info()", BoxOptions(port=3301))
        try:
            assert box.port == 3301
            assert box.addr() == "127.0.0.1:3301"
            assert not box.is_stopped()
            script = launcher.processes[0].script
            assert "box.info()" in script
            assert 'listen = "127.0.0.1:3301"' in script
            assert "memtx_dir =" in script
            assert f'{box.root}/snap/' in script
            assert launcher.processes[0].args[0] == "tarantool"
            assert not os.path.exists(box.notify_sock)
        finally:
            box.close()
    assert box.is_stopped()
    assert launcher.processes[0].killed
    assert not os.path.exists(box.root)


def test_old_version_uses_old_option_names():
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher, "Tarantool 1.6.8-1\n")
    with run_patch, popen_patch:
        with new_box("", BoxOptions(port=3301)) as box:
            assert box.version() == "1.6.8"
            assert "snap_dir =" in box.init_lua
            assert "logger =" in box.init_lua
            assert "memtx_dir =" not in box.init_lua
            script = launcher.processes[0].script
    assert "snap_dir =" in script
    assert "logger =" in script
    assert "memtx_dir =" not in script


def test_host_gets_port_separator():
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with new_box("", BoxOptions(host="localhost", port=3301)) as box:
            assert box.addr() == "localhost:3301"
            assert 'listen = "localhost:3301"' in launcher.processes[0].script


def test_bind_failure_exhausts_ports():
    launcher = _Launcher(["STARTING", "BINDING", "failed to bind, called on fd -1"])
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with pytest.raises(TarantoolError, match="can't bind any port from 3301 to 3302"):
            new_box("", BoxOptions(port_min=3301, port_max=3302))
    assert len(launcher.processes) == 2
    assert all(process.killed for process in launcher.processes)


def test_second_port_used_when_first_fails():
    launcher = _Launcher(["BINDING", "failed to bind, called on fd -1"], HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with new_box("", BoxOptions(port_min=3301, port_max=3302)) as box:
            assert box.port == 3302
            assert 'listen = "127.0.0.1:3302"' in launcher.processes[1].script


def test_unexpected_status_is_reported():
    launcher = _Launcher(["BINDING", "BROKEN"])
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with pytest.raises(TarantoolError, match="Box status is 'BROKEN', not READY") as info:
            new_box("", BoxOptions(port=3301))
    assert not isinstance(info.value, PortAlreadyInUse)


def test_process_exit_before_running_means_port_in_use():
    launcher = _Launcher(["STARTING"])
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with pytest.raises(TarantoolError, match="can't bind any port from 3301 to 3301"):
            new_box("", BoxOptions(port=3301))


def test_restart_with_lua_transform():
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with new_box("", BoxOptions(port=3301)) as box:
            box.stop()
            assert box.is_stopped()
            box.start(lambda lua: lua + "\n-- marker\n")
            assert not box.is_stopped()
            assert len(launcher.processes) == 2
            assert launcher.processes[1].script.endswith("-- marker\n")
            assert "-- marker" not in box.init_lua


def test_start_when_running_does_nothing():
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with new_box("", BoxOptions(port=3301)) as box:
            box.start()
            assert not box.is_stopped()
            assert box.addr() == "127.0.0.1:3301"
            assert len(launcher.processes) == 1


def test_work_dir_is_process_cwd(tmp_path):
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with new_box("", BoxOptions(port=3301, work_dir=str(tmp_path))):
            assert launcher.processes[0].cwd == str(tmp_path)


def test_log_dir_sets_log_path(tmp_path, capsys):
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with new_box("", BoxOptions(port=3301, log_dir=str(tmp_path))) as box:
            expected = '"{}"'.format(os.path.join(str(tmp_path), os.path.basename(box.root)))
            assert f"log = {expected}," in launcher.processes[0].script
    assert "Tarantool log path:" in capsys.readouterr().out


def test_options_are_not_mutated():
    options = BoxOptions(port=3301)
    launcher = _Launcher(HAPPY)
    run_patch, popen_patch = _patched(launcher)
    with run_patch, popen_patch:
        with new_box("", options):
            pass
    assert options == BoxOptions(port=3301)