"""Start and stop a throwaway server instance, mainly for tests."""

from __future__ import annotations

import os
import re
import shutil
import socket
import subprocess
import tempfile
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable

from .errors import TarantoolError

_VERSION_PREFIX = "Tarantool "
_VERSION_RE = re.compile(r"\s*([+-]?\d+)\.([+-]?\d+)\.([+-]?\d+)")
_BIND_FAILURE = "failed to bind, called on fd -1"
_READY_TIMEOUT = 0.05
_POLL_INTERVAL = 0.1

_CFG_LUA = """
			box.cfg{
				memtx_dir = "{root}/snap/",
				wal_dir = "{root}/wal/",
				log = {log},
			}
		"""

_BOOT_LUA = """
			sendstatus("STARTING")

			box.once('guest:read_universe', function()
				box.schema.user.grant('guest', 'read', 'universe')
			end)

			sendstatus("BINDING")

			box.cfg{
				listen = "{host}{port}",
			}

			sendstatus("READY")
		"""

_READY_LUA = """
			sendstatus("RUNNING")
		"""

_NOTIFY_LUA = """
			local sendstatus = function(status)
				local path = "{notify_sock_path}"
				if path ~= "" and path ~= "{" .. "notify_sock_path" .. "}" then
					local socket = require('socket')
					local sock = socket("AF_UNIX", "SOCK_DGRAM", 0)
					sock:sysconnect("unix/", path)
					if sock ~= nil then
						sock:write(status)
						sock:close()
					end
				end
			end

			"""


class PortAlreadyInUse(TarantoolError):
    """The instance could not bind its listening port."""


@dataclass
class BoxOptions:
    """Where and how to start an instance.

    A non-zero ``port`` pins the port; otherwise ports from ``port_min`` to
    ``port_max`` are tried in order.
    """

    host: str = ""
    port: int = 0
    port_min: int = 0
    port_max: int = 0
    work_dir: str = ""
    log_dir: str = ""
    log_name_prefix: str = ""
    executable: str = "tarantool"


class Box:
    """A server process running from a temporary directory."""

    def __init__(
        self,
        root: str,
        listen: str,
        port: int,
        work_dir: str = "",
        init_lua: str = "",
        notify_sock: str = "",
        executable: str = "tarantool",
    ) -> None:
        self.root = root
        self.listen = listen
        self.port = port
        self.work_dir = work_dir
        self.init_lua = init_lua
        self.notify_sock = notify_sock
        self.executable = executable
        self._process: subprocess.Popen | None = None
        self._stopped = threading.Event()
        self._stopped.set()
        self._lock = threading.Lock()
        self._closed = False
        self._version = ""

    def __enter__(self) -> Box:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def start(self, lua_transform: Callable[[str], str] | None = None) -> None:
        """Start the process and wait until it reports it is running.

        ``lua_transform`` may rewrite the init script before it is written.
        Raises PortAlreadyInUse if the port could not be bound.
        """
        if not self.is_stopped():
            return
        self._stopped.clear()

        init_lua = self.init_lua if lua_transform is None else lua_transform(self.init_lua)
        init_file = os.path.join(self.root, "init.lua")

        try:
            Path(init_file).write_text(init_lua)
            with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
                sock.bind(self.notify_sock)
                try:
                    self._process = subprocess.Popen(
                        [self.executable, init_file], cwd=self.work_dir or None
                    )
                    self._await_running(sock)
                finally:
                    try:
                        os.remove(self.notify_sock)
                    except OSError:
                        pass
        except Exception:
            if self._process is None:
                self._stopped.set()
            raise

    def _next_status(self, sock: socket.socket, timeout: float | None) -> str | None:
        if timeout is not None:
            sock.settimeout(timeout)
            try:
                return sock.recv(128).decode("utf-8", errors="replace")
            except (socket.timeout, OSError):
                return None

        sock.settimeout(_POLL_INTERVAL)
        while True:
            try:
                return sock.recv(128).decode("utf-8", errors="replace")
            except socket.timeout:
                process = self._process
                if process is None or process.poll() is not None:
                    return None
            except OSError:
                return None

    def _await_running(self, sock: socket.socket) -> None:
        while True:
            status = self._next_status(sock, None)
            if status is None:
                break
            if status == "RUNNING":
                return
            if status == "BINDING":
                status = self._next_status(sock, _READY_TIMEOUT)
                if status is None:
                    self.close()
                    raise PortAlreadyInUse("port already in use")
                if status != "READY":
                    self.close()
                    if _BIND_FAILURE in status:
                        raise PortAlreadyInUse("port already in use")
                    raise TarantoolError(f"Box status is '{status}', not READY")

        self.close()
        raise PortAlreadyInUse("port already in use")

    def stop(self) -> None:
        """Kill the process, if it is running, and wait for it to exit."""
        with self._lock:
            if self._stopped.is_set():
                return
            process, self._process = self._process, None
            if process is not None:
                process.kill()
                process.wait()
            self._stopped.set()

    def is_stopped(self) -> bool:
        """True if the process is not running."""
        return self._stopped.is_set()

    def close(self) -> None:
        """Stop the process and remove its directory; later calls do nothing."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.stop()
        shutil.rmtree(self.root, ignore_errors=True)

    def addr(self) -> str:
        """The address the instance listens on, as ``host:port``."""
        return self.listen

    def version(self) -> str:
        """Return the server version as ``major.minor.patch``."""
        if self._version:
            return self._version

        completed = subprocess.run(
            [self.executable, "--version"], capture_output=True, text=True, check=True
        )
        for line in completed.stdout.splitlines():
            if not line.startswith(_VERSION_PREFIX):
                continue
            match = _VERSION_RE.match(line[len(_VERSION_PREFIX) :])
            if match is None:
                continue
            major, minor, patch = (int(part) for part in match.groups())
            self._version = f"{major}.{minor}.{patch}"
            break

        if not self._version:
            raise TarantoolError("unknown Tarantool version")
        return self._version


def _build_init_lua(config: str, host: str, port: int, root: str, log_path: str, notify_sock: str) -> str:
    init_lua = _CFG_LUA.replace("{log}", log_path) + _BOOT_LUA
    init_lua = f"{init_lua}\n{config}\n{_READY_LUA}\n"
    init_lua = init_lua.replace("{host}", host)
    init_lua = init_lua.replace("{port}", str(port))
    init_lua = init_lua.replace("{root}", root)
    init_lua = _NOTIFY_LUA + init_lua + "\n\t\t"
    return init_lua.replace("{notify_sock_path}", notify_sock)


def new_box(config: str, options: BoxOptions | None = None) -> Box:
    """Start an instance running ``config`` on the first free port in range."""
    opts = replace(options) if options is not None else BoxOptions()
    if opts.port_min == 0:
        opts.port_min = 8000
    if opts.port_max == 0:
        opts.port_max = 9000
    if opts.port != 0:
        opts.port_min = opts.port
        opts.port_max = opts.port
    if not opts.host:
        opts.host = "127.0.0.1"
    if not opts.host.endswith(":"):
        opts.host += ":"

    for port in range(opts.port_min, opts.port_max + 1):
        tmp_dir = tempfile.mkdtemp(prefix=opts.log_name_prefix or None)
        notify_sock = os.path.join(tmp_dir, "notify.sock")

        log_dir = opts.log_dir or os.environ.get("TNT_LOG_DIR", "")
        log_path = "stderr"
        if log_dir:
            log_path = '"{}"'.format(os.path.join(log_dir, os.path.basename(tmp_dir)))
            print("Tarantool log path:", log_path)

        box = Box(
            root=tmp_dir,
            listen=f"{opts.host}{port}",
            port=port,
            work_dir=opts.work_dir,
            init_lua=_build_init_lua(config, opts.host, port, tmp_dir, log_path, notify_sock),
            notify_sock=notify_sock,
            executable=opts.executable,
        )

        try:
            for sub_dir in ("snap", "wal"):
                os.mkdir(os.path.join(tmp_dir, sub_dir), 0o755)

            if box.version().startswith("1.6"):
                box.init_lua = box.init_lua.replace("memtx_dir =", "snap_dir =")
                box.init_lua = box.init_lua.replace("log =", "logger =")

            box.start()
        except PortAlreadyInUse:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            continue
        except Exception:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise
        return box

    raise TarantoolError(f"can't bind any port from {opts.port_min} to {opts.port_max}")