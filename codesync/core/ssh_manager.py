"""
SSH connection manager and connectivity probe

The probe has to agree with the `ssh` that rsync runs, so it reads the same
~/.ssh/config and known_hosts. rsync always passes `-p PORT` and `user@host`
(and `-i KEY` when given), which take precedence over the config file.
"""
from pathlib import Path
import socket
from typing import Optional

import paramiko

from ..config import RemoteEndpoint
from ..utils.logging import log, vlog, error

CONNECT_TIMEOUT = 10
SSH_CONFIG_PATH = Path("~/.ssh/config")

# StrictHostKeyChecking values that let ssh accept an unknown host key
_ACCEPT_NEW_KEYS = {"no", "off", "accept-new"}


def lookup_ssh_config(host: str, path: Optional[Path] = None) -> dict:
    """ssh_config options for *host*; empty when there is no config file."""
    cfg_path = (path or SSH_CONFIG_PATH).expanduser()
    if not cfg_path.is_file():
        return {}
    return paramiko.SSHConfig.from_path(str(cfg_path)).lookup(host)


class SSHManager:
    """
    Wraps a paramiko SSHClient for one endpoint.
    Only key-based / agent auth is used, the same way rsync's ssh will log in.
    """

    def __init__(self, endpoint: RemoteEndpoint, timeout: float = CONNECT_TIMEOUT,
                 ssh_config_path: Optional[Path] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.ssh_config_path = ssh_config_path
        self._ssh: Optional[paramiko.SSHClient] = None

    # ── connection ─────────────────────────────────────────────────────────

    def connect_kwargs(self, host_config: dict) -> dict:
        ep = self.endpoint
        hostname = host_config.get("hostname", ep.host)
        kw: dict = dict(hostname=hostname, port=ep.port, username=ep.user,
                        timeout=self.timeout, banner_timeout=self.timeout,
                        auth_timeout=self.timeout)

        keys = [str(ep.key_path)] if ep.key_path else []
        for f in host_config.get("identityfile", []):
            p = Path(f).expanduser()
            if p.is_file() and str(p) not in keys:
                keys.append(str(p))
        if keys:
            kw["key_filename"] = keys

        proxy = host_config.get("proxycommand")
        jump = host_config.get("proxyjump")
        if proxy and proxy.lower() != "none":
            kw["sock"] = paramiko.ProxyCommand(proxy)
        elif jump and jump.lower() != "none":
            kw["sock"] = paramiko.ProxyCommand(f"ssh -W {hostname}:{ep.port} {jump}")
        return kw

    def connect(self):
        if self._ssh:
            return
        host_config = lookup_ssh_config(self.endpoint.host, self.ssh_config_path)
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if host_config.get("stricthostkeychecking", "").lower() in _ACCEPT_NEW_KEYS:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        else:
            # ssh in batch mode refuses unknown hosts too
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        try:
            client.connect(**self.connect_kwargs(host_config))
        except Exception:
            client.close()
            raise
        self._ssh = client

    def disconnect(self):
        if self._ssh:
            self._ssh.close()
        self._ssh = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc):
        self.disconnect()

    # ── raw exec ────────────────────────────────────────────────────────────

    def exec(self, cmd: str, timeout: Optional[float] = None) -> int:
        """Run a command and return its exit status."""
        self.connect()
        _, stdout, _ = self._ssh.exec_command(cmd, timeout=timeout or self.timeout)
        return stdout.channel.recv_exit_status()


def probe_connection(endpoint: RemoteEndpoint, timeout: float = CONNECT_TIMEOUT) -> bool:
    """True if we can log in to the endpoint and run a trivial command."""
    log(f"Testing SSH connection to {endpoint.target}:{endpoint.port}...")
    try:
        with SSHManager(endpoint, timeout=timeout) as mgr:
            rc = mgr.exec("exit 0")
    except (paramiko.SSHException, socket.error, EOFError) as exc:
        error(f"SSH connection failed: {exc}")
        return False
    if rc != 0:
        vlog(f"[SSH] remote shell exited {rc}")
        error("SSH connection failed")
        return False
    log("SSH connection successful")
    return True
