"""
File transfer via rsync over ssh
"""
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from ..config import RemoteEndpoint
from ..utils.logging import vlog

RSYNC = "rsync"
SSH = "ssh"

# shell convention for "command not found / could not be run"
EXIT_NOT_RUN = 127


@dataclass(frozen=True)
class TransferOptions:
    compress: bool = False
    delete: bool = False
    excludes: tuple = field(default_factory=tuple)
    verbose: bool = False
    dry_run: bool = False
    # discard rsync output (watch mode); stderr is still captured for reporting
    quiet: bool = False


@dataclass(frozen=True)
class TransferOutcome:
    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        last = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
        return f"exit status {self.returncode}" + (f": {last}" if last else "")


def ssh_command(endpoint: RemoteEndpoint) -> str:
    """The remote-shell string handed to rsync's -e option."""
    parts = [SSH, "-p", str(endpoint.port)]
    if endpoint.key_path:
        parts += ["-i", str(endpoint.key_path)]
    return shlex.join(parts)


def build_command(source_root: Path, destination: RemoteEndpoint,
                  options: TransferOptions) -> list[str]:
    """
    rsync -a [--compress] [--dry-run] --verbose|--quiet [--delete]
          --progress --human-readable --exclude=… -e 'ssh …' SRC/ DEST/
    """
    cmd = [RSYNC, "-a"]
    if options.compress:
        cmd.append("--compress")
    if options.dry_run:
        cmd.append("--dry-run")
    cmd.append("--verbose" if options.verbose else "--quiet")
    if options.delete:
        cmd.append("--delete")
    cmd += ["--progress", "--human-readable"]
    for pattern in options.excludes:
        cmd.append(f"--exclude={pattern}")
    cmd += ["-e", ssh_command(destination)]
    cmd += [f"{str(source_root).rstrip('/')}/", destination.destination]
    return cmd


class RsyncTransfer:
    """Runs one rsync invocation per call and reports its exit status."""

    def build_command(self, source_root: Path, destination: RemoteEndpoint,
                      options: TransferOptions) -> list[str]:
        return build_command(source_root, destination, options)

    def execute(self, source_root: Path, destination: RemoteEndpoint,
                options: TransferOptions) -> TransferOutcome:
        cmd = self.build_command(source_root, destination, options)
        vlog(f"[rsync] {shlex.join(cmd)}")
        try:
            if options.quiet:
                proc = subprocess.run(cmd, stdout=subprocess.DEVNULL,
                                      stderr=subprocess.PIPE, text=True,
                                      errors="replace")
                return TransferOutcome(proc.returncode, proc.stderr or "")
            proc = subprocess.run(cmd)
            return TransferOutcome(proc.returncode)
        except OSError as exc:
            return TransferOutcome(EXIT_NOT_RUN, str(exc))
