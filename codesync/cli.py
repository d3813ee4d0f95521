#!/usr/bin/env python3
"""
codesync  —  Mirror a local code tree to a remote server over SSH
================================================================

Runs rsync once, or with --watch keeps polling the local tree and
re-syncs whenever something changed.

Settings come from (lowest precedence first) the global config.yaml,
the nearest .codesync project file, then the command line.

Run 'codesync --help' for the option list.
"""
import argparse
import shlex
import signal
import sys
from pathlib import Path

from codesync import config as _cfg
from codesync.config import ConfigError
from codesync.core.scheduler import InitialSyncError, SyncScheduler
from codesync.core.ssh_manager import probe_connection
from codesync.operations.snapshot import SnapshotError
from codesync.operations.transfer import RSYNC, SSH, RsyncTransfer
from codesync.utils.file_utils import command_exists, expand_path
from codesync.utils.logging import BLUE, colorize, error, header, log, set_verbose, vlog

EXAMPLES = """\
Examples:
  codesync -s myserver.com -r /var/www/myapp
  codesync --server 192.168.1.100 --user deploy --remote-path /opt/app --dry-run
  codesync -s myserver.com -r /home/user/project -e '*.pdf' -e 'temp/'
  codesync -s myserver.com -r /var/www/myapp --watch
  codesync -s myserver.com -r /var/www/myapp --watch --interval 5
"""


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit 1 like every other validation failure."""

    def error(self, message):
        error(message)
        self.print_usage(sys.stderr)
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="codesync",
        description=colorize("Code Sync Tool", BLUE)
        + " - synchronize local code to a remote server over SSH",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    # store_true flags default to None so an absent flag never overrides a profile
    parser.add_argument("-s", "--server", metavar="SERVER",
                        help="Remote server hostname or IP")
    parser.add_argument("-u", "--user", metavar="USER",
                        help=f"Remote username (default: {_cfg.DEFAULT_USER})")
    parser.add_argument("-r", "--remote-path", metavar="PATH",
                        help="Remote directory path")
    parser.add_argument("-l", "--local-path", metavar="PATH",
                        help="Local directory path (default: current directory)")
    parser.add_argument("-p", "--port", metavar="PORT",
                        help=f"SSH port (default: {_cfg.DEFAULT_PORT})")
    parser.add_argument("-k", "--key-path", metavar="PATH",
                        help="SSH private key path (default: ssh-agent / ~/.ssh keys)")
    parser.add_argument("-e", "--exclude", metavar="PATTERN", action="append", default=[],
                        help="Additional exclude pattern (repeatable)")
    parser.add_argument("-n", "--dry-run", action="store_true", default=None,
                        help="Show what would be transferred without actually doing it")
    parser.add_argument("-v", "--verbose", action="store_true", default=None,
                        help="Verbose output")
    parser.add_argument("-d", "--delete", action="store_true", default=None,
                        help="Delete files on remote that don't exist locally")
    parser.add_argument("-c", "--compress", action="store_true", default=None,
                        help="Enable compression during transfer")
    parser.add_argument("-w", "--watch", action="store_true", default=None,
                        help="Watch for file changes and auto-sync")
    parser.add_argument("-i", "--interval", metavar="SECONDS",
                        help=f"Watch interval in seconds (default: {_cfg.DEFAULT_INTERVAL})")
    parser.add_argument("--profile", metavar="NAME", default="default",
                        help="Profile to use from the .codesync file (default: default)")
    parser.add_argument("--config", metavar="FILE",
                        help="Project config file (default: nearest .codesync)")
    parser.add_argument("--no-default-excludes", dest="default_excludes",
                        action="store_false", default=None,
                        help="Do not apply the built-in exclude list")
    return parser


def _cli_settings(args) -> dict:
    return {
        "server": args.server,
        "user": args.user,
        "remote_root": args.remote_path,
        "local_root": args.local_path,
        "port": args.port,
        "ssh_key": args.key_path,
        "dry_run": args.dry_run,
        "verbose": args.verbose,
        "delete": args.delete,
        "compress": args.compress,
        "watch": args.watch,
        "interval": args.interval,
        "default_excludes": args.default_excludes,
    }


def load_config(args) -> _cfg.SyncConfig:
    """Layer global config, project profile and CLI flags into a SyncConfig."""
    global_defaults = _cfg.load_global_config().get("defaults") or {}

    if args.config:
        project_file = Path(args.config).expanduser()
        if not project_file.is_file():
            raise ConfigError(f"Config file does not exist: {project_file}")
    else:
        project_file = _cfg.find_project_file()

    profile: dict = {}
    if project_file is not None:
        vlog(f"[config] Using {project_file}")
        profile = _cfg.get_profile(_cfg.load_yaml_file(project_file), args.profile or "default")
        # relative roots in the file mean "relative to the file", wherever we run from
        local_root = expand_path(profile.get("local_root"))
        if local_root is not None and not local_root.is_absolute():
            profile["local_root"] = str(project_file.resolve().parent / local_root)

    cli = _cli_settings(args)
    # a CLI remote path replaces the profile's, including its base_remote prefix
    if cli["remote_root"]:
        profile = {k: v for k, v in profile.items() if k != "base_remote"}
    settings = _cfg.resolve_settings(global_defaults, profile, cli)
    return _cfg.build_config(settings, cli_excludes=args.exclude)


def print_banner(cfg: _cfg.SyncConfig):
    ep = cfg.endpoint
    header("=== Code Sync Configuration ===")
    print(f"Local path:  {cfg.local_path}")
    print(f"Remote:      {ep}")
    print(f"SSH port:    {ep.port}")
    print(f"SSH key:     {ep.key_path or 'default'}")
    print(f"Dry run:     {str(cfg.dry_run).lower()}")
    print(f"Delete:      {str(cfg.delete).lower()}")
    print(f"Compress:    {str(cfg.compress).lower()}")
    print(f"Watch mode:  {str(cfg.watch).lower()}")
    if cfg.watch:
        print(f"Interval:    {cfg.interval}s")
    print(flush=True)


def _install_stop_handlers(scheduler: SyncScheduler) -> dict:
    """SIGINT/SIGTERM end the watch loop after the current tick."""
    previous = {}

    def _handler(signum, frame):
        scheduler.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


def _restore_handlers(previous: dict):
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def run_watch(scheduler: SyncScheduler) -> int:
    previous = _install_stop_handlers(scheduler)
    try:
        scheduler.run_watch()
    except InitialSyncError:
        return 1
    except SnapshotError as exc:
        error(str(exc))
        return 1
    finally:
        _restore_handlers(previous)
    return 0


def run_once(scheduler: SyncScheduler, cfg: _cfg.SyncConfig) -> int:
    if cfg.dry_run:
        log("DRY RUN - No files will be transferred")
    log("Starting synchronization...")
    cmd = scheduler.executor.build_command(cfg.local_path, cfg.endpoint,
                                           scheduler.transfer_options())
    print(f"Command: {shlex.join(cmd)}")
    print(flush=True)

    outcome = scheduler.run_once()
    if outcome.ok:
        log("Synchronization completed successfully")
        return 0
    error(f"Synchronization failed ({outcome.describe()})")
    return 1


def main(argv=None) -> int:
    """CLI entry point for codesync; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    set_verbose(bool(args.verbose))

    try:
        cfg = load_config(args)
    except ConfigError as exc:
        error(str(exc))
        return 1
    set_verbose(cfg.verbose)

    for tool in (RSYNC, SSH):
        if not command_exists(tool):
            error(f"{tool} is not installed. Please install it first.")
            return 1

    print_banner(cfg)

    if not probe_connection(cfg.endpoint):
        return 1

    scheduler = SyncScheduler(cfg, RsyncTransfer())
    if cfg.watch:
        return run_watch(scheduler)
    return run_once(scheduler, cfg)


if __name__ == "__main__":
    sys.exit(main())
