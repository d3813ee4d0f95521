"""
Configuration for codesync

Settings are layered, lowest precedence first:
  built-in defaults → global config.yaml → project .codesync profile → CLI flags
and frozen into a SyncConfig that is passed explicitly to everything else.
"""
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .utils.file_utils import expand_path
from .utils.ignore_patterns import DEFAULT_EXCLUDES, merge_patterns

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS
# ══════════════════════════════════════════════════════════════════════════════

DEFAULT_USER = "ubuntu"
DEFAULT_PORT = 22
DEFAULT_LOCAL_PATH = "."
DEFAULT_INTERVAL = 2

PROJECT_FILE = ".codesync"


class ConfigError(ValueError):
    """Invalid or incomplete configuration; fatal before any network activity."""


@dataclass(frozen=True)
class RemoteEndpoint:
    host: str
    remote_path: str
    user: str = DEFAULT_USER
    port: int = DEFAULT_PORT
    # None means ssh-agent / ~/.ssh/id_* defaults
    key_path: Optional[Path] = None

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}"

    @property
    def destination(self) -> str:
        """rsync destination spec; trailing slash syncs directory contents."""
        return f"{self.target}:{self.remote_path.rstrip('/')}/"

    def __str__(self):
        return f"{self.target}:{self.remote_path}"


@dataclass(frozen=True)
class SyncConfig:
    endpoint: RemoteEndpoint
    local_path: Path
    excludes: tuple = field(default_factory=tuple)
    dry_run: bool = False
    verbose: bool = False
    delete: bool = False
    compress: bool = False
    watch: bool = False
    interval: int = DEFAULT_INTERVAL


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL CONFIG FILE  ── $XDG_CONFIG_HOME/codesync/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for codesync."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "codesync"
    if os.name == "nt":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "codesync"
    return Path.home() / ".config" / "codesync"


def load_global_config() -> dict:
    """Load global config; a missing file means no global defaults."""
    cfg_path = get_global_config_dir() / "config.yaml"
    if not cfg_path.is_file():
        return {}
    return load_yaml_file(cfg_path)


# ══════════════════════════════════════════════════════════════════════════════
#  PROJECT CONFIG FILE  ── .codesync (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def find_project_file(start: Optional[Path] = None) -> Optional[Path]:
    """
    Search upward from *start* (default: cwd) for a .codesync YAML file.
    Returns the Path if found, or None if no .codesync exists in any parent.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / PROJECT_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_yaml_file(path: Path) -> dict:
    """Parse a YAML config file and return its contents as a dict."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def get_profile(data: dict, profile_name: str = "default") -> dict:
    """
    Extract a named profile from a .codesync or config.yaml data dict.
    Falls back to the first profile if the named one is not found.
    Returns a flat profile dict merged with top-level defaults.
    """
    defaults = data.get("defaults") or {}
    profiles = data.get("profiles") or []
    if not isinstance(defaults, dict):
        raise ConfigError("'defaults' must be a mapping of setting: value")
    if not isinstance(profiles, list) or not all(isinstance(p, dict) for p in profiles):
        raise ConfigError("'profiles' must be a list of mappings (each with a name)")
    if not profiles:
        return dict(defaults)
    profile = next((p for p in profiles if p.get("name") == profile_name), None)
    if profile is None:
        profile = profiles[0]
    merged = dict(defaults)
    merged.update(profile)
    return merged


def resolve_settings(*layers: dict) -> dict:
    """Merge setting dicts left to right; None values never override."""
    merged: dict = {}
    for layer in layers:
        for key, value in (layer or {}).items():
            if value is not None:
                merged[key] = value
    return merged


# ══════════════════════════════════════════════════════════════════════════════
#  VALIDATION  ── settings dict → SyncConfig
# ══════════════════════════════════════════════════════════════════════════════

def _positive_int(value, what: str) -> int:
    if isinstance(value, bool) or not re.fullmatch(r"[0-9]+", str(value).strip()):
        raise ConfigError(f"Invalid {what}: {value} (must be a positive integer)")
    n = int(str(value).strip())
    if n < 1:
        raise ConfigError(f"Invalid {what}: {value} (must be a positive integer)")
    return n


def _remote_root(settings: dict) -> Optional[str]:
    rr = settings.get("remote_root")
    if not rr:
        return None
    rr = str(rr)
    base = str(settings.get("base_remote", "")).rstrip("/")
    if base and not rr.startswith("/"):
        rr = f"{base}/{rr}"
    return rr


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def build_config(settings: dict, cli_excludes=None) -> SyncConfig:
    """
    Turn merged settings into a validated SyncConfig.
    Supports keys: server, user (or username), port, ssh_key, local_root,
                   remote_root, base_remote, exclude, default_excludes,
                   dry_run, verbose, delete, compress, watch, interval.
    Raises ConfigError on the first problem found.
    """
    interval = _positive_int(settings.get("interval", DEFAULT_INTERVAL), "interval")

    server = settings.get("server")
    remote_root = _remote_root(settings)
    if not server or not remote_root:
        raise ConfigError("Server and remote path are required")

    port = _positive_int(settings.get("port", DEFAULT_PORT), "port")
    if port > 65535:
        raise ConfigError(f"Invalid port: {port} (must be between 1 and 65535)")

    local_path = expand_path(settings.get("local_root") or DEFAULT_LOCAL_PATH)
    if not local_path.is_dir():
        raise ConfigError(f"Local path does not exist: {local_path}")

    key_path = expand_path(settings.get("ssh_key"))
    if key_path is not None and not key_path.is_file():
        raise ConfigError(f"SSH key file does not exist: {key_path}")

    watch = bool(settings.get("watch", False))
    dry_run = bool(settings.get("dry_run", False))
    if watch and dry_run:
        raise ConfigError("Watch mode cannot be used with dry-run")

    defaults = DEFAULT_EXCLUDES if settings.get("default_excludes", True) else ()
    excludes = merge_patterns(defaults, _as_list(settings.get("exclude")), cli_excludes)

    user = settings.get("user") or settings.get("username") or DEFAULT_USER
    endpoint = RemoteEndpoint(
        host=str(server),
        remote_path=remote_root,
        user=str(user),
        port=port,
        key_path=key_path,
    )
    return SyncConfig(
        endpoint=endpoint,
        local_path=local_path.resolve(),
        excludes=tuple(excludes),
        dry_run=dry_run,
        verbose=bool(settings.get("verbose", False)),
        delete=bool(settings.get("delete", False)),
        compress=bool(settings.get("compress", False)),
        watch=watch,
        interval=interval,
    )
