"""
File and environment utilities
"""
import os
import shutil
from pathlib import Path
from typing import Optional


def command_exists(name: str) -> bool:
    """True if an executable called *name* is on PATH."""
    return shutil.which(name) is not None


def expand_path(value: Optional[str]) -> Optional[Path]:
    """Expand ~ and environment variables; None and '' stay None."""
    if not value:
        return None
    return Path(os.path.expandvars(os.path.expanduser(str(value))))
