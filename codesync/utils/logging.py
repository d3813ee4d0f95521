"""
Logging utilities for codesync
"""
import os
import sys
from datetime import datetime

_verbose = False

RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
BLUE = "\033[0;34m"
NC = "\033[0m"


def set_verbose(verbose: bool):
    """Set the verbose flag"""
    global _verbose
    _verbose = verbose


def _use_color(stream) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def colorize(text: str, color: str, stream=None) -> str:
    """Wrap text in an ANSI colour when the target stream is a terminal."""
    if _use_color(stream or sys.stdout):
        return f"{color}{text}{NC}"
    return text


def log(msg: str):
    """Log a message with timestamp"""
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"{colorize(f'[{ts}]', GREEN)} {msg}", flush=True)


def vlog(msg: str):
    """Log a verbose message (only if verbose mode is enabled)"""
    if _verbose:
        log(msg)


def warn(msg: str):
    """Log a warning message"""
    print(f"{colorize('[WARNING]', YELLOW)} {msg}", flush=True)


def error(msg: str):
    """Log an error message to stderr"""
    print(f"{colorize('[ERROR]', RED, sys.stderr)} {msg}", file=sys.stderr, flush=True)


def header(msg: str):
    print(colorize(msg, BLUE), flush=True)
