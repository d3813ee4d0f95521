"""Utilities (logging, exclude patterns, file utilities)"""
from .logging import log, vlog, warn, error, set_verbose
from .ignore_patterns import DEFAULT_EXCLUDES, compile_patterns, merge_patterns, is_excluded
from .file_utils import command_exists, expand_path

__all__ = [
    "log", "vlog", "warn", "error", "set_verbose",
    "DEFAULT_EXCLUDES", "compile_patterns", "merge_patterns", "is_excluded",
    "command_exists", "expand_path",
]
