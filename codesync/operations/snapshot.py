"""
Local tree fingerprinting (change detection for watch mode)
"""
import hashlib
import os
from dataclasses import dataclass
from pathlib import Path

from ..utils.ignore_patterns import ExcludeRule, compile_patterns, matches_any


def _as_rules(patterns) -> list[ExcludeRule]:
    """Accept raw pattern strings, compiled rules, or a mix of both."""
    patterns = list(patterns or ())
    rules = [p for p in patterns if isinstance(p, ExcludeRule)]
    return rules + compile_patterns(p for p in patterns if isinstance(p, str))


class SnapshotError(OSError):
    """The sync root itself could not be opened."""


@dataclass(frozen=True)
class TreeFingerprint:
    """Order-independent digest of (path, mtime, size) for every retained file."""
    digest: str
    file_count: int = 0

    def __str__(self):
        return self.digest[:12]


def list_files(root: Path, patterns=()) -> list[tuple[str, int, int]]:
    """
    Returns [(rel_posix, mtime_epoch_seconds, size)] for every regular file
    under *root*. Excluded directories are pruned, symlinks are not followed,
    and entries that cannot be read are skipped.
    """
    rules = _as_rules(patterns)
    result: list[tuple[str, int, int]] = []
    stack = [""]
    while stack:
        rel_dir = stack.pop()
        try:
            with os.scandir(os.path.join(root, rel_dir)) as it:
                entries = list(it)
        except OSError as exc:
            if not rel_dir:
                raise SnapshotError(f"Cannot open {root}: {exc}") from exc
            continue
        for entry in entries:
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not matches_any(rel, True, rules):
                        stack.append(rel)
                    continue
                if not entry.is_file(follow_symlinks=False):
                    continue
                if matches_any(rel, False, rules):
                    continue
                st = entry.stat(follow_symlinks=False)
            except OSError:
                continue
            result.append((rel, int(st.st_mtime), st.st_size))
    return result


def compute_fingerprint(root: Path, patterns=()) -> TreeFingerprint:
    """Hash the sorted file list so enumeration order never matters."""
    files = sorted(list_files(root, patterns))
    h = hashlib.sha256()
    for rel, mtime, size in files:
        h.update(f"{rel}\0{mtime}\0{size}\n".encode("utf-8", errors="surrogateescape"))
    return TreeFingerprint(digest=h.hexdigest(), file_count=len(files))
