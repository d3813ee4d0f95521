"""
Exclude pattern handling (rsync --exclude semantics)

The same compiled rules decide what the change detector looks at and what
rsync is told to skip, so the two never disagree.

Pattern shapes:
  ① name glob          e.g. *.log, .env
      → matches the last path component at any depth
  ② trailing slash     e.g. node_modules/, .git/
      → matches directories only (and so everything beneath them)
  ③ inner slash        e.g. docs/build, src/*.tmp
      → matches the tail of the relative path
  ④ leading slash      e.g. /dist
      → anchored at the sync root
"""
import re
from dataclasses import dataclass

DEFAULT_EXCLUDES = (
    ".git/",
    "node_modules/",
    ".env",
    ".env.local",
    ".env.production",
    "*.log",
    "*.tmp",
    ".DS_Store",
    "Thumbs.db",
    "__pycache__/",
    "*.pyc",
    ".vscode/",
    ".idea/",
    "dist/",
    "build/",
    "coverage/",
    ".nyc_output/",
    "*.backup",
    "*.swp",
    "*.swo",
)


@dataclass(frozen=True)
class ExcludeRule:
    pattern: str
    regex: re.Pattern
    dir_only: bool = False

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        return self.regex.search(rel_path) is not None


def _compile_pattern(raw: str):
    """Compile one exclude pattern into an ExcludeRule, or None for blanks/comments."""
    p = raw.strip()
    if not p or p.startswith("#"):
        return None
    dir_only = p.endswith("/")
    body = p.rstrip("/")
    anchored = body.startswith("/")
    body = body.lstrip("/")
    if not body:
        return None

    escaped = re.escape(body)
    escaped = escaped.replace(r"\*\*", "§DS§")
    escaped = escaped.replace(r"\*", "[^/]*")
    escaped = escaped.replace(r"\?", "[^/]")
    escaped = escaped.replace("§DS§", ".*")
    prefix = "^" if anchored else "(^|/)"
    try:
        return ExcludeRule(pattern=p, regex=re.compile(prefix + escaped + "$"), dir_only=dir_only)
    except re.error:
        return None


def compile_patterns(patterns) -> list[ExcludeRule]:
    """Compile a sequence of raw patterns, dropping blanks and invalid entries."""
    rules = []
    for raw in patterns:
        rule = _compile_pattern(raw)
        if rule:
            rules.append(rule)
    return rules


def merge_patterns(*groups) -> list[str]:
    """Concatenate pattern groups in order, keeping the first occurrence of each."""
    seen = set()
    merged = []
    for group in groups:
        for p in group or ():
            if p not in seen:
                seen.add(p)
                merged.append(p)
    return merged


def matches_any(rel_path: str, is_dir: bool, rules: list[ExcludeRule]) -> bool:
    """Check a single path against the rules, without looking at its parents."""
    norm = rel_path.replace("\\", "/").strip("/")
    return any(r.matches(norm, is_dir) for r in rules)


def is_excluded(rel_path: str, rules: list[ExcludeRule], is_dir: bool = False) -> bool:
    """
    True if the path or any of its parent directories is excluded.
    An excluded directory hides everything beneath it, as with rsync.
    """
    norm = rel_path.replace("\\", "/").strip("/")
    parts = norm.split("/")
    for i in range(1, len(parts)):
        if matches_any("/".join(parts[:i]), True, rules):
            return True
    return matches_any(norm, is_dir, rules)
