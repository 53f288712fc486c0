"""
ExeWatch - Whitelist path resolution.

Turns policy path patterns (variables, trailing wildcards) into the set of
concrete directories that currently exist on disk.
"""

import logging
import os
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_PERCENT_VAR = re.compile(r"%([A-Za-z0-9_]+)%")
_DOLLAR_VAR = re.compile(r"\$\{([A-Za-z0-9_]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")
_SEPARATORS = re.compile(r"[\\/]")
_WILDCARD_CHARS = ("*", "?")

# Variables used by allow-list policies that have no direct environment
# counterpart. Values are templates expanded against the environment.
POLICY_VARIABLE_ALIASES: dict[str, str] = {
    "OSDRIVE": "%SYSTEMDRIVE%",
    "WINDIR": "%SYSTEMROOT%",
    "SYSTEM32": "%SYSTEMROOT%\\System32",
}


def _lookup(env: Mapping[str, str], name: str) -> Optional[str]:
    if name in env:
        return env[name]
    upper = name.upper()
    for key, value in env.items():
        if key.upper() == upper:
            return value
    return None


def expand_variables(pattern: str, env: Optional[Mapping[str, str]] = None) -> str:
    """
    Expand %VAR%, $VAR and ${VAR} references in a pattern.

    Unknown variables are left untouched so the resulting path fails to
    resolve instead of silently pointing somewhere else.
    """
    environ = os.environ if env is None else env

    def plain(match: re.Match) -> str:
        value = _lookup(environ, match.group(1))
        return value if value is not None else match.group(0)

    def percent(match: re.Match) -> str:
        value = _lookup(environ, match.group(1))
        if value is not None:
            return value
        alias = POLICY_VARIABLE_ALIASES.get(match.group(1).upper())
        if alias is not None:
            expanded = _PERCENT_VAR.sub(plain, alias)
            if "%" not in expanded:
                return expanded
        return match.group(0)

    result = _PERCENT_VAR.sub(percent, pattern)

    def dollar(match: re.Match) -> str:
        value = _lookup(environ, match.group(1) or match.group(2))
        return value if value is not None else match.group(0)

    return _DOLLAR_VAR.sub(dollar, result)


def strip_wildcard(pattern: str) -> str:
    """Drop everything from the first path segment containing a wildcard."""
    segments = _SEPARATORS.split(pattern)
    kept: list[str] = []
    for segment in segments:
        if any(ch in segment for ch in _WILDCARD_CHARS):
            break
        kept.append(segment)
    if kept == [""]:
        # Pattern was "/*" or "\*": the filesystem root.
        return os.sep
    path = os.sep.join(kept)
    # "C:" alone means the current directory on that drive; keep the root.
    if re.fullmatch(r"[A-Za-z]:", path):
        path += os.sep
    return path


class PathResolver:
    """Resolves whitelist patterns into existing base directories."""

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self.env = env

    def resolve_pattern(self, pattern: str) -> Optional[Path]:
        """Resolve a single pattern; None when it does not name a directory."""
        expanded = expand_variables(pattern.strip(), self.env)
        base = strip_wildcard(expanded)
        if not base:
            return None
        path = Path(base).expanduser()
        try:
            if not path.is_dir():
                return None
            return path.resolve()
        except OSError:
            return None

    def resolve(self, patterns: Iterable[str]) -> list[Path]:
        """
        Resolve patterns into a deduplicated, sorted list of directories.

        Patterns that do not resolve are dropped: policies may name software
        that is not installed yet.
        """
        found: dict[str, Path] = {}
        for pattern in patterns:
            if not pattern or not pattern.strip():
                continue
            directory = self.resolve_pattern(pattern)
            if directory is None:
                logger.debug("Whitelist pattern does not resolve to a directory: %s", pattern)
                continue
            key = os.path.normcase(str(directory))
            found.setdefault(key, directory)
        return [found[k] for k in sorted(found)]
