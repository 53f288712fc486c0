"""
ExeWatch - Whitelist policy sources.

The enforcement layer owns the allow-list; ExeWatch only reads its path
patterns. Two sources are supported: an exported policy file (XML rule
collection or plain pattern list) and patterns given inline in config.
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Sequence

from exewatch.core.errors import PolicyNotConfiguredError

logger = logging.getLogger(__name__)


class PolicySource:
    """Read-only provider of whitelist path patterns."""

    def whitelist_patterns(self) -> list[str]:
        raise NotImplementedError


class StaticPolicySource(PolicySource):
    """Patterns supplied directly (inline config, tests)."""

    def __init__(self, patterns: Sequence[str]) -> None:
        self._patterns = [p for p in patterns if p and p.strip()]

    def whitelist_patterns(self) -> list[str]:
        return list(self._patterns)


class PolicyFileSource(PolicySource):
    """
    Patterns read from an exported policy file.

    XML exports contribute the Path of every FilePathCondition that belongs
    to a FilePathRule with Action="Allow". Any other file is read as one
    pattern per line; blank lines and '#' comments are ignored.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def whitelist_patterns(self) -> list[str]:
        if not self.path.is_file():
            raise PolicyNotConfiguredError(f"Policy file not found: {self.path}")
        if self.path.suffix.lower() == ".xml":
            return self._read_xml()
        return self._read_lines()

    def _read_lines(self) -> list[str]:
        patterns = []
        with open(self.path, encoding="utf-8-sig") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                patterns.append(line)
        return patterns

    def _read_xml(self) -> list[str]:
        try:
            root = ET.parse(self.path).getroot()
        except ET.ParseError as e:
            raise PolicyNotConfiguredError(f"Policy file is not valid XML: {self.path}: {e}") from e
        patterns = []
        for rule in root.iter():
            if _local_name(rule.tag) != "FilePathRule":
                continue
            if rule.get("Action", "Allow") != "Allow":
                continue
            # Exceptions carve paths out of the rule; only Conditions allow.
            for conditions in rule:
                if _local_name(conditions.tag) != "Conditions":
                    continue
                for cond in conditions:
                    if _local_name(cond.tag) == "FilePathCondition" and cond.get("Path"):
                        patterns.append(cond.get("Path"))
        return patterns


class CombinedPolicySource(PolicySource):
    """Concatenates patterns from several sources, preserving order."""

    def __init__(self, sources: Sequence[PolicySource]) -> None:
        self.sources = list(sources)

    def whitelist_patterns(self) -> list[str]:
        patterns: list[str] = []
        for source in self.sources:
            patterns.extend(source.whitelist_patterns())
        return patterns


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def policy_source_from_settings(
    policy_file: Optional[Path],
    inline_patterns: Sequence[str],
) -> PolicySource:
    """
    Build the policy source described by configuration.

    Raises:
        PolicyNotConfiguredError: neither a policy file nor inline patterns
            are configured.
    """
    sources: list[PolicySource] = []
    if policy_file is not None:
        sources.append(PolicyFileSource(policy_file))
    if inline_patterns:
        sources.append(StaticPolicySource(inline_patterns))
    if not sources:
        raise PolicyNotConfiguredError(
            "No whitelist policy configured: set policy.policy_file or policy.whitelist"
        )
    return sources[0] if len(sources) == 1 else CombinedPolicySource(sources)


def load_whitelist_patterns(source: PolicySource) -> list[str]:
    """Read patterns from a source; an empty policy counts as not configured."""
    patterns = source.whitelist_patterns()
    if not patterns:
        raise PolicyNotConfiguredError("Whitelist policy contains no path rules")
    logger.debug("Loaded %d whitelist pattern(s)", len(patterns))
    return patterns
