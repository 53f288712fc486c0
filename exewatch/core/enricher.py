"""
ExeWatch - Execution log enrichment.

Copies new lines from the enforcement layer's allow log (wide-character
encoded) into a UTF-8 sink, appending hash and timestamp metadata to lines
that name an executable. The sink is append-only: lines already emitted are
never rewritten, so external readers tailing it by byte offset keep working.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from exewatch.core.errors import ExeWatchError
from exewatch.core.hashing import PRIMARY_LABEL, SECONDARY_LABEL, HashEngine
from exewatch.core.models import EnrichResult
from exewatch.core.paths import expand_variables

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_ENCODING = "utf-16"
SINK_ENCODING = "utf-8"

# Matches "...Path: C:\dir\app.exe", "FilePath=\"/opt/x/run.sh\"" and similar.
DEFAULT_PATH_PATTERN = r"""(?:File)?Path\s*[:=]\s*"?(?P<path>[^"|\t\r\n]+?)"?\s*$"""


class LogEnricher:
    """
    Incrementally converts and enriches an allow log.

    Progress is tracked by the sink's own line count: on each run only source
    lines beyond that count are processed.
    """

    def __init__(
        self,
        source_log: Path,
        sink_log: Path,
        *,
        hash_engine: Optional[HashEngine] = None,
        source_encoding: str = DEFAULT_SOURCE_ENCODING,
        path_pattern: Optional[str] = None,
        env: Optional[dict[str, str]] = None,
    ) -> None:
        self.source_log = Path(source_log)
        self.sink_log = Path(sink_log)
        self.hash_engine = hash_engine or HashEngine()
        self.source_encoding = source_encoding
        try:
            self.path_regex = re.compile(path_pattern or DEFAULT_PATH_PATTERN)
        except re.error as e:
            raise ExeWatchError(f"Invalid enrichment.path_pattern: {e}") from e
        if "path" not in self.path_regex.groupindex:
            raise ExeWatchError("enrichment.path_pattern must define a named group 'path'")
        self.env = env

    def count_sink_lines(self) -> int:
        if not self.sink_log.is_file():
            return 0
        count = 0
        with open(self.sink_log, "rb") as f:
            for _ in f:
                count += 1
        return count

    def read_source_lines(self) -> list[str]:
        with open(self.source_log, encoding=self.source_encoding, errors="replace") as f:
            return f.read().splitlines()

    def extract_path(self, line: str) -> Optional[str]:
        match = self.path_regex.search(line)
        if match is None:
            return None
        path = match.group("path").strip()
        return expand_variables(path, self.env) if path else None

    def enrich_line(self, line: str, timestamp: str) -> tuple[str, Optional[bool]]:
        """
        Enrich one line.

        Returns:
            (output_line, found) where found is None for lines without a
            target path, True when the file was hashed and False when it no
            longer exists or cannot be read.
        """
        target = self.extract_path(line)
        if target is None:
            return line, None
        hashes = self.hash_engine.compute_hashes(Path(target))
        primary, secondary = hashes if hashes else ("", "")
        suffix = f"|{timestamp}|{PRIMARY_LABEL}:{primary}|{SECONDARY_LABEL}:{secondary}"
        return line + suffix, hashes is not None

    def run(self) -> EnrichResult:
        """
        Process new source lines and append them to the sink.

        Raises:
            OSError: the sink cannot be written.
        """
        result = EnrichResult(sink_path=self.sink_log)
        if not self.source_log.is_file():
            logger.warning("Source log not found: %s", self.source_log)
            return result

        already = self.count_sink_lines()
        try:
            lines = self.read_source_lines()
        except (OSError, UnicodeError) as e:
            logger.warning("Failed to read source log %s: %s", self.source_log, e)
            return result

        new_lines = lines[already:]
        if not new_lines:
            logger.info("No new lines in %s (sink has %d)", self.source_log, already)
            return result

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        output: list[str] = []
        for line in new_lines:
            enriched, found = self.enrich_line(line, timestamp)
            if found is not None:
                result.enriched += 1
                if not found:
                    result.missing += 1
            output.append(enriched)

        self.sink_log.parent.mkdir(parents=True, exist_ok=True)
        with open(self.sink_log, "a", encoding=SINK_ENCODING, newline="\n") as f:
            f.write("\n".join(output) + "\n")
        result.processed = len(output)
        logger.info(
            "Enriched log %s: %d new line(s), %d with hashes, %d missing file(s)",
            self.sink_log, result.processed, result.enriched, result.missing,
        )
        return result
