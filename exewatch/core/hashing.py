"""
ExeWatch - Hashing module.

Computes SHA256 (primary) and MD5 (legacy) hashes for file fingerprinting.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

PRIMARY_LABEL = "SHA256"
SECONDARY_LABEL = "MD5"


class HashEngine:
    """Computes file hashes using SHA256 and MD5 in a single read."""

    ALGORITHM = "sha256"
    LEGACY_ALGORITHM = "md5"
    CHUNK_SIZE = 65536

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    def compute_hashes(self, file_path: Path) -> Optional[tuple[str, str]]:
        """
        Compute primary and secondary hashes of a file.

        Args:
            file_path: Path to the file.

        Returns:
            (sha256_hex, md5_hex), or None if the file is missing or unreadable.
        """
        if not file_path.is_file():
            logger.warning("Not a file or does not exist: %s", file_path)
            return None

        try:
            primary = hashlib.new(self.ALGORITHM)
            # MD5 is kept for matching older baselines, not for security.
            secondary = hashlib.new(self.LEGACY_ALGORITHM, usedforsecurity=False)
            with open(file_path, "rb") as f:
                while chunk := f.read(self.chunk_size):
                    primary.update(chunk)
                    secondary.update(chunk)
            return primary.hexdigest(), secondary.hexdigest()
        except OSError as e:
            logger.warning("Failed to hash %s: %s", file_path, e)
            return None
