"""
Content verification for file pairs of equal size.
"""

from __future__ import annotations

import errno
import logging
from pathlib import Path
from typing import Optional

from treesync.core.models import VerificationResult
from treesync.services.hashing import HashAlgorithm, HashingService


def describe_os_error(error: OSError) -> str:
    """Classify an OS error as not found, permission denied or generic I/O."""
    if isinstance(error, FileNotFoundError) or error.errno == errno.ENOENT:
        reason = "not found"
    elif isinstance(error, PermissionError) or error.errno in (errno.EACCES, errno.EPERM):
        reason = "permission denied"
    else:
        reason = "I/O error"

    detail = error.strerror or str(error)
    return f"{reason}: {detail}"


class ContentVerifier:
    """
    Compares two files by content digest.

    Never raises for file access problems: a failure on either side is
    reported in the returned VerificationResult, naming the side.
    """

    def __init__(
        self,
        algorithm: HashAlgorithm = HashAlgorithm.SHA256,
        chunk_size: int = 65536,
        hashing_service: Optional[HashingService] = None
    ):
        self.algorithm = algorithm
        self._hashing = hashing_service or HashingService(algorithm, chunk_size)

    def verify(self, source_path: Path | str, destination_path: Path | str) -> VerificationResult:
        """Hash both files and report whether their digests match."""
        digests: dict[str, str] = {}

        for side, path in (('source', source_path), ('destination', destination_path)):
            try:
                digests[side] = self._hashing.hash_file(path, self.algorithm).hash_hex
            except OSError as e:
                detail = f"{side} {describe_os_error(e)}"
                logging.warning(f"ContentVerifier - Failed to hash {path}: {detail}")
                return VerificationResult(
                    matches=False,
                    source_digest=digests.get('source'),
                    failed_side=side,
                    error=detail,
                )

        return VerificationResult(
            matches=digests['source'] == digests['destination'],
            source_digest=digests['source'],
            destination_digest=digests['destination'],
        )
