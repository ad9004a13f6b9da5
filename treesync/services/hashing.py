"""
Hashing service for file content verification.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import xxhash


class HashAlgorithm(Enum):
    """Supported hash algorithms."""
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"
    XXH64 = "xxh64"  # Fast non-cryptographic hash

    @classmethod
    def from_string(cls, value: str) -> 'HashAlgorithm':
        """Create from a name such as 'sha256' or 'XXH64'."""
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            raise ValueError(
                f"Unknown hash algorithm: {value!r} "
                f"(choose from {', '.join(a.value for a in cls)})"
            ) from None


@dataclass
class HashResult:
    """Result of a hash operation."""
    algorithm: HashAlgorithm
    hash_hex: str
    file_size: int


class HashingService:
    """Service for computing file hashes."""

    def __init__(
        self,
        default_algorithm: HashAlgorithm = HashAlgorithm.SHA256,
        chunk_size: int = 65536
    ):
        self.default_algorithm = default_algorithm
        self.chunk_size = chunk_size

    def hash_file(
        self,
        path: Path | str,
        algorithm: Optional[HashAlgorithm] = None
    ) -> HashResult:
        """
        Compute hash of a file.

        The file is streamed in ``chunk_size`` blocks. OS errors propagate.

        Args:
            path: Path to the file
            algorithm: Hash algorithm to use

        Returns:
            HashResult with the computed hash
        """
        path = Path(path)
        algorithm = algorithm or self.default_algorithm

        hasher = self._create_hasher(algorithm)

        bytes_processed = 0

        with open(path, 'rb') as f:
            while chunk := f.read(self.chunk_size):
                hasher.update(chunk)
                bytes_processed += len(chunk)

        return HashResult(
            algorithm=algorithm,
            hash_hex=hasher.hexdigest(),
            file_size=bytes_processed
        )

    def _create_hasher(self, algorithm: HashAlgorithm):
        """Create a hasher for the given algorithm."""
        if algorithm == HashAlgorithm.MD5:
            return hashlib.md5()
        elif algorithm == HashAlgorithm.SHA1:
            return hashlib.sha1()
        elif algorithm == HashAlgorithm.SHA256:
            return hashlib.sha256()
        elif algorithm == HashAlgorithm.SHA512:
            return hashlib.sha512()
        elif algorithm == HashAlgorithm.XXH64:
            return xxhash.xxh64()
        else:
            raise ValueError(f"Unknown algorithm: {algorithm}")
