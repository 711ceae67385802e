"""
Incremental SHA256 over the bytes of one upload.
"""

import base64
import hashlib
from typing import Optional

from file_ingest.core.errors import DigestFault


class DigestAccumulator:
    """
    Running SHA256 checksum, fed in the same order bytes reach the sink.

    The result is the base64 encoding of the raw 32-byte digest. Feeding the
    same bytes split at different boundaries yields the same value.
    """

    def __init__(self):
        self._sha256 = hashlib.sha256()
        self._result: Optional[str] = None

    @property
    def finalized(self) -> bool:
        return self._result is not None

    def update(self, data: bytes) -> None:
        """
        Append bytes to the running checksum.

        Raises:
            DigestFault: If the digest was already finalized
        """
        if self.finalized:
            raise DigestFault("update() called after finalize()")
        self._sha256.update(data)

    def finalize(self) -> str:
        """
        Close the checksum and return it base64-encoded.

        Returns:
            44 character base64 string of the SHA256 digest

        Raises:
            DigestFault: If called more than once
        """
        if self.finalized:
            raise DigestFault("finalize() called twice")
        self._result = base64.b64encode(self._sha256.digest()).decode("ascii")
        return self._result
