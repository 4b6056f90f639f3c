# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""SHA-256 integrity checks for downloaded archives and installers.

Every byte blob fetched from the network passes through verify() before it
is extracted or written to its final location.
"""

from __future__ import annotations

import hashlib
import hmac
import re

from wixpack.exceptions import DigestMismatchError, MalformedDigestError

_HEX_RE = re.compile(r"[0-9a-fA-F]+")
_DIGEST_SIZE = hashlib.sha256().digest_size


def sha256_hex(data: bytes) -> str:
    """Return the lowercase hex SHA-256 of data."""
    return hashlib.sha256(data).hexdigest()


def verify(data: bytes, expected_sha256: str) -> str:
    """Verify data against an expected SHA-256 digest.

    The expected digest is decoded from hex (either case) and compared
    byte-for-byte with the digest of data.

    Args:
        data: Bytes to verify.
        expected_sha256: Expected digest as a 64 character hex string.

    Returns:
        The computed digest as lowercase hex.

    Raises:
        MalformedDigestError: If expected_sha256 is not SHA-256 hex.
        DigestMismatchError: If the digests differ.

    Example:
        >>> verify(b"abc", "ba7816bf8f01cfea414140de5dae2223"
        ...                "b00361a396177a9cb410ff61f20015ad")
        'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'
    """
    if not isinstance(expected_sha256, str) or not _HEX_RE.fullmatch(
        expected_sha256
    ):
        raise MalformedDigestError(f"expected digest is not hex: {expected_sha256!r}")

    if len(expected_sha256) != _DIGEST_SIZE * 2:
        raise MalformedDigestError(
            f"expected digest has wrong length for sha256: {expected_sha256!r}"
        )

    expected = bytes.fromhex(expected_sha256)
    actual = hashlib.sha256(data).digest()
    if not hmac.compare_digest(actual, expected):
        raise DigestMismatchError(expected=expected.hex(), actual=actual.hex())

    return actual.hex()
