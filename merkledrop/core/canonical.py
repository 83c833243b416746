"""
MerkleDrop: Canonical JSON Encoding — RFC 8785 (JCS)

Used for the claim journal hash chain and the distribution artifact
commitment. Not used for leaves or typed data: those are ABI-encoded.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

import jcs


def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    All values must be JSON-primitive (str, int, float, bool, None, list, dict).
    uint256 amounts exceed the IEEE-754 safe range, so callers pass them as
    decimal strings.
    """
    return jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()
